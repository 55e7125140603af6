"""Two-player swipe matching backend."""
