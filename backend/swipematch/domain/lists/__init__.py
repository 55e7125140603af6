"""Per-user deck settings and personal watch-lists."""
