"""URL trimmer: short links with per-owner management and click counting."""
