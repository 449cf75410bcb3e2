"""On-disk skill library and install statistics."""
