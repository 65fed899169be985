"""Posts and timelines."""
