"""pepyatka: a small social network API with groups, posts and comments."""

__version__ = "0.1.0"
