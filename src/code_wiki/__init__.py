"""Local index and search over source repositories and a curated wiki."""

__version__ = "0.1.0"
