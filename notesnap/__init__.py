"""notesnap - read Apple Notes from a database snapshot, write through the Notes app."""

__version__ = "0.1.0"
