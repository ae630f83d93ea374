"""Progress monitor for long-running data migrations."""

__version__ = "0.1.0"
