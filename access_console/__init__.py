"""Smart Access console: authentication session lifecycle."""

__version__ = "0.1.0"
