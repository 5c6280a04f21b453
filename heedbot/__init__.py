"""heedbot — decides whether a chat message deserves a notification."""

__version__ = "0.3.0"
