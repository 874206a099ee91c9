"""Interactive terminal chat with persistent AI characters."""

__version__ = "0.3.0"
