"""Karaman weather republisher backed by the MGM website."""

__version__ = "0.1.0"
