"""Yield opportunity discovery agent."""

__version__ = "0.1.0"
