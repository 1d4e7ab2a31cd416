"""Fruit Merge game backend."""

__version__ = "3.5.0"
