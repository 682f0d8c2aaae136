"""Waterlily: survey authoring and response collection."""

__version__ = "0.1.0"
