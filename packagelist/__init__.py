"""packagelist — canonical package list maintenance for a package index."""

__version__ = "0.1.0"
