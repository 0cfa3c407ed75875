"""Simple Docker Manager: a small web dashboard for a single Docker host."""

__version__ = "0.1.0"
