"""Materialize declarative directory/file layouts onto disk."""

__version__ = "0.1.0"
