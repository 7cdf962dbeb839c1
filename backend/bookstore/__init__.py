"""Bookstore backend: catalog, accounts and stock-safe order placement."""

__version__ = "1.0.0"
