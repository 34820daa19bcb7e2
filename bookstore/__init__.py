"""Bookstore REST API: catalog, reviews, orders and cookie-based JWT auth."""

__version__ = "1.0.0"
