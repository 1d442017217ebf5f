"""Checkout and order lifecycle services."""
