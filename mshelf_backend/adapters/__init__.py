"""Adapters around external tools and libraries."""
