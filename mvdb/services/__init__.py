"""Catalog services built on the key-value store."""
