"""Version 1 of the catalog API."""
