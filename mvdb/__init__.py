"""MVDB catalog backend."""
