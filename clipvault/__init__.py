"""Encrypted personal secret store with a self-clearing clipboard."""

__version__ = "0.3.0"

__all__ = ["__version__"]
