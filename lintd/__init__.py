"""lintd - keeps a Python style checker warm in a background daemon."""

__version__ = "0.1.0"
