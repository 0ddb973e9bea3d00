"""portreg: registry resolution for a source-based port manager."""

__version__ = "0.1.0"
