"""Containers and the portable Roaring bitmap serialization format."""

__version__ = "0.1.0"
__all__ = ["container", "serialization"]