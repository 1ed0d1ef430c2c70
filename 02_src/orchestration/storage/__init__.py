"""Storage module."""

from .storage import IStorage, Storage, dumps

__all__ = ["IStorage", "Storage", "dumps"]
