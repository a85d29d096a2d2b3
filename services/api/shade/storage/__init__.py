"""
Storage abstraction for the Shade Party Mode API.

This module provides a clean interface for party data persistence,
allowing easy swapping between implementations (in-memory, SQL).
"""
from .base import Storage
from .memory import InMemoryStorage
from .sql import SQLStorage

__all__ = ["Storage", "InMemoryStorage", "SQLStorage"]
