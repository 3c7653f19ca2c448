"""
Database Layer
Persistence and storage operations.
"""

from .sqlite import SQLiteStorage

__all__ = ["SQLiteStorage"]
