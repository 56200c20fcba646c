"""
Database connection and schema of the indexed chain store.
"""

from .connection import DatabaseConnection
from .models import Base, BlockRow, TransactionLogRow, TransactionRow

__all__ = [
    'DatabaseConnection',
    'Base',
    'BlockRow',
    'TransactionLogRow',
    'TransactionRow',
]
