# src/jewelrate/adapters/persistence/__init__.py
"""
Persistence Adapters - Data Storage

This package contains the relational store:
- SQLAlchemy schema and engine setup
- Store primitives (get/set/conditional update)
"""

from jewelrate.adapters.persistence.database import create_db_engine, metadata
from jewelrate.adapters.persistence.store import Store

__all__ = [
    "create_db_engine",
    "metadata",
    "Store",
]
