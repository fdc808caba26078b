"""
Storage implementations.

Provides implementations of the ArenaStore and BuildStore interfaces.

Available implementations:
- SQLArenaStore: SQLAlchemy-backed store (SQLite or Postgres) with
  transactional units of work
"""

from .sql_store import SQLArenaStore, SQLUnitOfWork, make_engine

__all__ = ["SQLArenaStore", "SQLUnitOfWork", "make_engine"]
