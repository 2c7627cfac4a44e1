"""Database layer."""

from depot.db.session import close_db, get_async_session, init_db

__all__ = ["init_db", "close_db", "get_async_session"]
