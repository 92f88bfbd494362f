"""
Database module containing session management and base models.
"""
from questline.db.session import get_db, async_session_maker, engine
from questline.db.base import Base

__all__ = ["get_db", "async_session_maker", "engine", "Base"]
