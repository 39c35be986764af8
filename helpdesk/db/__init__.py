"""Database package"""

from helpdesk.db.session import AsyncSessionLocal, build_engine, engine, get_db
from helpdesk.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "build_engine", "engine", "get_db"]
