"""Database module for Termsmith.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from termsmith.db.engine import create_db_engine
from termsmith.db.models import Base, Chat, User
from termsmith.db.session import create_session_factory, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "create_session_factory",
    "transaction",
    # Models
    "Base",
    "User",
    "Chat",
]
