# control-plane/database/__init__.py
"""
Database modules
"""

from .session import get_db, get_db_session, init_db, db_manager, SessionLocal, engine
from .models import Base, Agent, Gateway, Tunnel, NodeStatus

__all__ = [
    # Session
    "get_db",
    "get_db_session",
    "init_db",
    "db_manager",
    "SessionLocal",
    "engine",
    # Models
    "Base",
    "Agent",
    "Gateway",
    "Tunnel",
    "NodeStatus",
]
