"""
Storage for the referral coordination network.

- PostgreSQL: system of record (via SQLAlchemy)
- Demo store: single JSON document for local demo mode
"""

from .postgres import db, init_db, get_db_session, close_db_session
from .demo_store import DemoStore

__all__ = [
    "db",
    "init_db",
    "get_db_session",
    "close_db_session",
    "DemoStore",
]
