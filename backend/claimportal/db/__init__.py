"""
Database package
"""
from claimportal.db.base import Base
from claimportal.db.session import engine, SessionLocal, get_db
from claimportal.db.models import *

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
]
