"""
Database module - SQLAlchemy access layer for persistent memory.

This module handles:
- Database connection management
- The user_memory table definition
- Table creation
"""
from usercontext.database.connection import DatabaseConnection, get_database, reset_database
from usercontext.database.models import UserMemoryRow, Base, MEMORY_KEY
from usercontext.database.init_db import init_memory_tables

__all__ = [
    # Connection
    "DatabaseConnection",
    "get_database",
    "reset_database",
    # Models
    "UserMemoryRow",
    "Base",
    "MEMORY_KEY",
    # Init
    "init_memory_tables",
]
