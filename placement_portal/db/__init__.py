"""
Database module - SQLAlchemy engine, sessions and table definitions.
"""
from placement_portal.db.database import get_db_session, init_engine, check_database_connection
from placement_portal.db.schema import create_schema, metadata

__all__ = [
    "get_db_session",
    "init_engine",
    "check_database_connection",
    "create_schema",
    "metadata",
]
