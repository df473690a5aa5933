"""
Database module for the Eligibility Service.

Exports database connection utilities.
"""

from eligibility_service.db.connection import (
    check_db_connection,
    close_engine,
    create_engine,
    create_session_factory,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "close_engine",
    "check_db_connection",
]
