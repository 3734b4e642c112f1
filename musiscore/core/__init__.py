"""
MUSISCORE - Core Module
Configuration, logging and database infrastructure.
"""

from musiscore.core.config import Settings, get_settings, settings
from musiscore.core.database import (
    Base,
    DatabaseManager,
    db_manager,
    get_database_manager,
)
from musiscore.core.logging_config import configure_logging

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "settings",

    # Database
    "Base",
    "DatabaseManager",
    "db_manager",
    "get_database_manager",

    # Logging
    "configure_logging",
]
