"""
Pathway Backend - Core Module

This module contains configuration, database setup, security utilities,
per-user locking and the engine error taxonomy.
"""

from pathway.core.config import get_settings, settings
from pathway.core.database import Base, get_db, get_engine

__all__ = ["settings", "get_settings", "Base", "get_db", "get_engine"]
