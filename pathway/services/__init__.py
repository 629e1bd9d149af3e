"""
Pathway - Services Module

Business logic layer.
"""

from pathway.services import catalog_service
from pathway.services import quiz_service
from pathway.services import progress_service
from pathway.services import access_service
from pathway.services import watch_service
from pathway.services import analytics_service
from pathway.services import bootstrap_service

__all__ = [
    "catalog_service",
    "quiz_service",
    "progress_service",
    "access_service",
    "watch_service",
    "analytics_service",
    "bootstrap_service",
]
