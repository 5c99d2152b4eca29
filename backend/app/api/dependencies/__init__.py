# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .database import get_db
from .repositories import get_booking_repo, get_robokassa_payment_repo
from .services import get_robokassa_payment_service, get_settings

__all__ = [
    # Database
    "get_db",
    # Repositories
    "get_booking_repo",
    "get_robokassa_payment_repo",
    # Services
    "get_robokassa_payment_service",
    "get_settings",
]
