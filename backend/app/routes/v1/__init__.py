# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import health, prometheus, robokassa_payments

__all__ = [
    "health",
    "prometheus",
    "robokassa_payments",
]
