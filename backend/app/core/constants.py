# backend/app/core/constants.py
"""
Application-wide constants for the studio booking backend.
"""

BRAND_NAME = "Studio Booking"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = f"Backend API for {BRAND_NAME} - room bookings paid through Robokassa"
API_VERSION = "1.0.0"

ROBOKASSA_ROUTE_PREFIX = "/payments/robokassa"
