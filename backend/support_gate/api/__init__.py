"""
API module for Support Gate.
"""
from .routes import admin, escalation, health

__all__ = [
    "admin",
    "escalation",
    "health",
]
