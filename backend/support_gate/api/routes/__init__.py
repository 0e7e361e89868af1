"""
API routes module initialization.
"""
from . import admin, escalation, health

__all__ = ["admin", "escalation", "health"]
