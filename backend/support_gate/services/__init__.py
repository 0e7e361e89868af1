"""
Services module for Support Gate.
"""
from .auth_service import AuthService, Principal, extract_bearer_token
from .escalation_service import EscalationWorkflow, EscalationOutcome
from .stats_service import StatsAggregator, StatsService, StatsSnapshot, CacheStatus
from .store_calls import call_store

__all__ = [
    "AuthService",
    "Principal",
    "extract_bearer_token",
    "EscalationWorkflow",
    "EscalationOutcome",
    "StatsAggregator",
    "StatsService",
    "StatsSnapshot",
    "CacheStatus",
    "call_store",
]
