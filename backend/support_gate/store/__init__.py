"""
Support store package.
Persistence for chat messages, session summaries and escalations.

Version: 1.0.0
"""
from .base import SupportStore, StoreError, InvalidStatusTransition
from .models import (
    ChatMessage,
    ChatSessionSummary,
    EscalationRecord,
    EscalationStatus,
    utcnow,
)
from .in_memory import InMemorySupportStore
from .redis_store import RedisSupportStore


def create_support_store(
    store_type: str = "in_memory",
    **kwargs
) -> SupportStore:
    """
    Factory function to create the support store.

    Args:
        store_type: Type of store ('in_memory' or 'redis')
        **kwargs: Store-specific configuration

    Returns:
        SupportStore instance

    Examples:
        store = create_support_store('in_memory')

        store = create_support_store(
            'redis',
            redis_url='redis://localhost:6379/0',
            key_prefix='support:'
        )
    """
    if store_type == "in_memory":
        return InMemorySupportStore(**kwargs)

    elif store_type == "redis":
        return RedisSupportStore(**kwargs)

    else:
        raise ValueError(f"Unknown store type: {store_type}")


__all__ = [
    # Core
    'SupportStore',
    'StoreError',
    'InvalidStatusTransition',

    # Records
    'ChatMessage',
    'ChatSessionSummary',
    'EscalationRecord',
    'EscalationStatus',
    'utcnow',

    # Implementations
    'InMemorySupportStore',
    'RedisSupportStore',

    # Factory
    'create_support_store',
]
