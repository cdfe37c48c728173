"""
Services module - Orchestration on top of the memory store.

Services contain application logic:
- No HTTP concerns (those belong in api/)
- No database queries (those belong in memory/ and database/)
"""
from usercontext.services.context_service import (
    ContextService,
    recent_questions,
    get_context_service,
    reset_context_service,
)

__all__ = [
    "ContextService",
    "recent_questions",
    "get_context_service",
    "reset_context_service",
]
