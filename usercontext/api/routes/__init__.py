"""
API Routes module - Endpoint definitions.

Each file in this module defines routes for a specific domain:
- memory.py  : Raw get/patch of a user's memory record
- context.py : Conversation bookkeeping (questions, insights, risk profile)
- health.py  : Health check endpoints
"""
from usercontext.api.routes.memory import router as memory_router
from usercontext.api.routes.context import router as context_router
from usercontext.api.routes.health import router as health_router

__all__ = [
    "memory_router",
    "context_router",
    "health_router",
]
