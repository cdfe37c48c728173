"""
Models module - Pydantic schemas for data validation.

This module defines:
- MemoryRecord and its sections: the value returned by the memory store
- Request models: Input validation for API endpoints
- Response models: Output formatting for API responses
"""
from usercontext.models.memory import (
    MemoryRecord,
    ProfileSection,
    ConversationSection,
    MetaSection,
    RiskUpdateRequest,
    RiskUpdateResponse,
    QuestionRequest,
    InsightRequest,
    ContextResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    "MemoryRecord",
    "ProfileSection",
    "ConversationSection",
    "MetaSection",
    "RiskUpdateRequest",
    "RiskUpdateResponse",
    "QuestionRequest",
    "InsightRequest",
    "ContextResponse",
    "HealthResponse",
    "ErrorResponse",
]
