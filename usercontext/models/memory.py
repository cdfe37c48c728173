"""
Memory record and request/response models.

MemoryRecord is the copy-out value returned by the memory store and
serialized with camelCase keys (profile.riskFactors, meta.createdAt, ...)
so the JSON shape matches what chat clients already send and read.
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    """Accept both snake_case attribute names and camelCase JSON keys."""
    model_config = ConfigDict(populate_by_name=True)


class ProfileSection(_CamelModel):
    """What the assistant knows about the user's health context."""
    risk_factors: List[str] = Field(default_factory=list, alias="riskFactors")
    conditions: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)


class ConversationSection(_CamelModel):
    """Conversation history kept between chats."""
    recent_questions: List[str] = Field(default_factory=list, alias="recentQuestions")
    key_insights: List[str] = Field(default_factory=list, alias="keyInsights")


class MetaSection(_CamelModel):
    """Timestamps in epoch milliseconds."""
    created_at: int = Field(default=0, alias="createdAt")
    last_active: int = Field(default=0, alias="lastActive")


class MemoryRecord(_CamelModel):
    """
    One user's memory.

    Instances are snapshots: mutating one never changes stored state.
    """
    profile: ProfileSection = Field(default_factory=ProfileSection)
    conversation: ConversationSection = Field(default_factory=ConversationSection)
    meta: MetaSection = Field(default_factory=MetaSection)

    def to_document(self) -> dict:
        """JSON document form, as persisted."""
        return self.model_dump(by_alias=True)


class RiskUpdateRequest(_CamelModel):
    """Request body for POST /risk. Omitted lists are stored as empty."""
    user_id: str = Field(..., alias="userId", min_length=1)
    risk_factors: Optional[List[str]] = Field(default=None, alias="riskFactors")
    conditions: Optional[List[str]] = None


class RiskUpdateResponse(_CamelModel):
    """Response for POST /risk."""
    user_id: str = Field(..., alias="userId")
    message: str = "Updated"
    profile: ProfileSection


class QuestionRequest(_CamelModel):
    """Request body for POST /context/question."""
    user_id: str = Field(..., alias="userId", min_length=1)
    question: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The user's question, appended to recentQuestions",
        examples=["How does housing instability affect blood pressure?"]
    )


class InsightRequest(_CamelModel):
    """Request body for POST /context/insight."""
    user_id: str = Field(..., alias="userId", min_length=1)
    insight: str = Field(
        ...,
        min_length=1,
        description="Assistant response; only its leading characters are kept"
    )


class ContextResponse(_CamelModel):
    """Response for GET /context."""
    user_id: str = Field(..., alias="userId")
    memory: MemoryRecord
    recent_questions: List[str] = Field(default_factory=list, alias="recentQuestions")


class HealthResponse(BaseModel):
    """Response model for the /health endpoint."""
    status: str = Field(default="healthy")
    version: str
    storage: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str
    message: str
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
