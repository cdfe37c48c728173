"""
Memory Routes - Read and patch a user's memory record.

Endpoints:
- GET  /memory/{user_id}: Current record (created on first access)
- POST /memory/{user_id}: Deep-merge a partial record, return the result
"""
from typing import Any

from fastapi import APIRouter, Body, Depends

from usercontext.core.logging_config import get_logger
from usercontext.memory import UserMemoryStore, get_memory_store
from usercontext.models.memory import MemoryRecord, ErrorResponse

logger = get_logger(__name__)

router = APIRouter(
    prefix="/memory",
    tags=["Memory"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid user identity"},
        503: {"model": ErrorResponse, "description": "Memory storage unavailable"},
    }
)


@router.get(
    "/{user_id}",
    response_model=MemoryRecord,
    summary="Get user memory",
    description="Return the user's memory record, creating an empty one on first access."
)
def get_memory(
    user_id: str,
    store: UserMemoryStore = Depends(get_memory_store)
) -> MemoryRecord:
    return store.get(user_id)


@router.post(
    "/{user_id}",
    response_model=MemoryRecord,
    summary="Patch user memory",
    description="""
    Deep-merge a partial memory record into the user's record.

    - Nested objects (profile, conversation, meta) merge field by field
    - Lists replace the stored list; read, append, and send the full list
    - Omitted fields are unchanged; null resets a field to empty
    - meta.createdAt cannot be changed; meta.lastActive is set by the server

    A body that does not match the record shape is rejected whole (422).
    """,
    responses={422: {"model": ErrorResponse, "description": "Malformed patch"}}
)
def patch_memory(
    user_id: str,
    partial: Any = Body(
        ...,
        examples=[{"profile": {"conditions": ["hypertension"]}}]
    ),
    store: UserMemoryStore = Depends(get_memory_store)
) -> MemoryRecord:
    record = store.patch(user_id, partial)
    logger.debug(f"Memory patched via API: user={user_id[:8]}")
    return record
