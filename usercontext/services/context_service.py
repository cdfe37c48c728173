"""
Context Service - Conversation bookkeeping on top of the memory store.

The store only merges patches; arrays in a patch replace what is stored.
This service performs the read-then-append steps a chat turn needs:
1. Record the user's question in recentQuestions
2. Record the start of the assistant's answer in keyInsights
3. Replace the risk profile from the profile form
4. Build the trimmed context view used for prompting

Appends run through UserMemoryStore.update(), so the read and the write
happen under the user's lock and concurrent turns are never dropped.
Trimming to "last N" happens only in the returned views, never in
storage.
"""
from typing import Dict, List, Optional

from usercontext.core.config import get_settings
from usercontext.core.exceptions import ValidationError
from usercontext.core.logging_config import LoggerMixin
from usercontext.core.validators import validate_text
from usercontext.memory import UserMemoryStore, get_memory_store
from usercontext.models.memory import MemoryRecord


def recent_questions(record: MemoryRecord, n: int) -> List[str]:
    """Last n questions, oldest first. n <= 0 returns an empty list."""
    if n <= 0:
        return []
    return list(record.conversation.recent_questions[-n:])


class ContextService(LoggerMixin):
    """
    Service for recording conversation turns in user memory.

    Example:
        >>> service = ContextService(store)
        >>> service.record_question("user-123", "Does stress raise blood pressure?")
        >>> service.record_insight("user-123", llm_answer)
        >>> service.get_context("user-123")["recentQuestions"]
        ['Does stress raise blood pressure?']
    """

    def __init__(
        self,
        store: Optional[UserMemoryStore] = None,
        insight_max_chars: Optional[int] = None,
        recent_window: Optional[int] = None
    ):
        """
        Initialize the context service.

        Args:
            store: Memory store. Uses the global singleton if not provided.
            insight_max_chars: Characters of an answer kept as an insight
            recent_window: Questions included in get_context()
        """
        settings = get_settings()
        self.store = store or get_memory_store()
        self.insight_max_chars = (
            settings.insight_max_chars if insight_max_chars is None else insight_max_chars
        )
        self.recent_window = (
            settings.recent_questions_window if recent_window is None else recent_window
        )

    def record_question(self, user_id: str, question: str) -> MemoryRecord:
        """
        Append a question to the user's recentQuestions.

        Raises:
            ValidationError: If the question is empty after sanitization
        """
        is_valid, sanitized, error = validate_text(question)
        if not is_valid:
            raise ValidationError(error, field="question")

        record = self.store.update(
            user_id,
            lambda current: {
                "conversation": {
                    "recentQuestions": current.conversation.recent_questions + [sanitized]
                }
            }
        )
        self.logger.info(
            f"Recorded question: user={user_id[:8]}, "
            f"total={len(record.conversation.recent_questions)}"
        )
        return record

    def record_insight(self, user_id: str, text: str) -> MemoryRecord:
        """
        Append the leading part of an answer to the user's keyInsights.

        Raises:
            ValidationError: If the text is empty after sanitization
        """
        is_valid, sanitized, error = validate_text(text, max_length=self.insight_max_chars)
        if not is_valid:
            raise ValidationError(error, field="insight")

        record = self.store.update(
            user_id,
            lambda current: {
                "conversation": {
                    "keyInsights": current.conversation.key_insights + [sanitized]
                }
            }
        )
        self.logger.debug(f"Recorded insight: user={user_id[:8]}, chars={len(sanitized)}")
        return record

    def update_risk_profile(
        self,
        user_id: str,
        risk_factors: Optional[List[str]] = None,
        conditions: Optional[List[str]] = None
    ) -> MemoryRecord:
        """
        Replace the user's risk factors and conditions.

        Both lists are always written; an omitted list clears the field,
        matching the profile form which submits the full state.
        Interests are left untouched.
        """
        record = self.store.patch(
            user_id,
            {
                "profile": {
                    "riskFactors": list(risk_factors or []),
                    "conditions": list(conditions or []),
                }
            }
        )
        self.logger.info(
            f"Updated risk profile: user={user_id[:8]}, "
            f"risk_factors={len(record.profile.risk_factors)}, "
            f"conditions={len(record.profile.conditions)}"
        )
        return record

    def get_context(self, user_id: str, recent: Optional[int] = None) -> Dict:
        """
        Read the user's memory plus the trimmed recent-questions view.

        Returns:
            Dict with 'memory' (MemoryRecord) and 'recentQuestions' (last N)
        """
        record = self.store.get(user_id)
        window = self.recent_window if recent is None else recent
        return {
            "memory": record,
            "recentQuestions": recent_questions(record, window),
        }


# Singleton instance
_context_service: Optional[ContextService] = None


def get_context_service() -> ContextService:
    """Get or create the context service singleton."""
    global _context_service
    if _context_service is None:
        _context_service = ContextService()
    return _context_service


def reset_context_service() -> None:
    """Reset the context service (for testing)."""
    global _context_service
    _context_service = None
