"""
Review Pydantic Models

Structured values produced while reviewing flashcards: the immutable review
log entry, the outcome of grading one card, and the session tally.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .schedule_models import CardSchedule


class ReviewLogEntry(BaseModel):
    """
    One graded review, written once and never modified.

    Example:
    {
        "flashcard_id": 12,
        "user_id": 3,
        "quality": 5,
        "ease_factor_before": 2.5,
        "ease_factor_after": 2.6,
        "interval_before": 6,
        "interval_after": 15,
        "reviewed_at": "2025-01-01T09:30:00"
    }
    """
    model_config = ConfigDict(frozen=True)

    flashcard_id: int
    user_id: int
    quality: int = Field(ge=0, le=5, description="Recall quality grade (0-5)")
    ease_factor_before: float
    ease_factor_after: float
    interval_before: int
    interval_after: int
    reviewed_at: datetime


class GradeOutcome(BaseModel):
    """Result of grading the current card of a review session"""
    card_id: int
    quality: int
    was_correct: bool
    before: CardSchedule
    after: CardSchedule
    state: str = Field(description="Session state after the grade was applied")
    next_card_id: Optional[int] = Field(
        default=None,
        description="Card presented next (null once the session is complete)"
    )


class SessionSummary(BaseModel):
    """Progress of a review session"""
    state: str
    mode: str
    position: int = Field(description="1-based position of the current card, 0 when none")
    size: int
    correct: int
    total: int
    accuracy: float = Field(description="correct / total, 0.0 before the first grade")
