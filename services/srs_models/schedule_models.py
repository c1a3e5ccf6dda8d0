"""
Scheduling Pydantic Models

The scheduling state carried by every flashcard, as produced by the SM-2
scheduler and consumed by the repository when persisting a review.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CardSchedule(BaseModel):
    """
    Scheduling state of a single flashcard.

    Example:
    {
        "ease_factor": 2.6,
        "interval": 15,
        "repetitions": 3,
        "next_review_at": "2025-01-16T09:30:00"
    }
    """
    model_config = ConfigDict(frozen=True)

    ease_factor: float = Field(
        ge=1.3,
        description="Multiplier controlling interval growth, never below 1.3"
    )
    interval: int = Field(
        ge=0,
        description="Days until the next review"
    )
    repetitions: int = Field(
        ge=0,
        description="Consecutive successful reviews since the last lapse"
    )
    next_review_at: datetime = Field(
        description="When the card becomes due again"
    )
