"""
Spaced Repetition Pydantic Models

Structured values passed between the scheduler, the review session
controller and the flashcard repository:
- Scheduling models (CardSchedule)
- Review models (ReviewLogEntry, GradeOutcome, SessionSummary)
"""

from .schedule_models import CardSchedule
from .review_models import ReviewLogEntry, GradeOutcome, SessionSummary

__all__ = [
    'CardSchedule',
    'ReviewLogEntry',
    'GradeOutcome',
    'SessionSummary'
]
