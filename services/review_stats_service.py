"""
Review Stats Service - Progress reporting from flashcards and the review log.

The review log is only read here, for reporting; scheduling never looks at it.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from models import db
from models.flashcard import Flashcard
from models.flashcard_review import FlashcardReview
from services.spaced_repetition import PASSING_QUALITY, estimate_retention, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_DAYS = 7


def get_review_stats(user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Get the learner's flashcard totals.

    Args:
        user_id: The ID of the learner
        now: Reference time for the due count (defaults to current UTC time)

    Returns:
        dict: {
            'total_flashcards': int,   # active cards
            'total_reviews': int,      # review log entries
            'due_today': int,          # active cards due at `now`
            'retention_rate': float    # share of reviews with quality >= 3
        }
    """
    now = to_naive_utc(now or utc_now())

    active_cards = Flashcard.query.filter_by(user_id=user_id, is_active=True)
    total_flashcards = active_cards.count()
    due_today = active_cards.filter(
        or_(Flashcard.next_review_at.is_(None), Flashcard.next_review_at <= now)
    ).count()

    reviews = FlashcardReview.query.filter_by(user_id=user_id)
    total_reviews = reviews.count()
    correct_reviews = reviews.filter(FlashcardReview.quality >= PASSING_QUALITY).count()

    stats = {
        'total_flashcards': total_flashcards,
        'total_reviews': total_reviews,
        'due_today': due_today,
        'retention_rate': estimate_retention(correct_reviews, total_reviews - correct_reviews),
    }

    logger.debug(f"Review stats for user_id={user_id}: {stats}")
    return stats


def get_recent_reviews(
    user_id: int,
    now: Optional[datetime] = None,
    days: int = DEFAULT_ACTIVITY_DAYS
) -> List[Dict[str, Any]]:
    """
    Get review activity per day for the last `days` days.

    Args:
        user_id: The ID of the learner
        now: End of the window (defaults to current UTC time)
        days: Window length in days

    Returns:
        List of {'day': 'YYYY-MM-DD', 'reviews': int, 'correct': int}
        for days with at least one review, oldest first

    Raises:
        ValueError: If days is not a positive integer
    """
    if not isinstance(days, int) or days <= 0:
        raise ValueError(f"days must be a positive integer, got: {days}")

    now = to_naive_utc(now or utc_now())
    since = now - timedelta(days=days)

    rows = db.session.query(FlashcardReview.reviewed_at, FlashcardReview.quality).filter(
        FlashcardReview.user_id == user_id,
        FlashcardReview.reviewed_at >= since,
        FlashcardReview.reviewed_at <= now
    ).order_by(FlashcardReview.reviewed_at.asc()).all()

    grouped: Dict[str, Dict[str, Any]] = {}
    for reviewed_at, quality in rows:
        day = reviewed_at.date().isoformat()
        if day not in grouped:
            grouped[day] = {'day': day, 'reviews': 0, 'correct': 0}
        grouped[day]['reviews'] += 1
        if quality >= PASSING_QUALITY:
            grouped[day]['correct'] += 1

    return list(grouped.values())
