"""Spaced repetition algorithm implementation (SM-2)

Quality ratings:
    0 - Complete blackout, no recognition
    1 - Incorrect, but recognized
    2 - Incorrect, but seemed easy to recall
    3 - Correct, but with serious difficulty
    4 - Correct, with some hesitation
    5 - Perfect response, no hesitation

Everything in this module is pure: the current time is always passed in.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from services.srs_models import CardSchedule

MIN_QUALITY = 0
MAX_QUALITY = 5
ALL_GRADES = tuple(range(MIN_QUALITY, MAX_QUALITY + 1))

# A review with at least this quality counts as a successful recall
PASSING_QUALITY = 3

INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
FIRST_INTERVAL = 1  # First successful review: 1 day
SECOND_INTERVAL = 6  # Second successful review: 6 days
LAPSE_INTERVAL = 1

QUALITY_LABELS = {
    0: 'Again',
    1: 'Hard',
    2: 'Difficult',
    3: 'Good',
    4: 'Easy',
    5: 'Perfect',
}


def utc_now() -> datetime:
    """Current time as naive UTC, the form timestamps are stored in"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _round_half_up(value: float, places: str = '1') -> Decimal:
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def is_successful(quality: int) -> bool:
    """Return True if the grade counts as a successful recall"""
    return quality >= PASSING_QUALITY


def schedule(
    quality: int,
    ease_factor: float,
    interval: int,
    repetitions: int,
    now: datetime
) -> CardSchedule:
    """
    Calculate the next scheduling state of a card using SM-2.

    Args:
        quality: Quality of response (0-5). Callers must pass a valid grade;
                 the value is not checked here.
        ease_factor: Current ease factor (>= 1.3, 2.5 for a new card)
        interval: Current review interval in days
        repetitions: Consecutive successful reviews since the last lapse
        now: Moment of the review; next_review_at is anchored on it

    Returns:
        CardSchedule with the new ease factor, interval, repetitions and
        next review date

    Example:
        >>> result = schedule(5, 2.5, 6, 2, now=datetime(2025, 1, 1))
        >>> result.ease_factor, result.interval, result.repetitions
        (2.6, 15, 3)
    """
    new_ease_factor = ease_factor

    if is_successful(quality):
        if repetitions == 0:
            new_interval = FIRST_INTERVAL
        elif repetitions == 1:
            new_interval = SECOND_INTERVAL
        else:
            new_interval = int(_round_half_up(interval * ease_factor))

        new_repetitions = repetitions + 1

        miss = MAX_QUALITY - quality
        new_ease_factor = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
        if new_ease_factor < MIN_EASE_FACTOR:
            new_ease_factor = MIN_EASE_FACTOR
    else:
        # Lapse: start over, ease is left alone
        new_interval = LAPSE_INTERVAL
        new_repetitions = 0

    return CardSchedule(
        ease_factor=float(_round_half_up(new_ease_factor, '0.01')),
        interval=new_interval,
        repetitions=new_repetitions,
        next_review_at=now + timedelta(days=new_interval)
    )


def initial_schedule(now: datetime) -> CardSchedule:
    """Scheduling state of a card that has never been reviewed (due immediately)"""
    return CardSchedule(
        ease_factor=INITIAL_EASE_FACTOR,
        interval=0,
        repetitions=0,
        next_review_at=now
    )


def replay_reviews(
    reviews: Iterable[Tuple[int, datetime]],
    initial: Optional[CardSchedule] = None
) -> Optional[CardSchedule]:
    """
    Recompute a card's scheduling state from its review history.

    Args:
        reviews: (quality, reviewed_at) pairs in chronological order
        initial: State to start from (defaults to a new card)

    Returns:
        The state after the last review, or `initial` if there are no reviews
    """
    state = initial
    for quality, reviewed_at in reviews:
        if state is None:
            state = initial_schedule(reviewed_at)
        state = schedule(
            quality=quality,
            ease_factor=state.ease_factor,
            interval=state.interval,
            repetitions=state.repetitions,
            now=reviewed_at
        )
    return state


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_due(next_review_at: datetime, now: datetime) -> bool:
    """
    Check whether a card is due for review.

    A card is due when its next review time is at or before `now`. Naive
    datetimes are taken as UTC, so stored and aware values compare safely.
    """
    return to_naive_utc(next_review_at) <= to_naive_utc(now)


def format_interval(days: int) -> str:
    """Format an interval in days for display"""
    if days == 0:
        return 'Now'
    if days == 1:
        return '1 day'
    if days < 7:
        return f'{days} days'
    if days < 30:
        weeks = int(_round_half_up(days / 7))
        return '1 week' if weeks == 1 else f'{weeks} weeks'
    if days < 365:
        months = int(_round_half_up(days / 30))
        return '1 month' if months == 1 else f'{months} months'
    years = int(_round_half_up(days / 365))
    return '1 year' if years == 1 else f'{years} years'


def quality_label(quality: int) -> str:
    """Get the display label for a quality grade"""
    return QUALITY_LABELS.get(quality, 'Unknown')


def quality_variant(quality: int) -> str:
    """Get the button style used to present a quality grade"""
    if quality <= 1:
        return 'destructive'
    if quality == 2:
        return 'outline'
    if quality <= 4:
        return 'secondary'
    return 'default'


def estimate_retention(correct_count: int, incorrect_count: int) -> float:
    """
    Estimate retention rate from review outcomes

    Args:
        correct_count: Number of successful reviews
        incorrect_count: Number of lapses

    Returns:
        Retention rate (0-1)
    """
    total = correct_count + incorrect_count
    if total == 0:
        return 0.0
    return correct_count / total
