"""Flashcard Service - Creates and manages a learner's flashcards"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from models import db
from models.flashcard import Flashcard
from models.flashcard_review import FlashcardReview
from services.errors import CardNotFoundError
from services.flashcard_repository import SQLAlchemyFlashcardRepository
from services.spaced_repetition import initial_schedule, replay_reviews, utc_now

logger = logging.getLogger(__name__)


def _validate_user_id(user_id: int):
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        logger.error(f"Invalid user_id: {user_id}")
        raise ValueError(f"Invalid user_id: {user_id}")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _build_flashcard(user_id: int, word: str, translation: str, now: datetime, **details) -> Flashcard:
    if not word or not word.strip():
        raise ValueError("word is required")
    if not translation or not translation.strip():
        raise ValueError("translation is required")

    card_schedule = initial_schedule(now)
    return Flashcard(
        user_id=user_id,
        word=word,
        translation=translation,
        definition=_clean(details.get('definition')),
        example_sentence=_clean(details.get('example_sentence')),
        pronunciation=_clean(details.get('pronunciation')),
        text_id=details.get('text_id'),
        is_active=True,
        ease_factor=card_schedule.ease_factor,
        interval=card_schedule.interval,
        repetitions=card_schedule.repetitions,
        next_review_at=card_schedule.next_review_at
    )


def create_flashcard(
    user_id: int,
    word: str,
    translation: str,
    definition: Optional[str] = None,
    example_sentence: Optional[str] = None,
    pronunciation: Optional[str] = None,
    text_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Flashcard:
    """
    Create a new flashcard that is due for review immediately.

    Args:
        user_id: The ID of the owning learner
        word: Portuguese word or expression
        translation: English translation
        definition: Optional definition
        example_sentence: Optional example sentence
        pronunciation: Optional pronunciation hint
        text_id: Optional ID of the reading text the word came from
        now: Creation time (defaults to current UTC time)

    Returns:
        The created Flashcard

    Raises:
        ValueError: If user_id, word or translation is invalid

    Example:
        >>> card = create_flashcard(user_id=1, word='obrigado', translation='thank you')
        >>> card.ease_factor, card.interval, card.repetitions
        (2.5, 0, 0)
    """
    _validate_user_id(user_id)

    card = _build_flashcard(
        user_id,
        word,
        translation,
        now or utc_now(),
        definition=definition,
        example_sentence=example_sentence,
        pronunciation=pronunciation,
        text_id=text_id
    )

    try:
        db.session.add(card)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create flashcard for user_id={user_id}: {str(e)}", exc_info=True)
        raise RuntimeError(f"Failed to create flashcard: {str(e)}")

    logger.info(f"Created flashcard: user_id={user_id}, flashcard_id={card.id}, word='{card.word}'")
    return card


def import_vocabulary(user_id: int, entries: Iterable[dict], now: Optional[datetime] = None) -> dict:
    """
    Create flashcards in bulk from vocabulary entries.

    Entries are dicts with 'word' and 'translation' plus the optional
    'definition', 'example_sentence' and 'pronunciation' keys. Words the
    learner already has (case-insensitive) are skipped, as are duplicates
    within the same import.

    Args:
        user_id: The ID of the owning learner
        entries: Vocabulary entries to import
        now: Creation time (defaults to current UTC time)

    Returns:
        dict: {'created': int, 'skipped': int}

    Raises:
        ValueError: If user_id is invalid or an entry lacks word/translation
    """
    _validate_user_id(user_id)
    now = now or utc_now()

    existing = {
        word.lower()
        for (word,) in db.session.query(Flashcard.word).filter_by(user_id=user_id).all()
    }

    created = 0
    skipped = 0
    try:
        for index, entry in enumerate(entries):
            word = (entry.get('word') or '').strip()
            if word.lower() in existing:
                skipped += 1
                continue

            try:
                card = _build_flashcard(
                    user_id,
                    word,
                    entry.get('translation') or '',
                    now,
                    definition=entry.get('definition'),
                    example_sentence=entry.get('example_sentence'),
                    pronunciation=entry.get('pronunciation')
                )
            except ValueError as e:
                raise ValueError(f"Invalid vocabulary entry #{index + 1}: {str(e)}")

            db.session.add(card)
            existing.add(word.lower())
            created += 1

        db.session.commit()
    except ValueError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to import vocabulary for user_id={user_id}: {str(e)}", exc_info=True)
        raise RuntimeError(f"Failed to import vocabulary: {str(e)}")

    logger.info(f"Imported vocabulary for user_id={user_id}: created={created}, skipped={skipped}")
    return {'created': created, 'skipped': skipped}


def list_flashcards(user_id: int, include_inactive: bool = False) -> List[Flashcard]:
    """
    Get a learner's flashcards ordered by next review time.

    Args:
        user_id: The ID of the owning learner
        include_inactive: Also return deactivated cards

    Returns:
        List of Flashcard objects
    """
    query = Flashcard.query.filter_by(user_id=user_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Flashcard.next_review_at.asc(), Flashcard.id.asc()).all()


def deactivate_flashcard(user_id: int, card_id: int) -> Flashcard:
    """
    Remove a flashcard from review without deleting its history.

    Raises:
        CardNotFoundError: If the card does not exist for this learner
    """
    card = Flashcard.query.filter_by(id=card_id, user_id=user_id).first()
    if not card:
        raise CardNotFoundError(f"Flashcard {card_id} not found for user {user_id}")

    card.is_active = False
    db.session.commit()

    logger.info(f"Deactivated flashcard: user_id={user_id}, flashcard_id={card_id}")
    return card


def recompute_schedules(user_id: Optional[int] = None, apply: bool = False) -> List[dict]:
    """
    Replay each card's review log through the scheduler and report drift.

    Cards without reviews are left alone. Intended for migrations, or for
    repairing card state after the scheduler's rules change.

    Args:
        user_id: Limit to one learner (default: all learners)
        apply: Write the replayed schedule to cards that drifted

    Returns:
        List of {'flashcard_id', 'stored', 'replayed'} dicts, one per card whose
        stored schedule differs from the replayed one
    """
    repository = SQLAlchemyFlashcardRepository()

    query = Flashcard.query
    if user_id is not None:
        query = query.filter_by(user_id=user_id)

    drifted = []
    for card in query.order_by(Flashcard.id.asc()).all():
        reviews = card.reviews.order_by(
            FlashcardReview.reviewed_at.asc(),
            FlashcardReview.id.asc()
        ).all()
        if not reviews:
            continue

        replayed = replay_reviews((review.quality, review.reviewed_at) for review in reviews)
        stored = {
            'ease_factor': card.ease_factor,
            'interval': card.interval,
            'repetitions': card.repetitions,
            'next_review_at': card.next_review_at,
        }
        if stored == replayed.model_dump():
            continue

        drifted.append({
            'flashcard_id': card.id,
            'stored': stored,
            'replayed': replayed.model_dump(),
        })

        if apply:
            with repository.unit_of_work():
                repository.update_card_schedule(card.id, replayed)
            logger.info(f"Recomputed schedule for flashcard_id={card.id}")

    logger.info(f"Schedule recompute finished: {len(drifted)} card(s) drifted, apply={apply}")
    return drifted
