"""
Flashcard Repository - Storage access used by the review session controller.

The controller only talks to the abstract FlashcardRepository, so the storage
engine can be swapped without touching the review logic. Writes made inside
unit_of_work() are committed together or not at all.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.flashcard import Flashcard
from models.flashcard_review import FlashcardReview
from services.errors import CardNotFoundError, PersistenceError
from services.spaced_repetition import to_naive_utc
from services.srs_models import CardSchedule, ReviewLogEntry

logger = logging.getLogger(__name__)


class FlashcardRepository(ABC):
    """Abstract base class for flashcard storage"""

    @abstractmethod
    def list_cards_for_learner(self, learner_id: int) -> List[Flashcard]:
        """Return every flashcard owned by the learner"""
        pass

    @abstractmethod
    def get_card(self, learner_id: int, card_id: int) -> Flashcard:
        """
        Load a single card with its current stored state.

        Raises:
            CardNotFoundError: If the card does not exist for this learner
        """
        pass

    @abstractmethod
    def update_card_schedule(self, card_id: int, card_schedule: CardSchedule) -> Flashcard:
        """Store new scheduling state on a card"""
        pass

    @abstractmethod
    def append_review_log(self, entry: ReviewLogEntry) -> FlashcardReview:
        """Append an immutable review log entry"""
        pass

    @abstractmethod
    def unit_of_work(self):
        """
        Context manager grouping writes into one atomic unit.

        Everything written inside the block is committed when the block exits
        normally and discarded when it raises.
        """
        pass


class SQLAlchemyFlashcardRepository(FlashcardRepository):
    """FlashcardRepository backed by the application's SQLAlchemy session"""

    def __init__(self, session=None):
        self.session = session or db.session

    def list_cards_for_learner(self, learner_id: int) -> List[Flashcard]:
        try:
            return self.session.query(Flashcard).filter_by(user_id=learner_id).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list flashcards for user_id={learner_id}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to load flashcards: {str(e)}") from e

    def get_card(self, learner_id: int, card_id: int) -> Flashcard:
        try:
            # populate_existing re-reads the row instead of trusting the identity map
            card = self.session.query(Flashcard).filter_by(
                id=card_id,
                user_id=learner_id
            ).populate_existing().first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load flashcard {card_id}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to load flashcard: {str(e)}") from e

        if card is None:
            raise CardNotFoundError(f"Flashcard {card_id} not found for user {learner_id}")
        return card

    def update_card_schedule(self, card_id: int, card_schedule: CardSchedule) -> Flashcard:
        try:
            card = self.session.get(Flashcard, card_id)
            if card is None:
                raise CardNotFoundError(f"Flashcard {card_id} not found")

            card.ease_factor = card_schedule.ease_factor
            card.interval = card_schedule.interval
            card.repetitions = card_schedule.repetitions
            card.next_review_at = to_naive_utc(card_schedule.next_review_at)
            self.session.flush()
            return card
        except SQLAlchemyError as e:
            logger.error(f"Failed to update schedule for flashcard {card_id}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to update flashcard schedule: {str(e)}") from e

    def append_review_log(self, entry: ReviewLogEntry) -> FlashcardReview:
        try:
            values = entry.model_dump()
            values['reviewed_at'] = to_naive_utc(entry.reviewed_at)
            review = FlashcardReview(**values)
            self.session.add(review)
            self.session.flush()
            return review
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to append review log for flashcard {entry.flashcard_id}: {str(e)}",
                exc_info=True
            )
            raise PersistenceError(f"Failed to append review log: {str(e)}") from e

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Review transaction failed, rolled back: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to save review: {str(e)}") from e
        except Exception:
            self.session.rollback()
            raise
