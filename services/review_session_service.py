"""
Review Session Service - Walks a learner through their flashcards.

A ReviewSession selects the learner's cards (all active cards, or only the
ones due), presents them one at a time, and after each grade applies the SM-2
scheduler and stores the new card state together with a review log entry.

Session lifecycle:
    idle -> selecting -> presenting -> grading -> presenting ... -> complete
    idle -> selecting -> empty (nothing to review)

Between requests the session is serialized with to_dict()/from_dict(). When
a store is given, every change is saved through it, and a grade is saved in
the same unit of work as the card update and review log entry. Dropping the
session abandons it and leaves every already-graded card as committed.
"""

import logging
import random
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from models.flashcard import Flashcard
from services.errors import InvalidGradeError, SessionStateError
from services.flashcard_repository import FlashcardRepository
from services.spaced_repetition import (
    ALL_GRADES,
    is_due,
    is_successful,
    schedule,
    to_naive_utc,
    utc_now,
)
from services.srs_models import CardSchedule, GradeOutcome, ReviewLogEntry, SessionSummary

logger = logging.getLogger(__name__)

MODE_DUE = 'due'
MODE_ALL = 'all'
VALID_MODES = [MODE_DUE, MODE_ALL]


class SessionState(Enum):
    """States of a review session"""
    IDLE = 'idle'
    SELECTING = 'selecting'
    PRESENTING = 'presenting'
    GRADING = 'grading'
    COMPLETE = 'complete'
    EMPTY = 'empty'


def validate_mode(mode: str):
    if mode not in VALID_MODES:
        raise ValueError(f"Invalid review mode: '{mode}'. Must be one of: {VALID_MODES}")


def select_cards(cards: Iterable[Flashcard], mode: str, now: datetime) -> List[Flashcard]:
    """
    Filter and order candidate cards for a session.

    Inactive cards are never reviewed. In 'due' mode only cards whose next
    review time has passed are kept; a card that was never scheduled counts as
    due. Cards are ordered by next review time (most overdue first), then id.

    Args:
        cards: The learner's cards
        mode: 'due' or 'all'
        now: Reference time for the due check

    Returns:
        Ordered list of cards to review
    """
    validate_mode(mode)

    selected = []
    for card in cards:
        if not card.is_active:
            continue
        if mode == MODE_DUE and card.next_review_at is not None and not is_due(card.next_review_at, now):
            continue
        selected.append(card)

    return sorted(
        selected,
        key=lambda c: (to_naive_utc(c.next_review_at) if c.next_review_at else datetime.min, c.id)
    )


class ReviewSession:
    """Review session state machine for a single learner"""

    def __init__(
        self,
        repository: FlashcardRepository,
        allowed_grades: Sequence[int] = ALL_GRADES,
        store=None
    ):
        self.repository = repository
        self.allowed_grades = tuple(allowed_grades)
        # Optional; anything with save(review_session) that writes inside the repository's unit of work
        self.store = store
        self.session_id: Optional[str] = None

        self.state = SessionState.IDLE
        self.learner_id: Optional[int] = None
        self.mode: Optional[str] = None
        self.browse = False

        self.card_ids: List[int] = []
        # Selection order, kept so restart() can undo a shuffle
        self.ordered_ids: List[int] = []
        self.cursor = 0

        self.correct = 0
        self.total = 0

    @property
    def size(self) -> int:
        return len(self.card_ids)

    @property
    def is_finished(self) -> bool:
        return self.state in (SessionState.COMPLETE, SessionState.EMPTY)

    @property
    def current_card_id(self) -> Optional[int]:
        if self.state not in (SessionState.PRESENTING, SessionState.GRADING):
            return None
        return self.card_ids[self.cursor]

    def _snapshot(self):
        return self.state, list(self.card_ids), list(self.ordered_ids), self.cursor, self.correct, self.total

    def _restore(self, snapshot):
        self.state, self.card_ids, self.ordered_ids, self.cursor, self.correct, self.total = snapshot

    def _persist(self, snapshot):
        """Save through the store; on failure go back to the snapshot and re-raise"""
        if self.store is None:
            return
        try:
            with self.repository.unit_of_work():
                self.store.save(self)
        except Exception:
            self._restore(snapshot)
            raise

    def start(
        self,
        learner_id: int,
        mode: str = MODE_DUE,
        now: Optional[datetime] = None,
        browse: bool = False
    ) -> SessionState:
        """
        Start the session by selecting the cards to review.

        Args:
            learner_id: The learner whose cards are reviewed
            mode: 'due' for cards due now, 'all' for every active card
            now: Reference time for the due check (defaults to current UTC time)
            browse: Allow next/previous/shuffle/restart navigation

        Returns:
            SessionState.PRESENTING, or SessionState.EMPTY when there is
            nothing to review

        Raises:
            ValueError: If learner_id or mode is invalid
            SessionStateError: If the session was already started
            PersistenceError: If the cards cannot be loaded or the session
                cannot be saved (session stays idle)
        """
        if self.state != SessionState.IDLE:
            raise SessionStateError(f"Session already started (state={self.state.value})")

        if isinstance(learner_id, bool) or not isinstance(learner_id, int) or learner_id <= 0:
            logger.error(f"Invalid learner_id: {learner_id}")
            raise ValueError(f"Invalid learner_id: {learner_id}")

        validate_mode(mode)

        now = now or utc_now()
        snapshot = self._snapshot()
        self.state = SessionState.SELECTING

        try:
            cards = self.repository.list_cards_for_learner(learner_id)
        except Exception:
            self.state = SessionState.IDLE
            raise

        selected = select_cards(cards, mode, now)

        self.learner_id = learner_id
        self.mode = mode
        self.browse = browse
        self.card_ids = [card.id for card in selected]
        self.ordered_ids = list(self.card_ids)
        self.cursor = 0
        self.correct = 0
        self.total = 0
        self.state = SessionState.PRESENTING if self.card_ids else SessionState.EMPTY

        self._persist(snapshot)

        if self.state == SessionState.EMPTY:
            logger.info(f"No cards to review for user_id={learner_id} (mode={mode})")
        else:
            logger.info(
                f"Started review session for user_id={learner_id}: mode={mode}, "
                f"cards={len(self.card_ids)}, browse={browse}"
            )

        return self.state

    def current_card(self) -> Optional[Flashcard]:
        """Load the card being presented, or None when no card is presented"""
        card_id = self.current_card_id
        if card_id is None:
            return None
        return self.repository.get_card(self.learner_id, card_id)

    def grade(self, quality: int, now: Optional[datetime] = None) -> GradeOutcome:
        """
        Grade the current card and move on to the next one.

        The card is re-read from storage, rescheduled with SM-2, and the new
        schedule, a review log entry and the advanced session are written in
        one unit of work. If anything fails, nothing is written, the cursor
        and tally stay where they were, and the same call can simply be
        retried.

        Args:
            quality: Recall quality; must be one of the allowed grades
            now: Review time (defaults to current UTC time)

        Returns:
            GradeOutcome with the schedule before and after the review

        Raises:
            SessionStateError: If no card is being presented
            InvalidGradeError: If quality is not an allowed grade
            CardNotFoundError: If the card no longer exists
            PersistenceError: If loading or saving fails
        """
        if self.state != SessionState.PRESENTING:
            raise SessionStateError(f"No card to grade (state={self.state.value})")

        if isinstance(quality, bool) or not isinstance(quality, int) or quality not in self.allowed_grades:
            raise InvalidGradeError(quality, self.allowed_grades)

        now = now or utc_now()
        card_id = self.card_ids[self.cursor]
        snapshot = self._snapshot()
        self.state = SessionState.GRADING

        try:
            card = self.repository.get_card(self.learner_id, card_id)
            before = CardSchedule(
                ease_factor=card.ease_factor,
                interval=card.interval,
                repetitions=card.repetitions,
                next_review_at=card.next_review_at or now
            )
            after = schedule(
                quality=quality,
                ease_factor=before.ease_factor,
                interval=before.interval,
                repetitions=before.repetitions,
                now=now
            )
            entry = ReviewLogEntry(
                flashcard_id=card_id,
                user_id=self.learner_id,
                quality=quality,
                ease_factor_before=before.ease_factor,
                ease_factor_after=after.ease_factor,
                interval_before=before.interval,
                interval_after=after.interval,
                reviewed_at=now
            )
            was_correct = is_successful(quality)

            with self.repository.unit_of_work():
                self.repository.update_card_schedule(card_id, after)
                self.repository.append_review_log(entry)

                self.total += 1
                if was_correct:
                    self.correct += 1
                self._advance()

                if self.store is not None:
                    self.store.save(self)

        except Exception as e:
            self._restore(snapshot)
            logger.warning(
                f"Grading failed for user_id={self.learner_id}, flashcard_id={card_id}: {str(e)}"
            )
            raise

        logger.info(
            f"Graded flashcard_id={card_id} quality={quality}: interval {before.interval} -> "
            f"{after.interval}, ease {before.ease_factor} -> {after.ease_factor}"
        )
        if self.state == SessionState.COMPLETE:
            logger.info(
                f"Review session complete for user_id={self.learner_id}: "
                f"{self.correct}/{self.total} correct"
            )

        return GradeOutcome(
            card_id=card_id,
            quality=quality,
            was_correct=was_correct,
            before=before,
            after=after,
            state=self.state.value,
            next_card_id=self.current_card_id
        )

    def _advance(self):
        self.cursor += 1
        if self.cursor >= len(self.card_ids):
            self.state = SessionState.COMPLETE
        else:
            self.state = SessionState.PRESENTING

    def _require_browsing(self, action: str):
        if not self.browse:
            raise SessionStateError(f"Cannot {action}: session was not started in browse mode")
        if self.state != SessionState.PRESENTING:
            raise SessionStateError(f"Cannot {action} in state '{self.state.value}'")

    def next_card(self) -> int:
        """Show the next card without grading; stays put on the last card"""
        self._require_browsing('move to next card')
        snapshot = self._snapshot()
        if self.cursor < len(self.card_ids) - 1:
            self.cursor += 1
        self._persist(snapshot)
        return self.cursor

    def previous_card(self) -> int:
        """Show the previous card without grading; stays put on the first card"""
        self._require_browsing('move to previous card')
        snapshot = self._snapshot()
        if self.cursor > 0:
            self.cursor -= 1
        self._persist(snapshot)
        return self.cursor

    def shuffle(self, rng: Optional[random.Random] = None) -> List[int]:
        """Shuffle the cards and go back to the first one"""
        self._require_browsing('shuffle')
        snapshot = self._snapshot()
        rng = rng or random.Random()
        rng.shuffle(self.card_ids)
        self.cursor = 0
        self._persist(snapshot)
        return list(self.card_ids)

    def restart(self) -> SessionState:
        """Go back to the first card in selection order and clear the tally"""
        if not self.browse:
            raise SessionStateError("Cannot restart: session was not started in browse mode")
        if self.state not in (SessionState.PRESENTING, SessionState.COMPLETE):
            raise SessionStateError(f"Cannot restart in state '{self.state.value}'")

        snapshot = self._snapshot()
        self.card_ids = list(self.ordered_ids)
        self.cursor = 0
        self.correct = 0
        self.total = 0
        self.state = SessionState.PRESENTING
        self._persist(snapshot)
        return self.state

    def summary(self) -> SessionSummary:
        """Current progress of the session"""
        if self.state in (SessionState.PRESENTING, SessionState.GRADING):
            position = self.cursor + 1
        elif self.state == SessionState.COMPLETE:
            position = len(self.card_ids)
        else:
            position = 0

        return SessionSummary(
            state=self.state.value,
            mode=self.mode or MODE_DUE,
            position=position,
            size=len(self.card_ids),
            correct=self.correct,
            total=self.total,
            accuracy=self.correct / self.total if self.total else 0.0
        )

    def to_dict(self) -> dict:
        """Serialize the session so it can be carried between requests"""
        return {
            'session_id': self.session_id,
            'state': self.state.value,
            'learner_id': self.learner_id,
            'mode': self.mode,
            'browse': self.browse,
            'card_ids': list(self.card_ids),
            'ordered_ids': list(self.ordered_ids),
            'cursor': self.cursor,
            'correct': self.correct,
            'total': self.total,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict,
        repository: FlashcardRepository,
        allowed_grades: Sequence[int] = ALL_GRADES,
        store=None
    ) -> 'ReviewSession':
        """
        Rebuild a session serialized with to_dict().

        Raises:
            ValueError: If the data is not a valid serialized session
        """
        try:
            state = SessionState(data['state'])
            card_ids = [int(card_id) for card_id in data['card_ids']]
            cursor = int(data['cursor'])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid review session data: {str(e)}") from e

        # A request never ends mid-grade, so a stored grading state is back to presenting
        if state == SessionState.GRADING:
            state = SessionState.PRESENTING

        if state == SessionState.PRESENTING and not 0 <= cursor < len(card_ids):
            raise ValueError(f"Invalid review session data: cursor {cursor} out of range")

        session = cls(repository, allowed_grades, store=store)
        session.session_id = data.get('session_id')
        session.state = state
        session.learner_id = data.get('learner_id')
        session.mode = data.get('mode')
        session.browse = bool(data.get('browse', False))
        session.card_ids = card_ids
        session.ordered_ids = [int(card_id) for card_id in data.get('ordered_ids', card_ids)]
        session.cursor = cursor
        session.correct = int(data.get('correct', 0))
        session.total = int(data.get('total', 0))
        return session
