"""
Review Session Store - Keeps review session state on the server.

Only the session id travels in the session cookie; the card order, cursor and
tally live in the review_sessions table. A learner has at most one stored
session: saving a new one replaces the previous. Writes are only flushed, so
they commit together with whatever else the surrounding unit of work writes.
"""

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.review_session_record import ReviewSessionRecord
from services.errors import PersistenceError, SessionStateError
from services.flashcard_repository import FlashcardRepository
from services.review_session_service import ReviewSession
from services.spaced_repetition import ALL_GRADES

logger = logging.getLogger(__name__)


class SQLAlchemyReviewSessionStore:
    """Stores review sessions in the application's SQLAlchemy session"""

    def __init__(self, session=None):
        self.session = session or db.session

    def save(self, review_session: ReviewSession) -> ReviewSessionRecord:
        """
        Write the session's current state.

        A session without an id is stored under a new one, replacing any
        other session of the same learner.

        Raises:
            SessionStateError: If the session was removed in the meantime
            PersistenceError: If the write fails
        """
        data = review_session.to_dict()
        try:
            if review_session.session_id is None:
                self.session.query(ReviewSessionRecord).filter_by(
                    user_id=review_session.learner_id
                ).delete()
                record = ReviewSessionRecord(
                    session_id=str(uuid.uuid4()),
                    user_id=review_session.learner_id
                )
                self.session.add(record)
            else:
                record = self.session.get(ReviewSessionRecord, review_session.session_id)
                if record is None:
                    raise SessionStateError(f"Review session {review_session.session_id} no longer exists")

            record.state = data['state']
            record.mode = data['mode']
            record.browse = data['browse']
            record.card_ids = data['card_ids']
            record.ordered_ids = data['ordered_ids']
            record.cursor = data['cursor']
            record.correct = data['correct']
            record.total = data['total']
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save review session for user_id={review_session.learner_id}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to save review session: {str(e)}") from e

        review_session.session_id = record.session_id
        return record

    def load(
        self,
        session_id,
        learner_id: int,
        repository: FlashcardRepository,
        allowed_grades: Sequence[int] = ALL_GRADES
    ) -> Optional[ReviewSession]:
        """Rebuild the learner's stored session, or None if there is none"""
        if not session_id or not isinstance(session_id, str):
            return None

        try:
            record = self.session.query(ReviewSessionRecord).filter_by(
                session_id=session_id,
                user_id=learner_id
            ).populate_existing().first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load review session {session_id}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to load review session: {str(e)}") from e

        if record is None:
            return None

        return ReviewSession.from_dict(
            {
                'session_id': record.session_id,
                'state': record.state,
                'learner_id': record.user_id,
                'mode': record.mode,
                'browse': record.browse,
                'card_ids': record.card_ids,
                'ordered_ids': record.ordered_ids,
                'cursor': record.cursor,
                'correct': record.correct,
                'total': record.total,
            },
            repository,
            allowed_grades,
            store=self
        )

    def delete(self, session_id, learner_id: int) -> bool:
        """Remove a stored session; returns False if there was none"""
        if not session_id or not isinstance(session_id, str):
            return False

        try:
            deleted = self.session.query(ReviewSessionRecord).filter_by(
                session_id=session_id,
                user_id=learner_id
            ).delete()
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete review session {session_id}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to delete review session: {str(e)}") from e

        return deleted > 0
