"""
Unit tests for SQLAlchemyFlashcardRepository.

Tests reading cards, writing schedules and review logs, and the
unit_of_work commit/rollback behaviour.
"""

import sys
import os
import pytest
from datetime import datetime, timedelta, timezone

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db
from models.user import User
from models.flashcard import Flashcard
from models.flashcard_review import FlashcardReview
from services.errors import CardNotFoundError, PersistenceError
from services.flashcard_repository import SQLAlchemyFlashcardRepository
from services.srs_models import CardSchedule, ReviewLogEntry

NOW = datetime(2025, 1, 10, 12, 0, 0)


@pytest.fixture(scope='function')
def app_context():
    """Create a fresh app context and database for each test"""
    app = create_app('testing')
    app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
    app.config['TESTING'] = True

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def users(app_context):
    """Two learners"""
    alice = User(external_id='alice', email='alice@example.com', name='Alice')
    bruno = User(external_id='bruno', email='bruno@example.com', name='Bruno')
    db.session.add_all([alice, bruno])
    db.session.commit()
    return alice, bruno


@pytest.fixture
def card(users):
    """A card owned by the first learner"""
    card = Flashcard(user_id=users[0].id, word='gato', translation='cat', next_review_at=NOW)
    db.session.add(card)
    db.session.commit()
    return card


@pytest.fixture
def repository(app_context):
    return SQLAlchemyFlashcardRepository()


def _entry(card, **overrides):
    values = dict(
        flashcard_id=card.id,
        user_id=card.user_id,
        quality=5,
        ease_factor_before=2.5,
        ease_factor_after=2.6,
        interval_before=0,
        interval_after=1,
        reviewed_at=NOW
    )
    values.update(overrides)
    return ReviewLogEntry(**values)


class TestReads:
    """Test list_cards_for_learner and get_card"""

    def test_lists_only_learner_cards(self, repository, users, card):
        other = Flashcard(user_id=users[1].id, word='cão', translation='dog')
        db.session.add(other)
        db.session.commit()

        cards = repository.list_cards_for_learner(users[0].id)

        assert [c.id for c in cards] == [card.id]

    def test_get_card_of_other_learner_is_not_found(self, repository, users, card):
        with pytest.raises(CardNotFoundError):
            repository.get_card(users[1].id, card.id)

    def test_get_card_rereads_stored_state(self, repository, users, card):
        assert card.interval == 0

        # Another writer changes the row behind the identity map
        db.session.execute(
            db.text('UPDATE flashcards SET "interval" = 9 WHERE id = :id'),
            {'id': card.id}
        )

        loaded = repository.get_card(users[0].id, card.id)
        assert loaded.interval == 9


class TestWrites:
    """Test update_card_schedule, append_review_log and unit_of_work"""

    def test_unit_of_work_commits_both_writes(self, repository, card):
        new_schedule = CardSchedule(
            ease_factor=2.6, interval=1, repetitions=1, next_review_at=NOW + timedelta(days=1)
        )

        with repository.unit_of_work():
            repository.update_card_schedule(card.id, new_schedule)
            repository.append_review_log(_entry(card))

        db.session.expire_all()
        stored = db.session.get(Flashcard, card.id)
        assert (stored.ease_factor, stored.interval, stored.repetitions) == (2.6, 1, 1)
        assert FlashcardReview.query.count() == 1

    def test_unit_of_work_rolls_back_on_error(self, repository, card):
        new_schedule = CardSchedule(
            ease_factor=2.6, interval=1, repetitions=1, next_review_at=NOW + timedelta(days=1)
        )

        with pytest.raises(RuntimeError):
            with repository.unit_of_work():
                repository.update_card_schedule(card.id, new_schedule)
                raise RuntimeError('crash between writes')

        stored = db.session.get(Flashcard, card.id)
        assert stored.repetitions == 0
        assert FlashcardReview.query.count() == 0

    def test_update_missing_card(self, repository, app_context):
        new_schedule = CardSchedule(ease_factor=2.5, interval=1, repetitions=1, next_review_at=NOW)
        with pytest.raises(CardNotFoundError):
            repository.update_card_schedule(404, new_schedule)

    def test_aware_timestamps_are_stored_as_utc(self, repository, card):
        aware = datetime(2025, 1, 10, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        new_schedule = CardSchedule(ease_factor=2.5, interval=1, repetitions=1, next_review_at=aware)

        with repository.unit_of_work():
            repository.update_card_schedule(card.id, new_schedule)
            repository.append_review_log(_entry(card, reviewed_at=aware))

        stored = db.session.get(Flashcard, card.id)
        assert stored.next_review_at == NOW
        assert FlashcardReview.query.one().reviewed_at == NOW

    def test_database_error_becomes_persistence_error(self, repository, card):
        # ease_factor_after is NOT NULL, so the flush fails inside the database
        entry = _entry(card)
        with pytest.raises(PersistenceError) as excinfo:
            with repository.unit_of_work():
                repository.session.add(FlashcardReview(
                    flashcard_id=card.id,
                    user_id=card.user_id,
                    quality=entry.quality,
                    ease_factor_before=2.5,
                    ease_factor_after=None,
                    interval_before=0,
                    interval_after=1
                ))
                repository.session.flush()

        assert excinfo.value.retryable is True
        assert FlashcardReview.query.count() == 0
