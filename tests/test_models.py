"""
Model tests: defaults, validators, and the append-only review log.
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
from models.review_session_record import ReviewSessionRecord


@pytest.fixture(scope='function')
def app_context():
    """Create a fresh app context and database for each test"""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def test_user(app_context):
    user = User(external_id='model_user', email='model@example.com', name='Model User')
    db.session.add(user)
    db.session.commit()
    return user


class TestUser:

    def test_invalid_email_rejected(self, app_context):
        with pytest.raises(ValueError):
            User(external_id='x', email='not-an-email')

    def test_missing_email_rejected(self, app_context):
        with pytest.raises(ValueError):
            User(external_id='x', email='')


class TestFlashcard:

    def test_new_card_defaults(self, test_user):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        card = Flashcard(user_id=test_user.id, word='  saudade ', translation='longing')
        db.session.add(card)
        db.session.commit()

        assert card.word == 'saudade'
        assert card.ease_factor == 2.5
        assert card.interval == 0
        assert card.repetitions == 0
        assert card.is_active is True
        # Immediately due
        assert before - timedelta(seconds=1) <= card.next_review_at <= datetime.now(timezone.utc).replace(tzinfo=None)

    def test_ease_factor_floor(self, test_user):
        with pytest.raises(ValueError):
            Flashcard(user_id=test_user.id, word='pão', translation='bread', ease_factor=1.29)

    @pytest.mark.parametrize('field', ['interval', 'repetitions'])
    def test_negative_counters_rejected(self, test_user, field):
        with pytest.raises(ValueError):
            Flashcard(user_id=test_user.id, word='pão', translation='bread', **{field: -1})

    def test_empty_translation_rejected(self, test_user):
        with pytest.raises(ValueError):
            Flashcard(user_id=test_user.id, word='pão', translation='   ')

    def test_to_dict(self, test_user):
        card = Flashcard(
            user_id=test_user.id,
            word='pão',
            translation='bread',
            next_review_at=datetime(2025, 1, 10, 12, 0)
        )
        db.session.add(card)
        db.session.commit()

        data = card.to_dict()
        assert data['word'] == 'pão'
        assert data['next_review_at'] == '2025-01-10T12:00:00'


class TestFlashcardReview:

    @pytest.fixture
    def review(self, test_user):
        card = Flashcard(user_id=test_user.id, word='rua', translation='street')
        db.session.add(card)
        db.session.flush()

        review = FlashcardReview(
            flashcard_id=card.id,
            user_id=test_user.id,
            quality=3,
            ease_factor_before=2.5,
            ease_factor_after=2.36,
            interval_before=0,
            interval_after=1
        )
        db.session.add(review)
        db.session.commit()
        return review

    def test_reviewed_at_defaults_to_now(self, review):
        assert review.reviewed_at is not None

    def test_review_cannot_be_modified(self, review):
        review.quality = 5
        with pytest.raises(ValueError):
            db.session.commit()
        db.session.rollback()

        assert db.session.get(FlashcardReview, review.id).quality == 3

    @pytest.mark.parametrize('quality', [-1, 6])
    def test_quality_range(self, test_user, quality):
        with pytest.raises(ValueError):
            FlashcardReview(quality=quality)


class TestReviewSessionRecord:

    @pytest.mark.parametrize('session_id', ['', 'not-a-uuid'])
    def test_session_id_must_be_uuid(self, app_context, session_id):
        with pytest.raises(ValueError):
            ReviewSessionRecord(session_id=session_id)

    def test_stores_card_order(self, test_user):
        record = ReviewSessionRecord(
            session_id='6f1c1b7e-2a4d-4c55-9a8e-0d3c2b1a9f10',
            user_id=test_user.id,
            state='presenting',
            mode='all',
            card_ids=[3, 1, 2],
            ordered_ids=[1, 2, 3]
        )
        db.session.add(record)
        db.session.commit()
        db.session.expire_all()

        stored = db.session.get(ReviewSessionRecord, record.session_id)
        assert stored.card_ids == [3, 1, 2]
        assert stored.cursor == 0
        assert stored.browse is False
