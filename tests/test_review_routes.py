"""
Integration tests for review routes.

Tests the complete review flow including:
- Offered grades
- Starting due/all sessions, including the empty case
- Grading cards through to completion
- Error responses (invalid grade, no session, failed save)
- Browse mode navigation and abandoning a session
"""

import sys
import os
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db
from models.user import User
from models.flashcard import Flashcard
from models.flashcard_review import FlashcardReview
from services.errors import PersistenceError
from services.flashcard_repository import SQLAlchemyFlashcardRepository
from services.flashcard_service import import_vocabulary


def utc_now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


@pytest.fixture(scope='function')
def client():
    """Create a test client with fresh database for each test"""
    app = create_app('testing')
    app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
    app.config['TESTING'] = True

    with app.app_context():
        db.create_all()

        with app.test_client() as client:
            yield client

        db.session.remove()
        db.drop_all()


@pytest.fixture
def authenticated_user(client):
    """Create a test user and log them in"""
    user = User(external_id='review_user', email='review@example.com', name='Review User')
    db.session.add(user)
    db.session.commit()

    with patch('flask_login.utils._get_user', return_value=user):
        yield user


@pytest.fixture
def due_cards(authenticated_user):
    """Two cards due for review and one that is not"""
    now = utc_now()
    cards = [
        Flashcard(user_id=authenticated_user.id, word='bom dia', translation='good morning',
                  next_review_at=now - timedelta(days=2)),
        Flashcard(user_id=authenticated_user.id, word='boa noite', translation='good night',
                  ease_factor=2.5, interval=6, repetitions=2,
                  next_review_at=now - timedelta(hours=1)),
        Flashcard(user_id=authenticated_user.id, word='até logo', translation='see you later',
                  next_review_at=now + timedelta(days=5)),
    ]
    db.session.add_all(cards)
    db.session.commit()
    return [card.id for card in cards]


class TestGrades:
    """Tests for GET /review/grades"""

    def test_offered_grades(self, client, authenticated_user):
        response = client.get('/review/grades')

        assert response.status_code == 200
        grades = response.get_json()['grades']
        assert [g['quality'] for g in grades] == [0, 1, 3, 5]
        assert [g['label'] for g in grades] == ['Again', 'Hard', 'Good', 'Perfect']

    def test_configured_grades(self, client, authenticated_user):
        client.application.config['REVIEW_ALLOWED_GRADES'] = [0, 1, 2, 3, 4, 5]

        response = client.get('/review/grades')

        assert len(response.get_json()['grades']) == 6

    def test_requires_login(self, client):
        response = client.get('/review/grades')
        assert response.status_code == 401


class TestStartSession:
    """Tests for POST /review/session"""

    def test_start_due_session(self, client, due_cards):
        response = client.post('/review/session', json={'mode': 'due'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['state'] == 'presenting'
        assert data['size'] == 2
        assert data['position'] == 1
        assert data['card']['id'] == due_cards[0]
        assert data['card']['interval_display'] == 'Now'

    def test_start_all_session(self, client, due_cards):
        response = client.post('/review/session', json={'mode': 'all'})
        assert response.get_json()['size'] == 3

    def test_empty_session_is_not_an_error(self, client, authenticated_user):
        response = client.post('/review/session', json={'mode': 'due'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['state'] == 'empty'
        assert data['message'] == 'No cards to review'
        assert data['card'] is None
        assert (data['correct'], data['total']) == (0, 0)

    def test_invalid_mode(self, client, authenticated_user):
        response = client.post('/review/session', json={'mode': 'tomorrow'})
        assert response.status_code == 400

    def test_load_failure_is_retryable(self, client, due_cards):
        with patch.object(
            SQLAlchemyFlashcardRepository,
            'list_cards_for_learner',
            side_effect=PersistenceError('connection reset')
        ):
            response = client.post('/review/session', json={})

        assert response.status_code == 503
        assert response.get_json()['retryable'] is True


class TestGradeCard:
    """Tests for POST /review/session/grade"""

    def test_grade_through_to_completion(self, client, due_cards):
        client.post('/review/session', json={'mode': 'due'})

        first = client.post('/review/session/grade', json={'quality': 3})
        assert first.status_code == 200
        data = first.get_json()
        assert data['card_id'] == due_cards[0]
        assert data['after']['interval'] == 1
        assert data['after']['ease_factor'] == 2.36
        assert data['next_review_in'] == '1 day'
        assert data['session']['card']['id'] == due_cards[1]

        second = client.post('/review/session/grade', json={'quality': 5})
        data = second.get_json()
        assert data['after']['interval'] == 15
        assert data['after']['ease_factor'] == 2.6
        assert data['next_review_in'] == '2 weeks'
        assert data['session']['state'] == 'complete'
        assert data['session']['card'] is None
        assert (data['session']['correct'], data['session']['total']) == (2, 2)

        assert FlashcardReview.query.count() == 2

        # Nothing left to grade
        third = client.post('/review/session/grade', json={'quality': 5})
        assert third.status_code == 409

    def test_grade_not_offered(self, client, due_cards):
        client.post('/review/session', json={})

        response = client.post('/review/session/grade', json={'quality': 4})

        assert response.status_code == 400
        assert FlashcardReview.query.count() == 0

    def test_missing_quality(self, client, due_cards):
        client.post('/review/session', json={})
        response = client.post('/review/session/grade', json={'answer': 'yes'})
        assert response.status_code == 400

    def test_no_active_session(self, client, authenticated_user):
        response = client.post('/review/session/grade', json={'quality': 3})
        assert response.status_code == 404

    def test_failed_save_can_be_retried(self, client, due_cards):
        client.post('/review/session', json={})

        with patch.object(
            SQLAlchemyFlashcardRepository,
            'append_review_log',
            side_effect=PersistenceError('write failed')
        ):
            failed = client.post('/review/session/grade', json={'quality': 5})

        assert failed.status_code == 503
        assert failed.get_json()['retryable'] is True
        assert db.session.get(Flashcard, due_cards[0]).repetitions == 0

        # Same card is still presented
        current = client.get('/review/session').get_json()
        assert current['card']['id'] == due_cards[0]
        assert current['total'] == 0

        retried = client.post('/review/session/grade', json={'quality': 5})
        assert retried.status_code == 200
        assert db.session.get(Flashcard, due_cards[0]).repetitions == 1
        assert FlashcardReview.query.count() == 1


class TestNavigation:
    """Tests for browse navigation and abandoning"""

    def test_navigation_requires_browse(self, client, due_cards):
        client.post('/review/session', json={'mode': 'all'})

        response = client.post('/review/session/next')

        assert response.status_code == 409

    def test_browse_next_and_previous(self, client, due_cards):
        client.post('/review/session', json={'mode': 'all', 'browse': True})

        data = client.post('/review/session/next').get_json()
        assert data['card']['id'] == due_cards[1]
        assert data['position'] == 2

        data = client.post('/review/session/previous').get_json()
        assert data['card']['id'] == due_cards[0]

        assert FlashcardReview.query.count() == 0

    def test_shuffle_and_restart(self, client, due_cards):
        client.post('/review/session', json={'mode': 'all', 'browse': True})

        shuffled = client.post('/review/session/shuffle')
        assert shuffled.status_code == 200
        assert shuffled.get_json()['position'] == 1

        restarted = client.post('/review/session/restart').get_json()
        assert restarted['card']['id'] == due_cards[0]

    def test_get_session(self, client, due_cards):
        assert client.get('/review/session').status_code == 404

        client.post('/review/session', json={})
        response = client.get('/review/session')

        assert response.status_code == 200
        assert response.get_json()['card']['word'] == 'bom dia'

    def test_abandon_session(self, client, due_cards):
        client.post('/review/session', json={})
        client.post('/review/session/grade', json={'quality': 5})

        response = client.delete('/review/session')
        assert response.status_code == 200
        assert client.get('/review/session').status_code == 404

        # The committed grade stays; the ungraded card is still due
        restarted = client.post('/review/session', json={}).get_json()
        assert restarted['size'] == 1
        assert restarted['card']['id'] == due_cards[1]

    def test_abandon_without_session(self, client, authenticated_user):
        assert client.delete('/review/session').status_code == 404


class TestLargeSessions:
    """The session cookie stays small however many cards a session holds"""

    MAX_COOKIE_BYTES = 4093

    def assert_small_cookies(self, response):
        for header in response.headers.getlist('Set-Cookie'):
            assert len(header) <= self.MAX_COOKIE_BYTES

    def test_all_mode_over_large_vocabulary(self, client, authenticated_user):
        import_vocabulary(authenticated_user.id, [
            {'word': f'palavra {i}', 'translation': f'word {i}'}
            for i in range(1500)
        ])

        started = client.post('/review/session', json={'mode': 'all', 'browse': True})
        assert started.status_code == 200
        assert started.get_json()['size'] == 1500
        assert started.headers.getlist('Set-Cookie')
        self.assert_small_cookies(started)

        shuffled = client.post('/review/session/shuffle')
        assert shuffled.status_code == 200
        self.assert_small_cookies(shuffled)
        first_card = shuffled.get_json()['card']['id']

        graded = client.post('/review/session/grade', json={'quality': 5})
        assert graded.status_code == 200
        self.assert_small_cookies(graded)
        assert graded.get_json()['card_id'] == first_card

        current = client.get('/review/session').get_json()
        assert current['position'] == 2
        assert current['total'] == 1
