"""
Review Routes - Endpoints for flashcard review sessions.

This module provides API endpoints for spaced repetition review:
- GET /review/grades - Grades offered to the learner
- POST /review/session - Start a review session
- GET /review/session - Current card and session progress
- POST /review/session/grade - Grade the current card
- POST /review/session/next, /previous, /shuffle, /restart - Browse mode navigation
- DELETE /review/session - Abandon the session

The signed session cookie only carries the review session id; the card order,
cursor and tally are kept in the review_sessions table.
"""

import logging

from flask import Blueprint, current_app, jsonify, request, session
from flask_login import current_user, login_required

from models import db
from services.errors import CardNotFoundError, PersistenceError, SessionStateError
from services.flashcard_repository import SQLAlchemyFlashcardRepository
from services.review_session_service import MODE_DUE, ReviewSession, SessionState
from services.review_session_store import SQLAlchemyReviewSessionStore
from services.spaced_repetition import (
    ALL_GRADES,
    format_interval,
    quality_label,
    quality_variant,
    utc_now,
)

logger = logging.getLogger(__name__)

bp = Blueprint('review', __name__, url_prefix='/review')

SESSION_KEY = 'review_session_id'


def _allowed_grades():
    return current_app.config.get('REVIEW_ALLOWED_GRADES', ALL_GRADES)


def _new_review_session() -> ReviewSession:
    return ReviewSession(
        SQLAlchemyFlashcardRepository(),
        _allowed_grades(),
        store=SQLAlchemyReviewSessionStore()
    )


def _load_review_session():
    """Load the current user's review session referenced by the cookie, if any"""
    return SQLAlchemyReviewSessionStore().load(
        session.get(SESSION_KEY),
        current_user.id,
        SQLAlchemyFlashcardRepository(),
        _allowed_grades()
    )


def _serialize_card(card):
    if card is None:
        return None
    data = card.to_dict()
    data['interval_display'] = format_interval(card.interval)
    return data


def _session_payload(review_session: ReviewSession) -> dict:
    payload = review_session.summary().model_dump()
    payload['card'] = _serialize_card(review_session.current_card())
    if review_session.state == SessionState.EMPTY:
        payload['message'] = 'No cards to review'
    return payload


def _error_response(e: Exception):
    """Translate a service error into a JSON error response"""
    if isinstance(e, PersistenceError):
        db.session.rollback()
        logger.error(f"Persistence failure during review for user {current_user.id}: {str(e)}")
        return jsonify({'error': str(e), 'retryable': True}), 503
    if isinstance(e, SessionStateError):
        return jsonify({'error': str(e)}), 409
    if isinstance(e, CardNotFoundError):
        return jsonify({'error': str(e)}), 404
    if isinstance(e, ValueError):
        return jsonify({'error': str(e)}), 400

    db.session.rollback()
    logger.exception(f"Unexpected review error for user {current_user.id}: {str(e)}")
    return jsonify({'error': f'Server error: {str(e)}'}), 500


def _no_session_response():
    return jsonify({'error': 'No active review session'}), 404


@bp.route('/grades', methods=['GET'])
@login_required
def get_grades():
    """
    Get the grades offered to the learner.

    Returns:
        200: {"grades": [{"quality": 0, "label": "Again", "variant": "destructive"}, ...]}
    """
    return jsonify({
        'grades': [
            {
                'quality': quality,
                'label': quality_label(quality),
                'variant': quality_variant(quality)
            }
            for quality in _allowed_grades()
        ]
    })


@bp.route('/session', methods=['POST'])
@login_required
def start_session():
    """
    Start a new review session, replacing any existing one.

    Request Body:
        {
            "mode": "due",     # "due" (default) or "all"
            "browse": false    # allow next/previous/shuffle/restart
        }

    Returns:
        200: Session summary and first card
            {
                "state": "presenting",
                "mode": "due",
                "position": 1,
                "size": 12,
                "correct": 0,
                "total": 0,
                "accuracy": 0.0,
                "card": {...}
            }
        200: Nothing to review
            {
                "state": "empty",
                "message": "No cards to review",
                "card": null,
                ...
            }
        400: Invalid mode
        503: Cards could not be loaded (retryable)
    """
    try:
        data = request.get_json(silent=True) or {}
        mode = data.get('mode', MODE_DUE)
        browse = bool(data.get('browse', False))

        review_session = _new_review_session()
        review_session.start(current_user.id, mode=mode, now=utc_now(), browse=browse)
        session[SESSION_KEY] = review_session.session_id

        return jsonify(_session_payload(review_session))

    except Exception as e:
        return _error_response(e)


@bp.route('/session', methods=['GET'])
@login_required
def get_session():
    """
    Get the current card and progress of the active session.

    Returns:
        200: Session summary and current card (card is null once complete)
        404: No active review session
    """
    try:
        review_session = _load_review_session()
        if review_session is None:
            return _no_session_response()
        return jsonify(_session_payload(review_session))

    except Exception as e:
        return _error_response(e)


@bp.route('/session/grade', methods=['POST'])
@login_required
def grade_card():
    """
    Grade the current card.

    Request Body:
        {
            "quality": 3
        }

    Returns:
        200: Grade result and the next card
            {
                "card_id": 42,
                "quality": 3,
                "was_correct": true,
                "before": {"ease_factor": 2.5, "interval": 0, "repetitions": 0, ...},
                "after": {"ease_factor": 2.36, "interval": 1, "repetitions": 1, ...},
                "next_review_in": "1 day",
                "session": {...}
            }
        400: Missing or invalid grade
        404: No active review session
        409: No card to grade (session complete or empty)
        503: Saving failed; nothing was written, retry the same grade

    Implementation Notes:
        - The card is re-read before scheduling, so a retry never applies a
          grade on top of stale state
        - Card update and review log are written in one transaction
    """
    try:
        review_session = _load_review_session()
        if review_session is None:
            return _no_session_response()

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'No JSON data provided'}), 400

        quality = data.get('quality')
        if quality is None:
            return jsonify({'error': 'Missing required field: quality'}), 400

        outcome = review_session.grade(quality, now=utc_now())

        response = outcome.model_dump(mode='json')
        response['next_review_in'] = format_interval(outcome.after.interval)
        response['session'] = _session_payload(review_session)
        return jsonify(response)

    except Exception as e:
        return _error_response(e)


def _navigate(action):
    try:
        review_session = _load_review_session()
        if review_session is None:
            return _no_session_response()

        action(review_session)
        return jsonify(_session_payload(review_session))

    except Exception as e:
        return _error_response(e)


@bp.route('/session/next', methods=['POST'])
@login_required
def next_card():
    """Show the next card without grading (browse sessions only)"""
    return _navigate(lambda review_session: review_session.next_card())


@bp.route('/session/previous', methods=['POST'])
@login_required
def previous_card():
    """Show the previous card without grading (browse sessions only)"""
    return _navigate(lambda review_session: review_session.previous_card())


@bp.route('/session/shuffle', methods=['POST'])
@login_required
def shuffle_cards():
    """Shuffle the cards and start from the first one (browse sessions only)"""
    return _navigate(lambda review_session: review_session.shuffle())


@bp.route('/session/restart', methods=['POST'])
@login_required
def restart_session():
    """Start over in selection order with a fresh tally (browse sessions only)"""
    return _navigate(lambda review_session: review_session.restart())


@bp.route('/session', methods=['DELETE'])
@login_required
def abandon_session():
    """
    Abandon the active session.

    Grades already submitted stay saved; ungraded cards remain due.
    """
    session_id = session.pop(SESSION_KEY, None)

    try:
        with SQLAlchemyFlashcardRepository().unit_of_work():
            deleted = SQLAlchemyReviewSessionStore().delete(session_id, current_user.id)
    except Exception as e:
        return _error_response(e)

    if not deleted:
        return _no_session_response()

    logger.info(f"Review session {session_id} abandoned by user {current_user.id}")
    return jsonify({'success': True, 'message': 'Review session ended'})
