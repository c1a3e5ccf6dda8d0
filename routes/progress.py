"""
Progress Blueprint

Provides learner progress endpoints built from flashcards and the review log.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from services.review_stats_service import (
    DEFAULT_ACTIVITY_DAYS,
    get_recent_reviews,
    get_review_stats,
)
from services.spaced_repetition import utc_now

logger = logging.getLogger(__name__)

bp = Blueprint('progress', __name__, url_prefix='/progress')

MAX_ACTIVITY_DAYS = 365


@bp.route('/stats', methods=['GET'])
@login_required
def get_stats():
    """
    Get the learner's flashcard totals.

    Response:
        {
            "success": true,
            "total_flashcards": 40,
            "total_reviews": 310,
            "due_today": 7,
            "retention_rate": 0.82
        }
    """
    try:
        stats = get_review_stats(current_user.id, now=utc_now())
        return jsonify({'success': True, **stats}), 200

    except Exception as e:
        logger.exception(f"Error fetching review stats for user {current_user.id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'Failed to fetch progress stats. Please try again later.'
        }), 500


@bp.route('/reviews/recent', methods=['GET'])
@login_required
def get_recent_activity():
    """
    Get reviews per day over a recent window.

    Query Parameters:
        days (int, optional): Window length in days (1-365, defaults to 7)

    Example:
        GET /progress/reviews/recent?days=7

    Response:
        {
            "success": true,
            "days": 7,
            "data": [
                {"day": "2025-01-01", "reviews": 12, "correct": 10},
                {"day": "2025-01-02", "reviews": 8, "correct": 8}
            ]
        }
    """
    days = request.args.get('days', DEFAULT_ACTIVITY_DAYS, type=int)
    if days is None or not 1 <= days <= MAX_ACTIVITY_DAYS:
        return jsonify({
            'success': False,
            'error': f'Invalid days. Must be between 1 and {MAX_ACTIVITY_DAYS}.'
        }), 400

    try:
        data = get_recent_reviews(current_user.id, now=utc_now(), days=days)
        return jsonify({'success': True, 'days': days, 'data': data}), 200

    except Exception as e:
        logger.exception(f"Error fetching recent reviews for user {current_user.id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'Failed to fetch review activity. Please try again later.'
        }), 500
