"""
Flashcard Routes - Endpoints for managing a learner's flashcards.

- GET /flashcards - List active flashcards with their schedule
- POST /flashcards - Create a flashcard
- POST /flashcards/import - Import a vocabulary list
- DELETE /flashcards/<id> - Remove a flashcard from review
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from models import db
from services.errors import CardNotFoundError
from services.flashcard_service import (
    create_flashcard,
    deactivate_flashcard,
    import_vocabulary,
    list_flashcards,
)
from services.spaced_repetition import format_interval, is_due, utc_now

logger = logging.getLogger(__name__)

bp = Blueprint('flashcards', __name__, url_prefix='/flashcards')


def _serialize(card, now):
    data = card.to_dict()
    data['interval_display'] = format_interval(card.interval)
    data['is_due'] = card.next_review_at is None or is_due(card.next_review_at, now)
    return data


@bp.route('', methods=['GET'])
@login_required
def get_flashcards():
    """
    Get the current user's active flashcards, soonest review first.

    Returns:
        200: {"success": true, "data": [...], "count": int}
    """
    try:
        now = utc_now()
        cards = list_flashcards(current_user.id)
        data = [_serialize(card, now) for card in cards]
        return jsonify({'success': True, 'data': data, 'count': len(data)}), 200

    except Exception as e:
        logger.exception(f"Error listing flashcards for user {current_user.id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('', methods=['POST'])
@login_required
def add_flashcard():
    """
    Create a flashcard, due for review immediately.

    Request Body:
        {
            "word": "obrigado",
            "translation": "thank you",
            "definition": "...",          # optional
            "example_sentence": "...",    # optional
            "pronunciation": "...",       # optional
            "text_id": "..."              # optional
        }

    Returns:
        201: {"success": true, "data": {...}}
        400: Missing word or translation
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'success': False, 'error': 'No JSON data provided'}), 400

        card = create_flashcard(
            user_id=current_user.id,
            word=data.get('word'),
            translation=data.get('translation'),
            definition=data.get('definition'),
            example_sentence=data.get('example_sentence'),
            pronunciation=data.get('pronunciation'),
            text_id=data.get('text_id')
        )
        return jsonify({'success': True, 'data': _serialize(card, utc_now())}), 201

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Error creating flashcard for user {current_user.id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/import', methods=['POST'])
@login_required
def import_flashcards():
    """
    Import a vocabulary list as flashcards.

    Request Body:
        {
            "entries": [
                {"word": "casa", "translation": "house"},
                {"word": "gato", "translation": "cat", "pronunciation": "ˈɡa.tu"}
            ]
        }

    Returns:
        200: {"success": true, "created": 2, "skipped": 0}
        400: Missing entries or invalid entry
    """
    try:
        data = request.get_json(silent=True)
        entries = data.get('entries') if data else None
        if not isinstance(entries, list):
            return jsonify({'success': False, 'error': 'Missing required field: entries'}), 400
        if not all(isinstance(entry, dict) for entry in entries):
            return jsonify({'success': False, 'error': 'Each entry must be an object'}), 400

        result = import_vocabulary(current_user.id, entries)
        return jsonify({'success': True, **result}), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Error importing vocabulary for user {current_user.id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/<int:card_id>', methods=['DELETE'])
@login_required
def remove_flashcard(card_id):
    """
    Remove a flashcard from review. Its review history is kept.

    Returns:
        200: {"success": true}
        404: Flashcard not found
    """
    try:
        deactivate_flashcard(current_user.id, card_id)
        return jsonify({'success': True}), 200

    except CardNotFoundError as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Error removing flashcard {card_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500
