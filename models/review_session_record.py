from models import db
from datetime import datetime, timezone
from sqlalchemy.orm import validates
import uuid


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ReviewSessionRecord(db.Model):
    """Server-side state of a learner's review session, referenced from the session cookie"""
    __tablename__ = 'review_sessions'

    # UUID carried in the session cookie
    session_id = db.Column(db.String(36), primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    state = db.Column(db.String(20), nullable=False)
    mode = db.Column(db.String(10), nullable=False)
    browse = db.Column(db.Boolean, nullable=False, default=False)

    # Card ids in presentation order, and in selection order for restart
    card_ids = db.Column(db.JSON, nullable=False)
    ordered_ids = db.Column(db.JSON, nullable=False)

    cursor = db.Column(db.Integer, nullable=False, default=0)
    correct = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)

    started_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    @validates('session_id')
    def validate_session_id(self, key, session_id):
        if not session_id:
            raise ValueError('session_id is required')
        try:
            uuid.UUID(session_id)
        except ValueError:
            raise ValueError(f'Invalid UUID format: {session_id}')
        return session_id

    def __repr__(self):
        return f'<ReviewSessionRecord {self.session_id}>'
