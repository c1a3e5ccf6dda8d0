from models import db
from datetime import datetime, timezone
from sqlalchemy import event
from sqlalchemy.orm import validates


class FlashcardReview(db.Model):
    """FlashcardReview model - append-only log of every graded review"""
    __tablename__ = 'flashcard_reviews'

    id = db.Column(db.Integer, primary_key=True)

    flashcard_id = db.Column(db.Integer, db.ForeignKey('flashcards.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # 0 (blackout) .. 5 (perfect)
    quality = db.Column(db.Integer, nullable=False)

    ease_factor_before = db.Column(db.Float, nullable=False)
    ease_factor_after = db.Column(db.Float, nullable=False)
    interval_before = db.Column(db.Integer, nullable=False)
    interval_after = db.Column(db.Integer, nullable=False)

    reviewed_at = db.Column(
        db.DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
        index=True
    )

    # Relationships
    flashcard = db.relationship('Flashcard', back_populates='reviews')
    user = db.relationship('User', back_populates='reviews')

    @validates('quality')
    def validate_quality(self, key, value):
        if value is None or not 0 <= value <= 5:
            raise ValueError(f'quality must be between 0 and 5, got {value}')
        return value

    def __repr__(self):
        return f'<FlashcardReview flashcard_id={self.flashcard_id} quality={self.quality}>'


@event.listens_for(FlashcardReview, 'before_update')
def _reject_review_update(mapper, connection, target):
    raise ValueError(f'Review log entries are immutable (id={target.id})')
