from models import db
from datetime import datetime, timezone
from sqlalchemy.orm import validates

# Scheduling defaults for a card that has never been reviewed
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


def _utcnow():
    # Stored timestamps are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Flashcard(db.Model):
    """Flashcard model - a Portuguese word with its SM-2 scheduling state"""
    __tablename__ = 'flashcards'

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Portuguese word or expression, and its English translation
    word = db.Column(db.String, nullable=False)
    translation = db.Column(db.String, nullable=False)

    definition = db.Column(db.Text)
    example_sentence = db.Column(db.Text)
    pronunciation = db.Column(db.String)

    # Reading text the word was collected from, if any
    text_id = db.Column(db.String(36))

    # Inactive cards are kept for history but never reviewed
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # SM-2 scheduling state
    ease_factor = db.Column(db.Float, nullable=False, default=DEFAULT_EASE_FACTOR)
    interval = db.Column(db.Integer, nullable=False, default=0)
    repetitions = db.Column(db.Integer, nullable=False, default=0)
    next_review_at = db.Column(db.DateTime, default=_utcnow)

    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    user = db.relationship('User', back_populates='flashcards')
    reviews = db.relationship('FlashcardReview', back_populates='flashcard', lazy='dynamic')

    __table_args__ = (
        db.Index('idx_flashcard_user_next_review', 'user_id', 'next_review_at'),
    )

    @validates('word', 'translation')
    def validate_text(self, key, value):
        if not value or not value.strip():
            raise ValueError(f'Flashcard {key} cannot be empty or whitespace')
        return value.strip()

    @validates('ease_factor')
    def validate_ease_factor(self, key, value):
        if value is not None and value < MIN_EASE_FACTOR:
            raise ValueError(f'ease_factor must be at least {MIN_EASE_FACTOR}, got {value}')
        return value

    @validates('interval', 'repetitions')
    def validate_non_negative(self, key, value):
        if value is not None and value < 0:
            raise ValueError(f'{key} must be a non-negative integer')
        return value

    def to_dict(self):
        return {
            'id': self.id,
            'word': self.word,
            'translation': self.translation,
            'definition': self.definition,
            'example_sentence': self.example_sentence,
            'pronunciation': self.pronunciation,
            'text_id': self.text_id,
            'ease_factor': self.ease_factor,
            'interval': self.interval,
            'repetitions': self.repetitions,
            'next_review_at': self.next_review_at.isoformat() if self.next_review_at else None,
        }

    def __repr__(self):
        return f'<Flashcard {self.word} user_id={self.user_id}>'
