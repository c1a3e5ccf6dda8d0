from models import db
from datetime import datetime, timezone
from flask_login import UserMixin
from sqlalchemy.orm import validates
import re


class User(UserMixin, db.Model):
    """User model - a learner who owns flashcards and review history"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)

    # Identifier issued by the hosted auth provider
    external_id = db.Column(db.String, unique=True, nullable=False)

    email = db.Column(db.String, nullable=False, index=True)
    name = db.Column(db.String)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))
    last_active_at = db.Column(db.DateTime)

    # Relationships
    flashcards = db.relationship('Flashcard', back_populates='user', lazy='dynamic')
    reviews = db.relationship('FlashcardReview', back_populates='user', lazy='dynamic')

    @validates('email')
    def validate_email(self, key, email):
        if not email:
            raise ValueError('Email is required')
        # Basic email format validation
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(pattern, email):
            raise ValueError(f'Invalid email format: {email}')
        return email

    def __repr__(self):
        return f'<User {self.email}>'
