from models import db
from models.user import User
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def get_or_create_user(external_id, email, name):
    """
    Get or create a learner from the auth provider's identity.

    Args:
        external_id: Identifier issued by the hosted auth provider
        email: User's email
        name: User's display name

    Returns:
        User object or None if database operation fails
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    try:
        user = User.query.filter_by(external_id=external_id).first()

        if user:
            # Update last active timestamp
            user.last_active_at = now
            db.session.commit()
            return user

        user = User(
            external_id=external_id,
            email=email,
            name=name,
            last_active_at=now
        )

        db.session.add(user)
        db.session.commit()

        logger.info(f'Created new user: {email}')
        return user

    except Exception as e:
        db.session.rollback()
        logger.error(f'Failed to create/update user {email}: {str(e)}')
        return None

