"""Errors raised by the flashcard review services"""


class InvalidGradeError(ValueError):
    """Grade is not one of the grades offered to the learner"""

    def __init__(self, quality, allowed_grades):
        self.quality = quality
        self.allowed_grades = tuple(allowed_grades)
        super().__init__(
            f"Invalid grade: {quality}. Must be one of: {list(self.allowed_grades)}"
        )


class CardNotFoundError(ValueError):
    """Flashcard does not exist or belongs to another learner"""


class PersistenceError(RuntimeError):
    """A repository read or write failed; the operation can be retried"""

    retryable = True


class SessionStateError(RuntimeError):
    """Operation is not allowed in the review session's current state"""
