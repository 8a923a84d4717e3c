"""
Exception hierarchy for the adaptive learning engine.
"""


class LearningEngineError(Exception):
    """Base exception for all engine errors."""
    pass


class NotFoundError(LearningEngineError):
    """Raised when a referenced student, question, assignment or answer does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidStateError(LearningEngineError):
    """Raised when a status transition is attempted from the wrong source status."""

    def __init__(self, message: str, current: str | None = None, expected: str | None = None):
        self.current = current
        self.expected = expected
        super().__init__(message)


class InvalidInputError(LearningEngineError):
    """Raised when input is rejected before any write (scores, settings, quality)."""
    pass
