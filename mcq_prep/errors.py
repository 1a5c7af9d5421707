"""Error taxonomy for the session engine."""


class QuizEngineError(Exception):
    """Base class for engine errors."""


class NotFound(QuizEngineError):
    """A session, attempt or question lookup missed."""


class InvalidState(QuizEngineError):
    """Operation not allowed in the session's current state."""


class PersistenceError(QuizEngineError):
    """The storage collaborator failed; in-memory state was left unchanged."""
