class LessonError(Exception):
    """Base class for lesson engine errors."""


class InvalidTransition(LessonError):
    """A session operation was called in a state that does not allow it."""


class SessionNotFound(LessonError):
    pass


class NoLessonAvailable(LessonError):
    """The vocabulary pool produced no questions."""
