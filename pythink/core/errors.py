# pythink/core/errors.py


class PythinkError(Exception):
    """Base class for service-level errors."""


class NotFoundError(PythinkError):
    pass


class PermissionDeniedError(PythinkError):
    pass


class ConflictError(PythinkError):
    pass


class AIUnavailableError(PythinkError):
    """The LLM is not configured or the request to it failed."""


class AIDisabledError(PermissionDeniedError):
    """AI level 0 on the assignment."""


class AILimitExceededError(PythinkError):
    pass


class ClassroomDataUnavailableError(PythinkError):
    """
    One of the roster / assignment / submission / conversation lookups
    failed. The dashboard is not rendered at all in that case.
    """
