"""
Domain error taxonomy.

Services raise these and nothing else; translating them into HTTP status
codes is done once, by the exception handlers registered in ``pelangi.main``.
"""


class PelangiError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PelangiError):
    """Malformed or out-of-range input. ``field`` names the offending input."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(PelangiError):
    pass


class ForbiddenError(PelangiError):
    pass


class ConflictError(PelangiError):
    """Uniqueness or state-machine violation."""


class InternalError(PelangiError):
    """Store or configuration failure."""
