"""Domain exceptions raised by services and repositories.

Each exception carries the HTTP status the route layer answers with, so
handlers can simply let them propagate.
"""


class SiteError(Exception):
    """Base class for all expected, client-visible failures."""

    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: str = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SiteError):
    status_code = 400
    default_message = 'Invalid request'


class AuthError(SiteError):
    status_code = 401
    default_message = 'Unauthorised'


class ForbiddenError(SiteError):
    status_code = 403
    default_message = 'Insufficient permissions'


class NotFoundError(SiteError):
    status_code = 404
    default_message = 'Not found'


class RateLimitError(SiteError):
    status_code = 429
    default_message = 'Too many login attempts, try again later'


class PersistenceError(SiteError):
    """A collection file could not be written."""

    status_code = 500
    default_message = 'Failed to save changes'
