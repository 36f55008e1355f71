"""
Domain error taxonomy.

Services raise these exceptions; the HTTP layer maps each kind to its status
code (see the handlers registered in main.py). Messages of 4xx kinds may reach
clients, 5xx kinds are replaced by a generic message.
"""

from typing import Optional

INTERNAL_ERROR_DETAIL = "internal server error"


class ServiceError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    default_detail = INTERNAL_ERROR_DETAIL

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class BadInput(ServiceError):
    status_code = 400
    default_detail = "Invalid input"


class InvalidCredentials(ServiceError):
    status_code = 401
    default_detail = "Invalid email or password"


class UserExists(ServiceError):
    status_code = 400
    default_detail = "Email already registered"


class Forbidden(ServiceError):
    status_code = 403
    default_detail = "Access denied"


class NotFound(ServiceError):
    status_code = 404
    default_detail = "Not found"


class InviteNotFound(NotFound):
    default_detail = "Invite not found"


class InviteEmailMismatch(ServiceError):
    status_code = 403
    default_detail = "Invite was issued for a different email"


class AlreadyMember(ServiceError):
    status_code = 400
    default_detail = "User is already a member of this team"


class InvalidAssignee(ServiceError):
    status_code = 400
    default_detail = "Assignee is not a member of this team"


class MailFailed(ServiceError):
    default_detail = "Failed to send email"


class BreakerOpen(ServiceError):
    default_detail = "Circuit breaker is open"


class Unexpected(ServiceError):
    pass


class InvalidToken(Exception):
    """Raised by the token validator; turned into 401 by the auth dependencies."""
