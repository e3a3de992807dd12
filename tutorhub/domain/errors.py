"""
Custom application-specific exceptions.

Each exception carries the HTTP status the API layer answers with.
"""

class BaseAppException(Exception):
    """Base exception for the application."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__

class ValidationError(BaseAppException):
    """Malformed or logically inconsistent input."""
    status_code = 400

class UnauthorizedError(BaseAppException):
    """Missing or invalid credentials."""
    status_code = 401

class ForbiddenError(BaseAppException):
    """Authenticated but not allowed to act on this resource."""
    status_code = 403

class NotFoundError(BaseAppException):
    """Raised when an entity is not found in the database."""
    status_code = 404

class ConflictError(BaseAppException):
    """The stored entity changed underneath the request, or already exists."""
    status_code = 409

class InternalError(BaseAppException):
    """Unexpected persistence or collaborator failure."""
    status_code = 500
