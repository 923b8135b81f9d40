"""
Core Exceptions
================

Error kinds raised by the grievance core.

Every operation surfaces one of these instead of a raw storage exception,
so the HTTP layer can map them to a structured response.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    error_code = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain rule violations."""

    error_code = "domain_error"
    status_code = 400


class ValidationException(ApplicationException):
    """Malformed or missing input (InvalidInput)."""

    error_code = "invalid_input"
    status_code = 400


class UnauthorizedException(ApplicationException):
    """No verified identity accompanied the call."""

    error_code = "unauthorized"
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[dict] = None):
        super().__init__(message, details)


class ForbiddenException(DomainException):
    """Authenticated, but the role or ownership does not permit the action."""

    error_code = "forbidden"
    status_code = 403

    def __init__(self, message: str = "Forbidden", details: Optional[dict] = None):
        super().__init__(message, details)


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConflictException(DomainException):
    """Duplicate record or a concurrent write collision."""

    error_code = "conflict"
    status_code = 409


class ServiceUnavailableException(ApplicationException):
    """Storage backend not configured or unreachable. Safe to retry."""

    error_code = "unavailable"
    status_code = 503
    retryable = True


class RepositoryException(ApplicationException):
    """Unexpected data access failure."""

    error_code = "repository_error"


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""

    error_code = "configuration_error"
