"""
Platform-wide exception hierarchy.

Services raise these types; the application factory registers one handler
per type so every blueprint answers with the same HTTP status and JSON body.

Usage:
    from warisin.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Program", resource_id=program_id)
    raise ValidationError("title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the caller's reach.

    Used for BOTH genuinely missing records AND resources owned by another
    user (e.g. an artisan touching someone else's program). A 403 would
    confirm the resource exists; a 404 does not.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Program", "Application").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness or state rule.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        message: Optional override of the generated message.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class DuplicateApplicationError(ConflictError):
    """An application already exists for this (program, applicant) pair."""

    def __init__(self, program_id: str, applicant_id: str | None = None) -> None:
        self.program_id = program_id
        self.applicant_id = applicant_id
        super().__init__(
            "Application", "program_id", program_id,
            message="Application already exists for this program",
        )


class NotAcceptingApplicationsError(Exception):
    """The program is closed (`is_open` is false). Maps to HTTP 409."""

    def __init__(self, program_id: str) -> None:
        self.program_id = program_id
        super().__init__("Program is not accepting applications")


class InvalidTransitionError(Exception):
    """A status change not allowed by the application state machine.

    Maps to HTTP 409.
    """

    def __init__(self, current: str, requested: str, allowed: list[str] | None = None) -> None:
        self.current = current
        self.requested = requested
        self.allowed = allowed or []
        super().__init__(f"Invalid status transition: {current} → {requested}")


class AuthenticationError(Exception):
    """Missing, invalid or expired credentials. Maps to HTTP 401."""


class PermissionDeniedError(Exception):
    """Authenticated, but the role may not perform this action. Maps to HTTP 403."""
