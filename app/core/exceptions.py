"""
Platform-wide exception hierarchy.

Services raise these types; the application factory registers one handler
per type so every endpoint gets the same HTTP status codes.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="fabMessages", resource_id="user-42")
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested document does not exist.

    Maps to HTTP 404.

    Args:
        resource: Collection or entity name (e.g. "newsItems", "FabMessage").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint) — this
    exception signals that the data was well-formed but violated a business
    rule (e.g. invalid state transition, unknown campaign tag).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names;
                 values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with the current state of a record.

    Maps to HTTP 409.

    Args:
        resource: Entity name.
        field: The field whose value conflicts.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None, message: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} conflicts with current state")


class AuthenticationError(Exception):
    """Missing, expired or invalid identity token. Maps to HTTP 401."""


class AuthorizationError(Exception):
    """Authenticated caller lacks the required role. Maps to HTTP 403."""

    def __init__(self, message: str = "Insufficient permissions", redirect: str | None = None) -> None:
        self.redirect = redirect
        super().__init__(message)


class UpstreamError(Exception):
    """A dependency (feed host, configuration document) failed. Maps to HTTP 500."""
