"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is kept as an attribute so handlers never parse str(exc).
    # Don't raise this one directly, always pick a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found.

    HTTP Status: 404
    """

    # Only for cases where "missing" is an error for the caller (report on an unknown
    # link, unknown smart link slug). Lookups that expect misses return None instead.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when entity validation fails.

    HTTP Status: 422
    """

    pass


class InputError(ValidationException):
    """User input can't be parsed (bad URL, URI, ISRC or platform).

    User-correctable, so the API surfaces it as 400 rather than 422.

    Example:
        raise InputError("Not a Spotify track URL, URI or ID: 'hello'")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when a required credential is missing. Fatal for the operation,
    never retried and never silently degraded.

    HTTP Status: 500

    Example:
        raise ConfigurationError("ACRCloud bearer token not configured")
    """

    pass


class ExternalServiceError(DomainException):
    """External service (Spotify, ACRCloud) failed.

    Raised for 5xx responses, timeouts, transport errors and malformed payloads
    that can't be recovered to an empty result.

    HTTP Status: 502 (Bad Gateway)
    """

    def __init__(
        self, service: str, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


class RateLimitExceededError(DomainException):
    """External service rate limit was exceeded even after backing off.

    HTTP Status: 429
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# Aliases matching the error taxonomy names used in logs and docs.
NotFoundError = EntityNotFoundException
UpstreamError = ExternalServiceError

__all__ = [
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "InputError",
    "NotFoundError",
    "RateLimitExceededError",
    "UpstreamError",
    "ValidationException",
]
