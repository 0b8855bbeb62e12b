"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so callers can read it without
    # parsing str(exception). Don't raise this directly - always raise a specific subclass
    # so OperationResult.error_kind tells the HTTP layer what actually went wrong.
    error_kind: str = "domain_error"

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Raised when input to a lifecycle operation is malformed (empty name,
    unparsable expiry, negative file size).

    HTTP Status: 422
    """

    error_kind = "validation"


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # entity_type/entity_id are kept separately so error handlers can log them structured.
    error_kind = "not_found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class NotOwnerException(DomainException):
    """Raised when the requesting user does not own the resource.

    HTTP Status: 403 (or 404 where existence must not leak)
    """

    error_kind = "not_owner"

    def __init__(self, entity_type: str, entity_id: Any, user_id: Any) -> None:
        super().__init__(f"User {user_id} is not the owner of {entity_type} {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.user_id = user_id


class DuplicateEntityException(DomainException):
    """Raised when trying to create a duplicate entity."""

    # Business rule uniqueness, e.g. a user linking two Dropbox accounts under the same
    # name. The DB unique constraint is the backstop; this is the friendly message.
    error_kind = "duplicate"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


class NoAdapterFoundException(DomainException):
    """Raised when no storage adapter is registered for a provider type."""

    error_kind = "no_adapter"

    def __init__(self, provider_type: Any) -> None:
        value = getattr(provider_type, "value", provider_type)
        super().__init__(f"No storage adapter registered for provider type {value}")
        self.provider_type = provider_type


class AdapterError(DomainException):
    """Base class for failures reported by a storage provider adapter."""

    error_kind = "adapter_error"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.http_status = http_status


class AdapterIOError(AdapterError):
    """Transient remote failure (network, timeout, 5xx).

    Safe to retry later - but the engine never retries internally, retry policy
    belongs to the caller.
    """

    error_kind = "adapter_io"


class AdapterAuthError(AdapterError):
    """Token-level remote failure - refresh or re-link is needed.

    Hey future me - 400 with invalid_grant on the token endpoint means the refresh
    token is dead (user revoked the app, password change, etc). 401/403 mean the access
    token was rejected. Either way the UI has to ask the user to link the provider again
    if a refresh doesn't help.
    """

    error_kind = "adapter_auth"

    def __init__(
        self,
        message: str = "Provider rejected the credentials. Please re-link the provider.",
        provider: str | None = None,
        http_status: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message, provider=provider, http_status=http_status)
        self.error_code = error_code  # e.g., "invalid_grant"

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires the user to link the provider again."""
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


class CommitError(DomainException):
    """Persisting a unit of work failed and was rolled back.

    The in-memory entities must not be assumed persisted. Callers may retry the
    whole operation.
    """

    error_kind = "commit_failed"

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


__all__ = [
    "AdapterAuthError",
    "AdapterError",
    "AdapterIOError",
    "CommitError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "NoAdapterFoundException",
    "NotOwnerException",
    "ValidationError",
]
