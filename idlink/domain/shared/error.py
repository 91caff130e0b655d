"""Error hierarchy for idlink.

Error layers:
- IdlinkError: Base class for all idlink errors
- DomainError: Business rule violations, validation failures (4xx responses)
- InfrastructureError: System-level failures like storage/network issues (503 responses)

JSON routes map these through the global exception handler in app.py.
Popup routes never raise them to the browser; they render an error payload.
"""


class IdlinkError(Exception):
    """Base class for all idlink errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors (business logic violations - typically 4xx)
# =============================================================================


class DomainError(IdlinkError):
    """Base class for domain/business errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(
        self, message: str, field: str | None = None, code: str | None = None
    ) -> None:
        super().__init__(message, code=code or "VALIDATION_ERROR")
        self.field = field


class InvalidStateError(DomainError):
    """Operation not allowed in current state."""


class ConflictError(DomainError):
    """Resource already exists or version conflict."""


class AuthorizationError(DomainError):
    """User not authorized for this operation."""


# --- Federated login ---


class InvalidProfileError(ValidationError):
    """External profile carries neither a provider id nor an email."""

    def __init__(self, message: str = "Either id or email must be present") -> None:
        super().__init__(message, field="profile", code="invalid_profile")


class CannotDeriveUsernameError(ValidationError):
    """No usable naming signal to build a username from."""

    def __init__(self, message: str = "Could not generate username") -> None:
        super().__init__(message, field="username", code="cannot_derive_username")


class UsernameTakenError(ConflictError):
    """The username claim was taken by another account."""


class LinkFailureError(DomainError):
    """Account resolved, but the provider link could not be persisted."""


class IdentityMismatchError(AuthorizationError):
    """Re-authorization returned a different provider identity than the linked one."""


# =============================================================================
# Infrastructure Errors (system-level failures - typically 503)
# =============================================================================


class InfrastructureError(IdlinkError):
    """Base class for infrastructure/system errors."""


class StorageUnavailableError(InfrastructureError):
    """Storage backend (database) is unavailable."""


class ExternalServiceError(InfrastructureError):
    """External service (identity provider) is unavailable or failed."""


class ExchangeFailedError(ExternalServiceError):
    """Upgrading a short-lived provider token failed."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""
