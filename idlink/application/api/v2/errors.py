"""Centralized error transformation for API routes.

Maps idlink errors (domain and infrastructure) to HTTPException responses.
"""

from typing import Any

from fastapi import HTTPException

from idlink.domain.shared.error import (
    AuthorizationError,
    ConflictError,
    DomainError,
    IdlinkError,
    InfrastructureError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

DOMAIN_ERROR_STATUS_MAP: dict[type[DomainError], int] = {
    NotFoundError: 404,
    ValidationError: 422,
    InvalidStateError: 409,
    ConflictError: 409,
    AuthorizationError: 403,
}

# AuthorizationError codes that mean "not signed in" rather than "not allowed"
UNAUTHENTICATED_CODES = frozenset({"missing_token", "unauthorized", "unknown_login", "wrong_password"})


def _domain_status(error: DomainError) -> int:
    for cls in type(error).__mro__:
        if cls in DOMAIN_ERROR_STATUS_MAP:
            return DOMAIN_ERROR_STATUS_MAP[cls]
    return 400


def map_idlink_error(error: IdlinkError) -> HTTPException:
    """Map an idlink error to an HTTPException.

    Args:
        error: The idlink error to map.

    Returns:
        HTTPException with appropriate status code and detail.
    """
    detail: dict[str, Any] = {
        "code": error.code,
        "message": error.message,
    }

    if isinstance(error, InfrastructureError):
        # Infrastructure errors → 503 Service Unavailable
        return HTTPException(status_code=503, detail=detail)

    if isinstance(error, DomainError):
        status_code = _domain_status(error)
        if isinstance(error, ValidationError) and error.field is not None:
            detail["field"] = error.field
        # Distinguish 401 (unauthenticated) from 403 (unauthorized)
        if isinstance(error, AuthorizationError) and error.code in UNAUTHENTICATED_CODES:
            return HTTPException(
                status_code=401,
                detail=detail,
                headers={"WWW-Authenticate": "Bearer"},
            )
        return HTTPException(status_code=status_code, detail=detail)

    # Fallback for unknown IdlinkError subclasses
    return HTTPException(status_code=500, detail=detail)
