"""Unified error hierarchy for the OrgBase backend.

All domain errors inherit from OrgBaseError. The gateway maps each subclass
to exactly one HTTP status and renders it as ``{"error": str(exc)}``.
"""

from __future__ import annotations


class OrgBaseError(Exception):
    """Base error for all OrgBase exceptions."""

    status_code = 500

    def __init__(self, message: str, code: str = "ORGBASE_ERROR") -> None:
        self.code = code
        super().__init__(message)


# -- 400 --


class ValidationError(OrgBaseError):
    """Input validation failed."""

    status_code = 400

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message, code="VALIDATION")


class MissingOrgHeaderError(ValidationError):
    """Tenant-scoped request without an X-ORG-ID header."""

    def __init__(self, header: str = "X-ORG-ID") -> None:
        super().__init__(f"{header} header is required", field=header)


class InvalidSourceError(ValidationError):
    """X-SOURCE header missing or outside the allowed length."""

    def __init__(self, min_length: int, max_length: int) -> None:
        super().__init__(
            f"Source is not correct. Must be from {min_length} to {max_length} symbols",
            field="X-SOURCE",
        )


# -- Auth / Org errors --


class AuthenticationError(OrgBaseError):
    """No verified identity on the request."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(OrgBaseError):
    """Identity present, but the caller's role is not in the required set."""

    status_code = 403

    def __init__(self, required_roles: tuple[str, ...] = ()) -> None:
        self.required_roles = required_roles
        msg = (
            f"Forbidden: Requires role {' or '.join(required_roles)}"
            if required_roles
            else "Forbidden"
        )
        super().__init__(msg, code="AUTH_DENIED")


class NoActiveOrganizationError(OrgBaseError):
    """The user has no active organization binding."""

    status_code = 403

    def __init__(self) -> None:
        super().__init__("No active organization found", code="NO_ACTIVE_ORG")


class OrgIsolationError(OrgBaseError):
    """Request targets an organization other than the caller's active one."""

    status_code = 403

    def __init__(self, message: str = "Organization isolation violation") -> None:
        super().__init__(message, code="ORG_ISOLATION")


# -- Domain errors --


class NotFoundError(OrgBaseError):
    """Requested resource not found."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
        )


class PayloadTooLargeError(OrgBaseError):
    """Request payload exceeds the declared size ceiling."""

    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"Payload too large: {size} bytes exceeds limit of {limit} bytes",
            code="PAYLOAD_TOO_LARGE",
        )


class RateLimitedError(OrgBaseError):
    """Too many requests in the current window."""

    status_code = 429

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__("Too many requests, slow down.", code="RATE_LIMITED")


# -- Upstream / store faults (500 class) --


class CredentialNotFoundError(OrgBaseError):
    """A per-organization provider credential is not configured."""

    def __init__(self, credential_name: str) -> None:
        self.credential_name = credential_name
        super().__init__(
            f"Credential not found: {credential_name}",
            code="CREDENTIAL_NOT_FOUND",
        )


class ProviderError(OrgBaseError):
    """An outbound provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} error: {message}", code="PROVIDER_ERROR")


class InternalError(OrgBaseError):
    """Store or lookup fault that must not be mistaken for a domain outcome."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message, code="INTERNAL")


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "CredentialNotFoundError",
    "InternalError",
    "InvalidSourceError",
    "MissingOrgHeaderError",
    "NoActiveOrganizationError",
    "NotFoundError",
    "OrgBaseError",
    "OrgIsolationError",
    "PayloadTooLargeError",
    "ProviderError",
    "RateLimitedError",
    "ValidationError",
]
