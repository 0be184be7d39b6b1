"""CredentialResolver - per-organization provider secret lookup.

Naming convention: ``{org_id}_{PROVIDER}_{KEY}``, e.g.
``org_acme_RESEND_API_KEY``. Pure lookup, no state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.shared.errors import CredentialNotFoundError


def credential_name(org_id: str, provider: str, key: str) -> str:
    """Compose the conventional credential name."""
    return f"{org_id}_{provider.upper()}_{key.upper()}"


class CredentialResolver(ABC):
    """Port: resolve provider credentials for an organization."""

    @abstractmethod
    def resolve(self, org_id: str, provider: str, key: str) -> str | None:
        """Return the credential value, or None when not configured."""

    def require(self, org_id: str, provider: str, *keys: str) -> dict[str, str]:
        """Resolve every key or fail on the first missing one.

        Returns:
            Mapping of KEY (upper-case) to value.

        Raises:
            CredentialNotFoundError: Naming the first missing credential.
        """
        resolved: dict[str, str] = {}
        for key in keys:
            value = self.resolve(org_id, provider, key)
            if not value:
                raise CredentialNotFoundError(credential_name(org_id, provider, key))
            resolved[key.upper()] = value
        return resolved

    def optional(self, org_id: str, provider: str, *keys: str) -> dict[str, str]:
        """Resolve keys that may be absent; missing ones are left out."""
        resolved: dict[str, str] = {}
        for key in keys:
            value = self.resolve(org_id, provider, key)
            if value:
                resolved[key.upper()] = value
        return resolved
