"""PayU OAuth token client.

Fetches a ``client_credentials`` access token per organization and
caches it in the StoragePort until shortly before it expires.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from src.shared.errors import ProviderError

if TYPE_CHECKING:
    from src.ports.credential_port import CredentialResolver
    from src.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

PAYU_PROD_URL = "https://secure.payu.com"
PAYU_SANDBOX_URL = "https://secure.snd.payu.com"
TOKEN_PATH = "/pl/standard/user/oauth/authorize"

PAYU_CREDENTIAL_KEYS = ("CLIENT_ID", "CLIENT_SECRET", "MERCHANT_POS_ID", "SECOND_KEY")
# Cached tokens expire this many seconds before PayU's own expiry.
_EXPIRY_MARGIN_S = 60


def _cache_key(org_id: str) -> str:
    return f"payu:token:{org_id}"


class PayUTokenClient:
    """OAuth token fetcher with per-organization caching."""

    provider = "PAYU"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        credentials: CredentialResolver,
        cache: StoragePort | None = None,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._cache = cache

    def base_url(self, org_id: str) -> str:
        flag = self._credentials.resolve(org_id, self.provider, "IS_SANDBOX")
        return PAYU_SANDBOX_URL if flag == "true" else PAYU_PROD_URL

    async def fetch_token(self, org_id: str) -> dict[str, Any]:
        """Return ``{access_token, expires_in}`` for the organization.

        Raises:
            CredentialNotFoundError: A PayU credential is not configured.
            ProviderError: PayU refused the request or was unreachable.
        """
        creds = self._credentials.require(org_id, self.provider, *PAYU_CREDENTIAL_KEYS)

        if self._cache is not None:
            cached = await self._cache.get(_cache_key(org_id))
            if cached:
                return cached

        url = self.base_url(org_id) + TOKEN_PATH
        form = {
            "grant_type": "client_credentials",
            "client_id": creds["CLIENT_ID"],
            "client_secret": creds["CLIENT_SECRET"],
        }
        try:
            response = await self._client.post(url, data=form)
        except httpx.HTTPError as exc:
            logger.warning("PayU transport failure for org %s: %s", org_id, exc)
            raise ProviderError("PayU", str(exc) or type(exc).__name__) from exc

        if response.is_error:
            logger.warning("PayU token request failed (status=%d)", response.status_code)
            raise ProviderError("PayU", f"token error {response.status_code}: {response.text}")

        data = response.json()
        token = {
            "access_token": data.get("access_token"),
            "expires_in": int(data.get("expires_in") or 0),
        }
        if not token["access_token"]:
            raise ProviderError("PayU", "token response without access_token")

        ttl = token["expires_in"] - _EXPIRY_MARGIN_S
        if self._cache is not None and ttl > 0:
            await self._cache.put(_cache_key(org_id), token, ttl=ttl)
        return token
