"""Resend email adapter implementing ProviderAdapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from src.ports.provider_port import ProviderAdapter
from src.shared.errors import ProviderError
from src.shared.types import ProviderReceipt

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"


class ResendEmailAdapter(ProviderAdapter):
    """Send one email through the Resend REST API.

    Payload fields: ``to``, ``from``, ``subject``, ``html`` and an
    optional ``scheduled_at``.
    """

    provider: ClassVar[str] = "RESEND"
    credential_keys: ClassVar[tuple[str, ...]] = ("API_KEY",)

    def __init__(self, *, client: httpx.AsyncClient, url: str = RESEND_SEND_URL) -> None:
        self._client = client
        self._url = url

    async def send(
        self,
        payload: Mapping[str, Any],
        credentials: Mapping[str, str],
    ) -> ProviderReceipt:
        body: dict[str, Any] = {
            "from": payload["from"],
            "to": payload["to"],
            "subject": payload["subject"],
            "html": payload["html"],
        }
        if payload.get("scheduled_at"):
            body["scheduled_at"] = payload["scheduled_at"]

        headers = {
            "Authorization": f"Bearer {credentials['API_KEY']}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(self._url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Resend transport failure: %s", exc)
            raise ProviderError("Resend", str(exc) or type(exc).__name__) from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.warning("Resend rejected email (status=%d): %s", response.status_code, detail)
            raise ProviderError("Resend", detail)

        data = response.json()
        return ProviderReceipt(receipt_id=data.get("id"), raw=data)
