"""Twilio SMS adapter implementing ProviderAdapter."""

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

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSmsAdapter(ProviderAdapter):
    """Send one SMS through the Twilio Messages API.

    The sender number is configured without the leading ``+``; it is
    added here. Payload fields: ``to`` and ``body``.
    """

    provider: ClassVar[str] = "TWILIO"
    credential_keys: ClassVar[tuple[str, ...]] = (
        "API_USERNAME",
        "API_PASSWORD",
        "API_PHONE_FROM",
    )

    def __init__(self, *, client: httpx.AsyncClient, api_base: str = TWILIO_API_BASE) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/")

    async def send(
        self,
        payload: Mapping[str, Any],
        credentials: Mapping[str, str],
    ) -> ProviderReceipt:
        account_sid = credentials["API_USERNAME"]
        url = f"{self._api_base}/Accounts/{account_sid}/Messages.json"
        form = {
            "To": payload["to"],
            "From": f"+{credentials['API_PHONE_FROM']}",
            "Body": payload["body"],
        }
        try:
            response = await self._client.post(
                url,
                data=form,
                auth=(account_sid, credentials["API_PASSWORD"]),
            )
        except httpx.HTTPError as exc:
            logger.warning("Twilio transport failure: %s", exc)
            raise ProviderError("Twilio", str(exc) or type(exc).__name__) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            detail = data.get("message") if isinstance(data, dict) else None
            logger.warning("Twilio rejected SMS (status=%d): %s", response.status_code, detail)
            raise ProviderError("Twilio", str(detail or f"HTTP {response.status_code}"))

        return ProviderReceipt(receipt_id=data.get("sid"), raw=data)
