"""ProviderAdapter - one outbound unit of work to a third-party provider.

The core never inspects adapter transport. It only distinguishes a
ProviderReceipt (success) from a raised ProviderError (failure).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.shared.types import ProviderReceipt


class ProviderAdapter(ABC):
    """Port: send one payload with resolved credentials."""

    # Upper-case provider segment of the credential name, e.g. "RESEND".
    provider: ClassVar[str]
    # Required credential keys, e.g. ("API_KEY",).
    credential_keys: ClassVar[tuple[str, ...]]

    @abstractmethod
    async def send(
        self,
        payload: Mapping[str, Any],
        credentials: Mapping[str, str],
    ) -> ProviderReceipt:
        """Perform the call.

        Args:
            payload: Provider-neutral message fields.
            credentials: KEY -> value for ``credential_keys``.

        Returns:
            ProviderReceipt carrying the provider's id for the sent item.

        Raises:
            ProviderError: Any transport or provider-side failure.
        """
