"""Environment-backed CredentialResolver.

Provider secrets are plain process environment variables named
``{org_id}_{PROVIDER}_{KEY}``. Organization ids that do not look like
``org_<alnum/_>`` never resolve, so a crafted header cannot reach
unrelated variables such as ``PATH``.
"""

from __future__ import annotations

import logging
import os
import re
from typing import TYPE_CHECKING

from src.ports.credential_port import CredentialResolver, credential_name

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

ORG_ID_PATTERN = re.compile(r"^org_[A-Za-z0-9_]+$")


class EnvCredentialResolver(CredentialResolver):
    """Look credentials up in a mapping (``os.environ`` by default)."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def resolve(self, org_id: str, provider: str, key: str) -> str | None:
        if not ORG_ID_PATTERN.match(org_id):
            logger.warning("Refusing credential lookup for malformed org id %r", org_id)
            return None
        return self._environ.get(credential_name(org_id, provider, key)) or None
