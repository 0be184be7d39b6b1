"""Cloudinary upload-signature helper.

Signs ``{timestamp, type: "private"}`` with the organization's API
secret so the browser can upload directly to a private folder.
"""

from __future__ import annotations

import hashlib
import time
from typing import Any

SIGNED_UPLOAD_TYPE = "private"


def sign_upload_params(params: dict[str, Any], api_secret: str) -> str:
    """Cloudinary request signature.

    Parameters are sorted by name, joined as ``k=v`` with ``&``, the
    secret is appended and the result hashed with SHA-1 (hex). Empty
    values are skipped.
    """
    to_sign = "&".join(
        f"{key}={_format_value(value)}"
        for key, value in sorted(params.items())
        if value not in (None, "")
    )
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()  # noqa: S324


def _format_value(value: Any) -> str:
    if isinstance(value, list | tuple):
        return ",".join(str(v) for v in value)
    return str(value)


def build_upload_signature(
    api_key: str,
    api_secret: str,
    *,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Response body for the upload-signature endpoint."""
    ts = int(time.time()) if timestamp is None else timestamp
    signature = sign_upload_params({"timestamp": ts, "type": SIGNED_UPLOAD_TYPE}, api_secret)
    return {"signature": signature, "timestamp": ts, "apiKey": api_key}
