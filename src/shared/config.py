"""Process configuration read from environment variables.

Provider secrets are deliberately absent: they are looked up per
organization through the CredentialResolver port.
"""

from __future__ import annotations

import os
from collections.abc import Mapping  # noqa: TC003 -- used at runtime in from_env
from dataclasses import dataclass, field

_DEFAULT_MAX_BODY_BYTES = 1024 * 1024


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class AppSettings:
    """Effective application settings."""

    jwt_secret: str
    database_url: str = ""
    redis_url: str = "redis://localhost:6379/0"
    cors_origins: list[str] = field(default_factory=list)
    max_body_bytes: int = _DEFAULT_MAX_BODY_BYTES
    job_backend: str = "asyncio"  # asyncio | celery
    ai_default_model: str = "gpt-4o"
    ai_system_prompt: str = ""
    log_level: str = "INFO"
    known_orgs: list[str] = field(default_factory=list)
    http_timeout_s: float = 30.0
    batch_max_concurrency: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppSettings:
        """Build settings from environment variables.

        Raises:
            RuntimeError: If JWT_SECRET_KEY is missing or JOB_BACKEND is unknown.
        """
        env = os.environ if environ is None else environ

        jwt_secret = env.get("JWT_SECRET_KEY", "")
        if not jwt_secret:
            msg = "JWT_SECRET_KEY environment variable is required"
            raise RuntimeError(msg)

        job_backend = env.get("JOB_BACKEND", "asyncio").strip().lower()
        if job_backend not in {"asyncio", "celery"}:
            msg = f"JOB_BACKEND must be 'asyncio' or 'celery', got {job_backend!r}"
            raise RuntimeError(msg)

        concurrency_raw = env.get("BATCH_MAX_CONCURRENCY", "").strip()

        return cls(
            jwt_secret=jwt_secret,
            database_url=env.get("DATABASE_URL", ""),
            redis_url=env.get("REDIS_URL", "redis://localhost:6379/0"),
            cors_origins=_split_csv(env.get("CORS_ORIGINS", "")),
            max_body_bytes=int(env.get("MAX_BODY_BYTES", str(_DEFAULT_MAX_BODY_BYTES))),
            job_backend=job_backend,
            ai_default_model=env.get("AI_DEFAULT_MODEL", "gpt-4o"),
            ai_system_prompt=env.get("AI_SYSTEM_PROMPT", ""),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            known_orgs=_split_csv(env.get("KNOWN_ORGS", "")),
            http_timeout_s=float(env.get("HTTP_TIMEOUT_S", "30")),
            batch_max_concurrency=int(concurrency_raw) if concurrency_raw else None,
        )
