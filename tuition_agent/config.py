"""Centralized configuration for the tuition centre agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/tuition-centre/<VARIABLE_NAME>``.
Required values are resolved at import time, so a missing credential stops
the process at startup with the variable's name in the error.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SSM_PREFIX = "/tuition-centre"

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


class ConfigurationError(OSError):
    """A required credential or setting is missing."""


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 — lazy import to avoid boto3 dep in tests

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _optional_env(name: str) -> str | None:
    """Return a config value from env-var or SSM, or ``None``."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _optional_env(name)
    if value:
        return value

    raise ConfigurationError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {SSM_PREFIX}/{name} (AWS)."
    )


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")

# Hard cap on chat-completion calls per request (initial call included)
MAX_LLM_CALLS: int = 5

# ── Admin ───────────────────────────────────────────────────────────
ADMIN_PASSWORD: str = _require_env("ADMIN_PASSWORD")

# ── Google Sheets (schedule + knowledge source of truth) ────────────
GOOGLE_SHEET_ID: str = _require_env("GOOGLE_SHEET_ID")
GOOGLE_SERVICE_ACCOUNT_JSON: str | None = _optional_env("GOOGLE_SERVICE_ACCOUNT_JSON")
GOOGLE_SERVICE_ACCOUNT_FILE: str = os.getenv(
    "GOOGLE_SERVICE_ACCOUNT_FILE", "service-account.json",
)
SCHEDULE_SHEET: str = os.getenv("SCHEDULE_SHEET", "schedule")
KNOWLEDGE_SHEET: str = os.getenv("KNOWLEDGE_SHEET", "knowledge")

# ── Knowledge base (Supabase + Gemini embeddings) ───────────────────
SUPABASE_URL: str = _require_env("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY: str = _require_env("SUPABASE_SERVICE_ROLE_KEY")
GEMINI_API_KEY: str = _require_env("GEMINI_API_KEY")
EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
MATCH_THRESHOLD: float = float(os.getenv("MATCH_THRESHOLD", "0.5"))
MATCH_COUNT: int = int(os.getenv("MATCH_COUNT", "3"))

# ── Prompt ──────────────────────────────────────────────────────────
CENTRE_TIMEZONE: str = os.getenv("CENTRE_TIMEZONE", "Asia/Singapore")

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
