from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)
_FERNET: Fernet | None = None


@dataclass(frozen=True)
class ImportSettings:
    http_timeout_seconds: float = 12.0
    http_retries: int = 3
    http_backoff_seconds: float = 0.5
    user_agent: str = "league-vault/1.0 (+https://example.local)"
    sleeper_max_hops: int = 20
    yahoo_max_hops: int = 30
    max_weeks: int = 18
    espn_first_year: int = 2018
    mfl_first_year: int = 2000
    repair_min_expected_teams: int = 4
    name_cache_ttl_seconds: int = 24 * 60 * 60


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def load_settings() -> ImportSettings:
    """Snapshot import settings from the environment."""
    defaults = ImportSettings()
    return ImportSettings(
        http_timeout_seconds=_env_float("VAULT_HTTP_TIMEOUT_SECONDS", defaults.http_timeout_seconds),
        http_retries=max(1, _env_int("VAULT_HTTP_RETRIES", defaults.http_retries)),
        http_backoff_seconds=_env_float("VAULT_HTTP_BACKOFF_SECONDS", defaults.http_backoff_seconds),
        user_agent=os.getenv("VAULT_USER_AGENT", defaults.user_agent),
        sleeper_max_hops=_env_int("VAULT_SLEEPER_MAX_HOPS", defaults.sleeper_max_hops),
        yahoo_max_hops=_env_int("VAULT_YAHOO_MAX_HOPS", defaults.yahoo_max_hops),
        max_weeks=_env_int("VAULT_MAX_WEEKS", defaults.max_weeks),
        espn_first_year=_env_int("VAULT_ESPN_FIRST_YEAR", defaults.espn_first_year),
        mfl_first_year=_env_int("VAULT_MFL_FIRST_YEAR", defaults.mfl_first_year),
        repair_min_expected_teams=_env_int(
            "VAULT_REPAIR_MIN_EXPECTED_TEAMS", defaults.repair_min_expected_teams
        ),
        name_cache_ttl_seconds=_env_int(
            "VAULT_NAME_CACHE_TTL_SECONDS", defaults.name_cache_ttl_seconds
        ),
    )


def get_fernet() -> Fernet:
    global _FERNET
    if _FERNET is not None:
        return _FERNET
    secret = (os.getenv("APP_SECRET_KEY") or "").strip()
    if not secret:
        secret = Fernet.generate_key().decode("utf-8")
        logger.warning(
            "APP_SECRET_KEY missing. Generated a temporary key: %s. "
            "Set APP_SECRET_KEY to this value to persist decryption.",
            secret,
        )
    _FERNET = Fernet(secret.encode("utf-8"))
    return _FERNET


def encrypt_secret(value: str | None) -> str | None:
    if not value:
        return None
    fernet = get_fernet()
    return fernet.encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(encrypted: str | None) -> str | None:
    if not encrypted:
        return None
    fernet = get_fernet()
    try:
        return fernet.decrypt(encrypted.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.error("Failed to decrypt stored provider token. Check APP_SECRET_KEY.")
        return None
