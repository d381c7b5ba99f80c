"""Stored Yahoo OAuth tokens and the refresh callback handed to the adapter."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import requests
from sqlalchemy.orm import Session

from vault.ingestion.errors import AuthError
from vault.ingestion.schema import YahooOAuth
from vault.models import ProviderToken
from vault.settings import decrypt_secret, encrypt_secret, load_settings

logger = logging.getLogger(__name__)
YAHOO_TOKEN_URL = os.getenv("YAHOO_TOKEN_URL", "https://api.login.yahoo.com/oauth2/get_token")
PROVIDER = "yahoo"


def _get_token_row(db: Session, user_id: str) -> Optional[ProviderToken]:
    return (
        db.query(ProviderToken)
        .filter(ProviderToken.user_id == user_id, ProviderToken.provider == PROVIDER)
        .one_or_none()
    )


def save_tokens(
    db: Session,
    user_id: str,
    access_token: str,
    refresh_token: Optional[str] = None,
    expires_in: Optional[int] = None,
) -> ProviderToken:
    row = _get_token_row(db, user_id)
    if row is None:
        row = ProviderToken(user_id=user_id, provider=PROVIDER)
        db.add(row)
    row.access_token_enc = encrypt_secret(access_token)
    if refresh_token:
        row.refresh_token_enc = encrypt_secret(refresh_token)
    row.expires_at = (
        datetime.now(timezone.utc) + timedelta(seconds=int(expires_in)) if expires_in else None
    )
    db.commit()
    db.refresh(row)
    return row


def request_refresh(refresh_token: str) -> dict[str, Any]:
    client_id = os.getenv("YAHOO_CLIENT_ID", "")
    client_secret = os.getenv("YAHOO_CLIENT_SECRET", "")
    settings = load_settings()
    try:
        response = requests.post(
            YAHOO_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            auth=(client_id, client_secret),
            timeout=settings.http_timeout_seconds,
        )
    except requests.RequestException as exc:
        raise AuthError("Yahoo token refresh failed. Please re-authorize.", provider=PROVIDER) from exc
    if response.status_code != 200:
        logger.error("Yahoo token refresh status=%s body=%s", response.status_code, response.text[:300])
        raise AuthError("Yahoo token refresh failed. Please re-authorize.", provider=PROVIDER)
    return response.json()


def build_refresh_callback(
    session_factory: Callable[[], Session],
    user_id: str,
) -> Callable[[], str]:
    """Return a blocking callable that swaps the stored refresh token for a new access token."""

    def _refresh() -> str:
        with session_factory() as db:
            row = _get_token_row(db, user_id)
            refresh_token = decrypt_secret(row.refresh_token_enc) if row else None
            if not refresh_token:
                raise AuthError(
                    "No Yahoo refresh token available. Please re-authorize.",
                    provider=PROVIDER,
                )
            payload = request_refresh(refresh_token)
            access_token = payload.get("access_token")
            if not access_token:
                raise AuthError("Yahoo token refresh returned no access token.", provider=PROVIDER)
            save_tokens(
                db,
                user_id,
                access_token,
                payload.get("refresh_token") or refresh_token,
                payload.get("expires_in"),
            )
            logger.info("Refreshed Yahoo token for user=%s", user_id)
            return access_token

    return _refresh


def load_credentials(
    db: Session,
    session_factory: Callable[[], Session],
    user_id: str,
    access_token: Optional[str] = None,
) -> YahooOAuth:
    """Credentials for ``user_id``: an explicit token wins over the stored one."""
    token = access_token
    if not token:
        row = _get_token_row(db, user_id)
        token = decrypt_secret(row.access_token_enc) if row else None
    if not token:
        raise AuthError("Yahoo access token is required. Connect your Yahoo account first.", provider=PROVIDER)
    return YahooOAuth(access_token=token, refresh=build_refresh_callback(session_factory, user_id))


def token_status(db: Session, user_id: str) -> dict[str, Any]:
    row = _get_token_row(db, user_id)
    if row is None:
        return {"connected": False}
    expires_at = row.expires_at
    if expires_at is not None and expires_at.tzinfo is None:
        # SQLite hands back naive datetimes.
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return {
        "connected": True,
        "expires_at": expires_at,
        "is_expired": bool(expires_at and expires_at <= datetime.now(timezone.utc)),
        "last_updated": row.updated_at,
    }


def delete_tokens(db: Session, user_id: str) -> int:
    deleted = (
        db.query(ProviderToken)
        .filter(ProviderToken.user_id == user_id, ProviderToken.provider == PROVIDER)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Disconnected Yahoo for user=%s", user_id)
    return deleted
