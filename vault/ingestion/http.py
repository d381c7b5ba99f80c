"""Shared JSON-over-HTTP fetch for provider clients."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from vault.ingestion.errors import AuthError, FetchError, NotFoundError, RateLimitError
from vault.settings import ImportSettings

logger = logging.getLogger(__name__)
MAX_BODY_SNIPPET = 300
RATE_LIMIT_STATUSES = {429, 999}


def _retry_after(response) -> float | None:
    headers = getattr(response, "headers", None) or {}
    value = headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def fetch_json(
    url: str,
    *,
    provider: str,
    settings: ImportSettings,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    auth_message: str | None = None,
    not_found_message: str | None = None,
) -> Any:
    """GET ``url`` and return the decoded JSON body.

    Transport errors and 5xx responses are retried with exponential backoff.
    401/403, 404 and throttling statuses raise immediately.
    """

    request_headers = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if headers:
        request_headers.update(headers)

    last_error: str | None = None
    last_status: int | None = None
    for attempt in range(settings.http_retries):
        try:
            response = requests.get(
                url,
                params=params,
                headers=request_headers,
                timeout=settings.http_timeout_seconds,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            last_error = str(exc)
            logger.warning(
                "%s request transport error attempt=%s url=%s error=%s",
                provider,
                attempt + 1,
                url,
                last_error,
            )
            if attempt < settings.http_retries - 1:
                time.sleep(settings.http_backoff_seconds * (2**attempt))
            continue

        status = response.status_code
        if status in (401, 403):
            raise AuthError(
                auth_message or f"{provider} authentication failed (status={status})",
                provider=provider,
                status=status,
            )
        if status == 404:
            raise NotFoundError(
                not_found_message or f"{provider} resource not found: {url}",
                provider=provider,
                status=status,
            )
        if status in RATE_LIMIT_STATUSES:
            raise RateLimitError(
                f"{provider} rate limit exceeded. Please wait a moment and retry.",
                provider=provider,
                status=status,
                retry_after=_retry_after(response),
            )
        if status >= 500:
            last_status = status
            last_error = (response.text or "")[:MAX_BODY_SNIPPET]
            logger.error(
                "%s non-200 status=%s body=%s",
                provider,
                status,
                last_error,
            )
            if attempt < settings.http_retries - 1:
                time.sleep(settings.http_backoff_seconds * (2**attempt))
            continue
        if status != 200:
            raise FetchError(
                f"{provider} API error {status}",
                provider=provider,
                status=status,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(
                f"{provider} returned an invalid JSON response",
                provider=provider,
                status=status,
            ) from exc

    raise FetchError(
        f"{provider} request failed after retries: {last_error or 'unknown error'}",
        provider=provider,
        status=last_status,
    )
