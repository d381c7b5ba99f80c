from __future__ import annotations

import unittest
from unittest.mock import patch

import requests

from fakes import fast_settings

from vault.ingestion.errors import AuthError, FetchError, NotFoundError, RateLimitError
from vault.ingestion.http import fetch_json


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = "", headers: dict | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = headers or {}

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FetchJsonTests(unittest.TestCase):
    def _fetch(self, **kwargs):
        return fetch_json("https://example.test/x", provider="espn", settings=fast_settings(http_retries=2), **kwargs)

    def test_returns_decoded_body(self) -> None:
        with patch("vault.ingestion.http.requests.get", return_value=_FakeResponse(200, {"ok": True})) as get:
            self.assertEqual({"ok": True}, self._fetch(headers={"Cookie": "a=b"}))

        sent = get.call_args.kwargs["headers"]
        self.assertEqual("a=b", sent["Cookie"])
        self.assertIn("User-Agent", sent)

    def test_auth_status_uses_provider_message(self) -> None:
        with patch("vault.ingestion.http.requests.get", return_value=_FakeResponse(401)):
            with self.assertRaises(AuthError) as ctx:
                self._fetch(auth_message="Check your cookies.")

        self.assertEqual("Check your cookies.", str(ctx.exception))
        self.assertEqual(401, ctx.exception.status)

    def test_not_found_is_not_retried(self) -> None:
        with patch("vault.ingestion.http.requests.get", return_value=_FakeResponse(404)) as get:
            with self.assertRaises(NotFoundError):
                self._fetch()

        self.assertEqual(1, get.call_count)

    def test_rate_limit_carries_retry_after(self) -> None:
        response = _FakeResponse(429, headers={"Retry-After": "30"})
        with patch("vault.ingestion.http.requests.get", return_value=response):
            with self.assertRaises(RateLimitError) as ctx:
                self._fetch()

        self.assertEqual(30.0, ctx.exception.retry_after)

    def test_server_errors_are_retried_then_fail(self) -> None:
        with patch("vault.ingestion.http.requests.get", return_value=_FakeResponse(503, text="busy")) as get:
            with self.assertRaises(FetchError) as ctx:
                self._fetch()

        self.assertEqual(2, get.call_count)
        self.assertEqual(503, ctx.exception.status)

    def test_transport_error_then_success(self) -> None:
        responses = [requests.ConnectionError("reset"), _FakeResponse(200, [1, 2])]
        with patch("vault.ingestion.http.requests.get", side_effect=responses):
            self.assertEqual([1, 2], self._fetch())

    def test_invalid_json_is_a_fetch_error(self) -> None:
        with patch("vault.ingestion.http.requests.get", return_value=_FakeResponse(200, ValueError("bad json"))):
            with self.assertRaises(FetchError):
                self._fetch()


if __name__ == "__main__":
    unittest.main()
