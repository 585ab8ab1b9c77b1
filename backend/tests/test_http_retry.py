"""Tests for the upstream HTTP retry helper."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from vesselwatch.utils.http_retry import _RETRYABLE_STATUS_CODES, retry_request


def _make_response(status_code: int, headers: dict | None = None) -> httpx.Response:
    """Create a fake httpx.Response with the given status code."""
    return httpx.Response(
        status_code=status_code,
        request=httpx.Request("GET", "https://api.example.com/vessel_list"),
        headers=headers or {},
    )


class TestRetryOnTransientErrors:
    """Retry on 5xx / 429, then succeed."""

    @patch("vesselwatch.utils.http_retry.time")
    def test_retry_503_then_success(self, mock_time):
        mock_time.sleep = MagicMock()
        calls = []

        def fake_get(url, **kwargs):
            calls.append(url)
            return _make_response(503 if len(calls) <= 2 else 200)

        resp = retry_request(fake_get, "https://api.example.com/vessel_list", delays=[0, 0, 0])
        assert resp.status_code == 200
        assert len(calls) == 3

    @patch("vesselwatch.utils.http_retry.time")
    def test_every_retryable_code(self, mock_time):
        mock_time.sleep = MagicMock()
        for code in _RETRYABLE_STATUS_CODES:
            responses = iter([_make_response(code), _make_response(200)])
            resp = retry_request(lambda url, **kw: next(responses), "https://x", delays=[0])
            assert resp.status_code == 200

    @patch("vesselwatch.utils.http_retry.time")
    def test_connect_error_retried(self, mock_time):
        mock_time.sleep = MagicMock()
        attempts = []

        def fake_get(url, **kwargs):
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused")
            return _make_response(200)

        assert retry_request(fake_get, "https://x", delays=[0]).status_code == 200
        assert len(attempts) == 2

    @patch("vesselwatch.utils.http_retry.time")
    def test_retry_after_header_respected(self, mock_time):
        mock_time.sleep = MagicMock()
        responses = iter([_make_response(429, {"Retry-After": "7"}), _make_response(200)])
        retry_request(lambda url, **kw: next(responses), "https://x", delays=[1])
        mock_time.sleep.assert_called_once_with(7.0)


class TestNoRetryOnClientErrors:
    """Auth and config problems surface immediately."""

    @pytest.mark.parametrize("code", [400, 401, 403, 404, 422])
    def test_not_retried(self, code):
        calls = []

        def fake_get(url, **kwargs):
            calls.append(url)
            return _make_response(code)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            retry_request(fake_get, "https://x", delays=[0, 0])
        assert exc_info.value.response.status_code == code
        assert len(calls) == 1


class TestExhaustion:
    @patch("vesselwatch.utils.http_retry.time")
    def test_status_raised_after_last_attempt(self, mock_time):
        mock_time.sleep = MagicMock()
        calls = []

        def fake_get(url, **kwargs):
            calls.append(url)
            return _make_response(502)

        with pytest.raises(httpx.HTTPStatusError):
            retry_request(fake_get, "https://x", delays=[0, 0])
        assert len(calls) == 3

    @patch("vesselwatch.utils.http_retry.time")
    def test_timeout_reraised_after_last_attempt(self, mock_time):
        mock_time.sleep = MagicMock()

        def fake_get(url, **kwargs):
            raise httpx.ReadTimeout("slow")

        with pytest.raises(httpx.TimeoutException):
            retry_request(fake_get, "https://x", delays=[0])

    @patch("vesselwatch.utils.http_retry.time")
    def test_deadline_stops_backoff(self, mock_time):
        mock_time.sleep = MagicMock()
        mock_time.monotonic = MagicMock(return_value=100.0)
        calls = []

        def fake_get(url, **kwargs):
            calls.append(url)
            return _make_response(503)

        # A 3s backoff does not fit a 2s budget: give up after one attempt
        with pytest.raises(httpx.HTTPStatusError):
            retry_request(fake_get, "https://x", delays=[3, 3], deadline=2.0)
        assert len(calls) == 1
        mock_time.sleep.assert_not_called()

    def test_success_passthrough(self):
        resp = retry_request(lambda url, **kw: _make_response(204), "https://x")
        assert resp.status_code == 204
