"""Datalastic client — vessel positions via REST API.

Two request shapes are used:
  - ``/vessel_list?country_iso=..`` for the detection cycle's full snapshot
  - ``/vessel_pro?mmsi=..`` for individually tracked (watchlisted) vessels

Every failure (transport, HTTP status, provider error payload, unparseable
body) surfaces as ``UpstreamFetchError`` so callers can tell "the provider
failed" apart from "the provider returned zero vessels".

API docs: https://datalastic.com/api-reference/
"""
from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from vesselwatch.config import settings
from vesselwatch.exceptions import UpstreamFetchError
from vesselwatch.utils.http_retry import retry_request

logger = logging.getLogger(__name__)


class DatalasticClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.DATALASTIC_API_KEY
        self.base_url = (base_url or settings.DATALASTIC_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self._transport = transport

    def fetch_country_vessels(self, country_iso: str | None = None) -> list[dict]:
        """Fetch the latest position of every vessel flagged to *country_iso*."""
        country = country_iso or settings.DATALASTIC_COUNTRY_ISO
        start = time.monotonic()
        data = self._get("/vessel_list", {"country_iso": country})
        vessels = _extract_list(data)
        logger.info(
            "Datalastic: fetched %d %s vessels in %.0fms",
            len(vessels), country, (time.monotonic() - start) * 1000,
        )
        return vessels

    def fetch_vessel(self, mmsi: str) -> dict | None:
        """Fetch one vessel's latest report; None if the provider does not know it."""
        data = self._get("/vessel_pro", {"mmsi": mmsi})
        if isinstance(data, dict) and "data" in data:
            data = data["data"]
        if isinstance(data, list):
            data = data[0] if data else None
        if data is not None and not isinstance(data, dict):
            raise UpstreamFetchError(f"Unexpected vessel_pro payload for {mmsi}")
        return data or None

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        if not self.api_key:
            raise UpstreamFetchError("DATALASTIC_API_KEY not configured")

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                resp = retry_request(
                    client.get, url,
                    params={"api-key": self.api_key, **params},
                    deadline=self.timeout,
                )
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Datalastic request failed: HTTP %d", exc.response.status_code)
            raise UpstreamFetchError(
                f"Datalastic HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TimeoutException as exc:
            logger.error("Datalastic request timed out after %ss", self.timeout)
            raise UpstreamFetchError("Datalastic request timed out") from exc
        except (httpx.HTTPError, OSError) as exc:
            raise UpstreamFetchError(f"Datalastic transport error: {exc}") from exc
        except ValueError as exc:
            raise UpstreamFetchError("Datalastic returned a non-JSON body") from exc

        if isinstance(payload, dict) and payload.get("error"):
            raise UpstreamFetchError(f"Datalastic API error: {payload['error']}")
        return payload


def _extract_list(payload: Any) -> list[dict]:
    """Pull the vessel list out of the provider's envelope (bare list or ``{"data": ...}``)."""
    data = payload
    if isinstance(data, dict):
        data = data.get("data", data)
    if isinstance(data, dict):
        data = data.get("vessels", [])
    if not isinstance(data, list):
        raise UpstreamFetchError("Unexpected vessel_list payload")
    return [v for v in data if isinstance(v, dict)]
