"""HTTP client for the metadata lookup service."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from pathlib import Path

import httpx
from pydantic import ValidationError

from .base import MetadataLookupError
from .models import LookupResponse

LOGGER = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = 1.0
MAX_BACKOFF = 30.0


class HttpMetadataLookup:
    """Looks up file metadata over HTTP.

    ``GET {base_url}/lookup?path=...&name=...`` returns a JSON object parsed as
    :class:`LookupResponse`. A 404 or ``"found": false`` means the service knows
    nothing about the file; transport errors and 5xx responses are retried with
    exponential backoff before :class:`MetadataLookupError` is raised.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        api_key: str | None = None,
        retry_backoff: float = RETRY_BACKOFF,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service root URL (e.g., "http://localhost:8000")
            timeout: HTTP request timeout in seconds
            api_key: Optional key sent as the X-Api-Key header
            retry_backoff: Initial delay between retries in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.retry_backoff = retry_backoff
        headers = {"X-Api-Key": api_key} if api_key else {}
        self._client = httpx.Client(timeout=timeout, headers=headers)

    def _request(self, params: dict[str, str]) -> httpx.Response | None:
        """GET the lookup endpoint with retries.

        Returns:
            Response object, or None if the service returned 404

        Raises:
            MetadataLookupError: After MAX_RETRIES failed attempts
        """
        url = f"{self.base_url}/lookup"
        last_exception: Exception | None = None
        backoff = self.retry_backoff

        for attempt in range(MAX_RETRIES):
            try:
                response = self._client.get(url, params=params)
                if response.status_code == 404:
                    return None
                if response.status_code == 429:
                    retry_after = float(response.headers.get("Retry-After", backoff))
                    LOGGER.warning("Lookup rate limited, waiting %.1f seconds", retry_after)
                    time.sleep(retry_after)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                    last_exception = MetadataLookupError("Rate limited by lookup service")
                    continue
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_exception = exc
                if exc.response.status_code < 500:
                    break
            except httpx.RequestError as exc:
                last_exception = exc

            if attempt < MAX_RETRIES - 1:
                LOGGER.debug("Lookup failed (attempt %d/%d): %s", attempt + 1, MAX_RETRIES, last_exception)
                time.sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)

        raise MetadataLookupError(f"Lookup failed for {params.get('path')}: {last_exception}") from last_exception

    def lookup(self, path: Path, display_name: str) -> Sequence[str] | None:
        response = self._request({"path": str(path), "name": display_name})
        if response is None:
            LOGGER.debug("No metadata known for %s", path)
            return None

        try:
            payload = LookupResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MetadataLookupError(f"Malformed lookup response for {path}: {exc}") from exc
        return payload.to_fields()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HttpMetadataLookup:
        return self

    def __exit__(self, *args) -> None:
        self.close()
