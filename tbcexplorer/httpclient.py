"""Minimal HTTP GET client returning raw bodies, plus JSON decoding."""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

DEFAULT_TIMEOUT = 10.0

log = logging.getLogger(__name__)


class HttpError(Exception):
    """Raised when an HTTP request or its response cannot be used."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HttpClient:
    """Issues GET requests against a fixed base URL."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Any = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    def get(self, path: str) -> bytes:
        """Fetch ``base_url + path`` and return the body; only 200 is accepted."""
        url = self.base_url + path
        log.info("sending HTTP request: GET %s", url)
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            log.error("HTTP request failed: %s (url=%s)", exc, url)
            raise HttpError(f"HTTP request failed: {exc}") from exc

        if response.status_code != 200:
            log.error("HTTP status is not 200: %s (url=%s)", response.status_code, url)
            raise HttpError(
                f"HTTP response status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.content
        except requests.RequestException as exc:
            log.error("failed to read HTTP response body: %s (url=%s)", exc, url)
            raise HttpError(f"failed to read HTTP response body: {exc}") from exc

        log.info("HTTP request succeeded: %s (status=%s)", url, response.status_code)
        return body


def parse_response(data: bytes | str) -> Any:
    """Decode a JSON response body."""
    try:
        return json.loads(data)
    except ValueError as exc:
        log.error("failed to parse HTTP response: %s (data=%r)", exc, data)
        raise HttpError(f"failed to parse HTTP response: {exc}") from exc