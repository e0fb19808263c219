"""Client for the MEXC public market-data endpoints."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from tbcexplorer.httpclient import HttpClient, HttpError, parse_response

MEXC_BASE_URL = "https://api.mexc.com"
MEXC_TICKER_24H_PATH = "/api/v3/ticker/24hr"
MEXC_TICKER_PRICE_PATH = "/api/v3/ticker/price"

log = logging.getLogger(__name__)


class MexcClient:
    """Reads ticker data from the MEXC exchange."""

    def __init__(self, base_url: str = MEXC_BASE_URL, session: Any = None) -> None:
        self._client = HttpClient(base_url, session=session)

    def get_ticker_24h(self, symbol: str) -> dict[str, Any]:
        """Return the 24-hour ticker statistics for ``symbol``."""
        return self._fetch(MEXC_TICKER_24H_PATH, symbol, "24h ticker")

    def get_ticker_price(self, symbol: str) -> dict[str, Any]:
        """Return the current price entry for ``symbol``."""
        return self._fetch(MEXC_TICKER_PRICE_PATH, symbol, "ticker price")

    def _fetch(self, base_path: str, symbol: str, what: str) -> dict[str, Any]:
        if not symbol:
            raise ValueError("symbol must not be empty")

        path = f"{base_path}?{urlencode({'symbol': symbol})}"
        log.info("fetching MEXC %s for %s", what, symbol)
        try:
            body = self._client.get(path)
        except HttpError as exc:
            log.error("failed to fetch MEXC %s for %s: %s", what, symbol, exc)
            raise HttpError(
                f"failed to fetch MEXC {what}: {exc}", status_code=exc.status_code
            ) from exc

        data = parse_response(body)
        if not isinstance(data, dict):
            log.error("unexpected MEXC %s payload for %s: %r", what, symbol, data)
            raise HttpError(f"failed to parse HTTP response: expected an object, got {type(data).__name__}")
        return data