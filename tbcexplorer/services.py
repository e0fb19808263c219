"""Request handlers for block and health endpoints, returning ``(status, body)`` pairs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from tbcexplorer.blockchain_rpc import RpcError

HTTP_OK = 200
HTTP_NOT_FOUND = 404

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_DECIMAL = re.compile(r"[+-]?[0-9]+")

log = logging.getLogger(__name__)

Validator = Callable[[Any], None]


class BlockQueries(Protocol):
    def fetch_block_by_height(self, height: int) -> Any: ...

    def fetch_block_by_hash(self, block_hash: str) -> Any: ...

    def fetch_block_header_by_height(self, height: int) -> Any: ...

    def fetch_block_header_by_hash(self, block_hash: str) -> Any: ...

    def fetch_nearby_10_headers(self) -> Any: ...

    def fetch_chain_info(self) -> Any: ...


@dataclass
class ChainInfo:
    """Summary of the node's view of the chain."""

    best_block_hash: str = ""
    blocks: int = 0
    chain: str = ""
    chain_work: str = ""
    difficulty: float = 0.0
    headers: int = 0
    median_time: int = 0
    pruned: bool = False
    verification_progress: float = 0.0


def _get_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _get_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        return 0
    if isinstance(value, float):
        return int(value)
    if isinstance(value, int):
        return value
    return 0


def _get_float(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _get_bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else False


def chain_info_from_dict(data: dict[str, Any]) -> ChainInfo:
    """Build a ``ChainInfo``; missing or mistyped fields take their zero values."""
    return ChainInfo(
        best_block_hash=_get_str(data, "bestblockhash"),
        blocks=_get_int(data, "blocks"),
        chain=_get_str(data, "chain"),
        chain_work=_get_str(data, "chainwork"),
        difficulty=_get_float(data, "difficulty"),
        headers=_get_int(data, "headers"),
        median_time=_get_int(data, "mediantime"),
        pruned=_get_bool(data, "pruned"),
        verification_progress=_get_float(data, "verificationprogress"),
    )


def _parse_height(text: Any) -> int:
    """Parse a signed 64-bit decimal integer, as a URL path parameter."""
    if isinstance(text, bool):
        raise ValueError(f"invalid height {text!r}")
    if isinstance(text, int):
        value = text
    elif isinstance(text, str) and _DECIMAL.fullmatch(text):
        value = int(text)
    else:
        raise ValueError(f"invalid height {text!r}")
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValueError(f"height out of range: {text!r}")
    return value


def _error(message: str, status: int = HTTP_OK) -> tuple[int, dict[str, str]]:
    return status, {"error": message}


class BlockService:
    """Block and chain endpoints; every reply is ``(HTTP status, JSON body)``."""

    def __init__(
        self,
        api: BlockQueries,
        validate_height: Optional[Validator] = None,
        validate_hash: Optional[Validator] = None,
    ) -> None:
        self._api = api
        self._validate_height = validate_height
        self._validate_hash = validate_hash

    def _checked_height(self, height: Any) -> int | tuple[int, dict[str, str]]:
        try:
            value = _parse_height(height)
        except ValueError as exc:
            log.error("failed to parse block height %r: %s", height, exc)
            return _error("block height must be an integer")
        if self._validate_height is not None:
            try:
                self._validate_height(value)
            except ValueError as exc:
                log.error("block height validation failed: %s (%s)", value, exc)
                return _error(str(exc))
        return value

    def _hash_problem(self, block_hash: str) -> tuple[int, dict[str, str]] | None:
        if self._validate_hash is not None:
            try:
                self._validate_hash(block_hash)
            except ValueError as exc:
                log.error("block hash validation failed: %s (%s)", block_hash, exc)
                return _error(str(exc))
        return None

    def get_block_by_height(self, height: Any) -> tuple[int, Any]:
        """Return the block at ``height``."""
        checked = self._checked_height(height)
        if isinstance(checked, tuple):
            return checked
        try:
            block = self._api.fetch_block_by_height(checked)
        except RpcError as exc:
            log.error("failed to get block data: height=%s, error=%s", checked, exc)
            return _error("failed to get block data")
        return HTTP_OK, block

    def get_block_by_hash(self, block_hash: str) -> tuple[int, Any]:
        """Return the block with hash ``block_hash``."""
        problem = self._hash_problem(block_hash)
        if problem is not None:
            return problem
        try:
            block = self._api.fetch_block_by_hash(block_hash)
        except RpcError as exc:
            log.error("failed to get block data: hash=%s, error=%s", block_hash, exc)
            return _error("failed to get block data")
        return HTTP_OK, block

    def get_block_header_by_height(self, height: Any) -> tuple[int, Any]:
        """Return the header of the block at ``height``."""
        checked = self._checked_height(height)
        if isinstance(checked, tuple):
            return checked
        try:
            header = self._api.fetch_block_header_by_height(checked)
        except RpcError as exc:
            log.error("failed to get block header: height=%s, error=%s", checked, exc)
            return _error("failed to get block header data")
        return HTTP_OK, header

    def get_block_header_by_hash(self, block_hash: str) -> tuple[int, Any]:
        """Return the header of the block with hash ``block_hash``."""
        problem = self._hash_problem(block_hash)
        if problem is not None:
            return problem
        try:
            header = self._api.fetch_block_header_by_hash(block_hash)
        except RpcError as exc:
            log.error("failed to get block header: hash=%s, error=%s", block_hash, exc)
            return _error("failed to get block header data")
        return HTTP_OK, header

    def get_nearby_10_headers(self) -> tuple[int, Any]:
        """Return the latest headers, or 404 when there are none."""
        try:
            headers = self._api.fetch_nearby_10_headers()
        except RpcError as exc:
            log.error("failed to get latest 10 block headers: %s", exc)
            return _error("failed to get the latest 10 block headers")
        if not isinstance(headers, list) or not headers:
            log.warning("no block header data found")
            return _error("no block header data found", HTTP_NOT_FOUND)
        return HTTP_OK, headers

    def get_chain_info(self) -> tuple[int, Any]:
        """Return a ``ChainInfo`` built from the node's chain summary."""
        try:
            data = self._api.fetch_chain_info()
        except RpcError as exc:
            log.error("failed to get blockchain info: %s", exc)
            return _error("failed to get blockchain info")
        if not isinstance(data, dict):
            log.error("blockchain info has unexpected format")
            return _error("failed to get blockchain info")
        info = chain_info_from_dict(data)
        log.info(
            "got blockchain info: blocks=%s, chain=%s, difficulty=%s",
            info.blocks,
            info.chain,
            info.difficulty,
        )
        return HTTP_OK, info


def health_check() -> tuple[int, dict[str, Any]]:
    """Report that the API is up."""
    log.info("HealthCheck")
    return HTTP_OK, {"code": 200, "message": "Turing API is running.", "data": {}}