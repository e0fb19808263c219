"""Higher-level node queries built on the blockchain JSON-RPC client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from tbcexplorer.blockchain_rpc import RpcError

RPC_METHOD_GET_BLOCK_BY_HEIGHT = "getblockbyheight"
RPC_METHOD_GET_BLOCK = "getblock"
RPC_METHOD_GET_BLOCK_HASH = "getblockhash"
RPC_METHOD_GET_BLOCK_HEADER = "getblockheader"
RPC_METHOD_GET_INFO = "getinfo"
RPC_METHOD_GET_BLOCKCHAIN_INFO = "getblockchaininfo"
RPC_METHOD_GET_RAW_TRANSACTION = "getrawtransaction"

NEARBY_HEADER_COUNT = 10

log = logging.getLogger(__name__)


class RpcCaller(Protocol):
    def call(self, method: str, params: Any, full_response: bool = False) -> Any: ...


@dataclass
class BlockInfo:
    """A block as reported by ``getblockbyheight`` in verbose mode."""

    hash: str = ""
    confirmations: int = 0
    size: int = 0
    height: int = 0
    version: int = 0
    merkle_root: str = ""
    tx: list[str] = field(default_factory=list)
    time: int = 0
    nonce: int = 0
    bits: str = ""
    difficulty: float = 0.0
    previous_hash: str = ""
    next_hash: str = ""


def _as_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _as_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"field {key!r} must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"field {key!r} must be an integer, got {value!r}")


def _as_float(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number, got {value!r}")
    return float(value)


def _as_str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return list(value)


def block_info_from_dict(data: Any) -> BlockInfo:
    """Build a ``BlockInfo`` from a decoded node reply; raises ``ValueError`` on bad types."""
    if not isinstance(data, dict):
        raise ValueError(f"block data must be an object, got {type(data).__name__}")
    return BlockInfo(
        hash=_as_str(data, "hash"),
        confirmations=_as_int(data, "confirmations"),
        size=_as_int(data, "size"),
        height=_as_int(data, "height"),
        version=_as_int(data, "version"),
        merkle_root=_as_str(data, "merkleroot"),
        tx=_as_str_list(data, "tx"),
        time=_as_int(data, "time"),
        nonce=_as_int(data, "nonce"),
        bits=_as_str(data, "bits"),
        difficulty=_as_float(data, "difficulty"),
        previous_hash=_as_str(data, "previousblockhash"),
        next_hash=_as_str(data, "nextblockhash"),
    )


def _require_dict(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        log.error("unexpected response format: %s", what)
        raise RpcError("unexpected response format")
    return value


class BlockchainApi:
    """Block, header, chain and transaction queries against a node."""

    def __init__(self, rpc: RpcCaller) -> None:
        self._rpc = rpc

    def get_block_by_height_structured(self, height: int) -> BlockInfo:
        """Fetch a verbose block at ``height`` and decode it into ``BlockInfo``."""
        if height < 0:
            log.error("block height must not be negative: %s", height)
            raise ValueError("block height must not be negative")

        log.info("fetching block info: height=%s", height)
        try:
            result = self._rpc.call(RPC_METHOD_GET_BLOCK_BY_HEIGHT, [height, True], False)
        except RpcError as exc:
            log.error("failed to get block info: height=%s, error=%s", height, exc)
            raise RpcError(f"failed to get block info: {exc}") from exc

        try:
            block = block_info_from_dict(result)
        except ValueError as exc:
            log.error("failed to parse block data: height=%s, error=%s", height, exc)
            raise RpcError(f"failed to parse block data: {exc}") from exc

        log.info("got block info: height=%s, hash=%s, time=%s", height, block.hash, block.time)
        return block

    def fetch_block_by_height(self, height: int) -> dict[str, Any]:
        """Return the raw block object at ``height``."""
        log.info("[RPC] block by height: %s", height)
        response = self._rpc.call(RPC_METHOD_GET_BLOCK_BY_HEIGHT, [height], False)
        block = _require_dict(response, f"block by height {height}")
        log.info("[RPC ok] block by height: %s", height)
        return block

    def fetch_block_by_hash(self, block_hash: str) -> dict[str, Any]:
        """Return the raw block object with hash ``block_hash``."""
        log.info("[RPC] block by hash: %s", block_hash)
        response = self._rpc.call(RPC_METHOD_GET_BLOCK, [block_hash], False)
        block = _require_dict(response, f"block by hash {block_hash}")
        log.info("[RPC ok] block by hash: %s", block_hash)
        return block

    def fetch_block_header_by_height(self, height: int) -> dict[str, Any]:
        """Resolve the hash at ``height`` and return that block's header."""
        log.info("[RPC] block header by height: %s", height)
        block_hash = self._rpc.call(RPC_METHOD_GET_BLOCK_HASH, [height], False)
        if not isinstance(block_hash, str):
            log.error("unexpected response format: block hash at height %s", height)
            raise RpcError("unexpected response format")

        response = self._rpc.call(RPC_METHOD_GET_BLOCK_HEADER, [block_hash], False)
        header = _require_dict(response, f"block header at height {height}")
        log.info("[RPC ok] block header by height: %s", height)
        return header

    def fetch_block_header_by_hash(self, block_hash: str) -> dict[str, Any]:
        """Return the header of the block with hash ``block_hash``."""
        log.info("[RPC] block header by hash: %s", block_hash)
        response = self._rpc.call(RPC_METHOD_GET_BLOCK_HEADER, [block_hash], False)
        header = _require_dict(response, f"block header {block_hash}")
        log.info("[RPC ok] block header by hash: %s", block_hash)
        return header

    def fetch_nearby_10_headers(self) -> list[dict[str, Any]]:
        """Return up to ten headers counting down from the tip; failed heights are skipped."""
        log.info("[RPC] nearby 10 headers")
        info = _require_dict(self._rpc.call(RPC_METHOD_GET_INFO, [], False), "getinfo")

        blocks = info.get("blocks")
        if isinstance(blocks, bool) or not isinstance(blocks, (int, float)):
            log.error("unexpected response format: block count %r", blocks)
            raise RpcError("unexpected response format")

        tip = int(blocks)
        headers: list[dict[str, Any]] = []
        for offset in range(NEARBY_HEADER_COUNT):
            height = tip - offset
            if height < 0:
                break
            try:
                headers.append(self.fetch_block_header_by_height(height))
            except RpcError as exc:
                log.error("[RPC failed] block header at height %s: %s", height, exc)

        log.info("[RPC ok] nearby 10 headers: count=%s", len(headers))
        return headers

    def get_raw_transaction(self, txid: str, verbose: bool) -> Any:
        """Return the node's ``getrawtransaction`` result unchanged."""
        log.info("fetching raw transaction: txid=%s, verbose=%s", txid, verbose)
        try:
            result = self._rpc.call(
                RPC_METHOD_GET_RAW_TRANSACTION, [txid, 1 if verbose else 0], False
            )
        except RpcError as exc:
            log.error("failed to get raw transaction: txid=%s, error=%s", txid, exc)
            raise RpcError(f"failed to get transaction: {exc}") from exc
        log.info("got raw transaction: txid=%s", txid)
        return result

    def get_block_by_height(self, height: int) -> dict[str, Any]:
        """Return the raw block object at ``height``, with wrapped errors."""
        log.info("fetching block: height=%s", height)
        try:
            result = self._rpc.call(RPC_METHOD_GET_BLOCK_BY_HEIGHT, [height], False)
        except RpcError as exc:
            log.error("failed to get block: height=%s, error=%s", height, exc)
            raise RpcError(f"failed to get block: {exc}") from exc

        if not isinstance(result, dict):
            log.error("block info has unexpected format: height=%s", height)
            raise RpcError("block info has unexpected format")
        log.info("got block: height=%s", height)
        return result

    def fetch_chain_info(self) -> dict[str, Any]:
        """Return the node's ``getblockchaininfo`` object."""
        log.info("[RPC] chain info")
        response = self._rpc.call(RPC_METHOD_GET_BLOCKCHAIN_INFO, [], False)
        info = _require_dict(response, "chain info")
        log.info("[RPC ok] chain info")
        return info

    def decode_tx_hash(self, txid: str) -> dict[str, Any]:
        """Return the verbose transaction object for ``txid``."""
        return self._decode_verbose(txid)

    def decode_tx(self, txid: str) -> dict[str, Any]:
        """Return the verbose transaction object for ``txid``."""
        return self._decode_verbose(txid)

    def decode_raw_transaction(self, txid: str) -> Any:
        """Return the node's verbose reply for ``txid`` without checking its shape."""
        result = self._query_verbose(txid)
        log.info("got raw transaction: %s", txid)
        return result

    def _query_verbose(self, txid: str) -> Any:
        if not txid:
            log.error("transaction decode failed: txid is empty")
            raise ValueError("transaction id must not be empty")
        log.info("querying transaction: %s", txid)
        try:
            return self._rpc.call(RPC_METHOD_GET_RAW_TRANSACTION, [txid, 1], False)
        except RpcError as exc:
            log.error("transaction query failed: %s, error=%s", txid, exc)
            raise RpcError(f"failed to decode transaction: {exc}") from exc

    def _decode_verbose(self, txid: str) -> dict[str, Any]:
        result = self._query_verbose(txid)
        if not isinstance(result, dict):
            log.error("failed to parse transaction data: %s", txid)
            raise RpcError("failed to parse transaction data: expected an object")
        log.info(
            "got transaction: %s, confirmations=%s", txid, result.get("confirmations")
        )
        return result