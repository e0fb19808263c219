"""Typed ElectrumX queries built on top of ``ElectrumXClient.call``."""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

from tbcexplorer.electrumx_client import ElectrumXError

METHOD_BLOCK_HEADER = "blockchain.block.header"
METHOD_GET_BALANCE = "blockchain.scripthash.get_balance"
METHOD_GET_FROZEN_BALANCE = "blockchain.scripthash.get_frozen_balance"
METHOD_GET_HISTORY = "blockchain.scripthash.get_history"
METHOD_LIST_UNSPENT = "blockchain.scripthash.listunspent"
METHOD_BROADCAST = "blockchain.transaction.broadcast"
METHOD_GET_TRANSACTION = "blockchain.transaction.get"
METHOD_ESTIMATE_FEE = "blockchain.estimatefee"
METHOD_SERVER_VERSION = "server.version"
METHOD_SERVER_PEERS = "server.peers.subscribe"
METHOD_SERVER_FEATURES = "server.features"

CLIENT_NAME = "electrumx-client"
PROTOCOL_VERSION = "1.4"

HEADER_HEX_LENGTH = 160
TIME_HEX_SLICE = slice(68, 76)

_HEX8 = re.compile(r"[0-9a-fA-F]{8}")

log = logging.getLogger(__name__)


class RpcCaller(Protocol):
    def call(self, method: str, params: Any) -> Any: ...


def parse_header_timestamp(header_hex: str) -> int:
    """Read the timestamp field from a hex-encoded 80-byte block header."""
    if len(header_hex) < HEADER_HEX_LENGTH:
        raise ValueError("block header data is too short")
    time_hex = header_hex[TIME_HEX_SLICE]
    if not _HEX8.fullmatch(time_hex):
        raise ValueError(f"failed to parse timestamp: invalid hex {time_hex!r}")
    # Bytes are reversed and then read little-endian, i.e. read big-endian as written.
    return int.from_bytes(bytes.fromhex(time_hex), "big")


def _decode(value: Any, kind: type | tuple[type, ...], empty: Any, what: str) -> Any:
    """Check a decoded result's type; JSON null yields the type's empty value."""
    if value is None:
        return empty
    if isinstance(value, bool) and kind is not bool:
        raise ElectrumXError(f"failed to parse {what}: unexpected value {value!r}")
    if not isinstance(value, kind):
        log.error("failed to parse %s: %r", what, value)
        raise ElectrumXError(f"failed to parse {what}: unexpected value {value!r}")
    return value


def _require_script_hash(script_hash: str) -> None:
    if not script_hash:
        log.error("script hash must not be empty")
        raise ValueError("script hash must not be empty")


class ElectrumXApi:
    """Common ElectrumX calls with result checking and error wrapping."""

    def __init__(self, client: RpcCaller) -> None:
        self._client = client

    def call_method(self, method: str, params: list[Any]) -> Any:
        """Invoke ``method`` and return its decoded result."""
        log.info("calling ElectrumX method: %s", method)
        try:
            return self._client.call(method, params)
        except ElectrumXError as exc:
            log.error("ElectrumX method %s failed: %s", method, exc)
            raise

    def get_block_header(self, height: int) -> dict[str, Any]:
        result = self.call_method(METHOD_BLOCK_HEADER, [height])
        return dict(_decode(result, dict, {}, "block header"))

    def get_balance(self, script_hash: str) -> dict[str, Any]:
        """Return the confirmed/unconfirmed balance object for ``script_hash``."""
        return self.get_script_hash_balance(script_hash)

    def get_transaction_history(self, script_hash: str) -> list[Any]:
        result = self.call_method(METHOD_GET_HISTORY, [script_hash])
        return list(_decode(result, list, [], "transaction history"))

    def broadcast_transaction(self, raw_tx: str) -> str:
        """Broadcast a raw transaction and return its id."""
        result = self.call_method(METHOD_BROADCAST, [raw_tx])
        return _decode(result, str, "", "transaction id")

    def get_transaction(self, txid: str) -> dict[str, Any]:
        result = self.call_method(METHOD_GET_TRANSACTION, [txid, True])
        return dict(_decode(result, dict, {}, "transaction details"))

    def estimate_fee(self, blocks: int) -> float:
        result = self.call_method(METHOD_ESTIMATE_FEE, [blocks])
        return float(_decode(result, (int, float), 0.0, "fee"))

    def server_version(self) -> list[Any]:
        result = self.call_method(METHOD_SERVER_VERSION, [CLIENT_NAME, PROTOCOL_VERSION])
        return list(_decode(result, list, [], "server version"))

    def server_peers(self) -> list[Any]:
        result = self.call_method(METHOD_SERVER_PEERS, [])
        return list(_decode(result, list, [], "peer list"))

    def server_features(self) -> dict[str, Any]:
        result = self.call_method(METHOD_SERVER_FEATURES, [])
        return dict(_decode(result, dict, {}, "server features"))

    def get_list_unspent(self, script_hash: str) -> list[Any]:
        """Return the unspent outputs of ``script_hash``."""
        _require_script_hash(script_hash)
        log.info("fetching UTXOs for script hash %s", script_hash)
        try:
            result = self.call_method(METHOD_LIST_UNSPENT, [script_hash])
        except ElectrumXError as exc:
            raise ElectrumXError(f"failed to get UTXO: {exc}", exc.code) from exc
        utxos = list(_decode(result, list, [], "UTXO response"))
        log.info("got %s UTXOs", len(utxos))
        return utxos

    def get_script_hash_balance(self, script_hash: str) -> dict[str, Any]:
        """Return the balance object for ``script_hash``."""
        _require_script_hash(script_hash)
        log.info("fetching balance for script hash %s", script_hash)
        try:
            result = self.call_method(METHOD_GET_BALANCE, [script_hash])
        except ElectrumXError as exc:
            raise ElectrumXError(f"failed to get script hash balance: {exc}", exc.code) from exc
        balance = dict(_decode(result, dict, {}, "script hash balance"))
        log.info(
            "got balance: confirmed=%s, unconfirmed=%s",
            balance.get("confirmed"),
            balance.get("unconfirmed"),
        )
        return balance

    def get_script_hash_frozen_balance(self, script_hash: str) -> dict[str, Any]:
        """Return the frozen balance object for ``script_hash``."""
        _require_script_hash(script_hash)
        log.info("fetching frozen balance for script hash %s", script_hash)
        try:
            result = self.call_method(METHOD_GET_FROZEN_BALANCE, [script_hash])
        except ElectrumXError as exc:
            raise ElectrumXError(
                f"failed to get script hash frozen balance: {exc}", exc.code
            ) from exc
        frozen = dict(_decode(result, dict, {}, "script hash frozen balance"))
        log.info("got frozen balance: frozen=%s", frozen.get("frozen"))
        return frozen

    def get_block_by_height(self, height: int) -> dict[str, Any]:
        """Return ``{"hash", "height", "time"}`` for the block at ``height``."""
        if height < 0:
            log.error("block height must not be negative: %s", height)
            raise ValueError("block height must not be negative")

        log.info("fetching block info: height=%s", height)
        try:
            raw = self.call_method(METHOD_BLOCK_HEADER, [height])
        except ElectrumXError as exc:
            raise ElectrumXError(f"failed to get block header: {exc}", exc.code) from exc
        header_hex = _decode(raw, str, "", "block header")
        try:
            timestamp = parse_header_timestamp(header_hex)
        except ValueError as exc:
            log.error("bad block header at height %s: %s", height, exc)
            raise ElectrumXError(str(exc)) from exc

        try:
            raw_hash = self.call_method(METHOD_BLOCK_HEADER, [height, 1])
        except ElectrumXError as exc:
            raise ElectrumXError(f"failed to get block hash: {exc}", exc.code) from exc
        hash_obj = _decode(raw_hash, dict, {}, "block hash")
        block_hash = _decode(hash_obj.get("hash"), str, "", "block hash")

        log.info("got block info: height=%s, hash=%s, time=%s", height, block_hash, timestamp)
        return {"hash": block_hash, "height": height, "time": timestamp}

    def get_unspent(self, script_hash: str) -> list[Any]:
        """Return the unspent outputs of ``script_hash``."""
        _require_script_hash(script_hash)
        utxos = self.get_list_unspent(script_hash)
        log.info("got UTXOs for %s: count=%s", script_hash, len(utxos))
        return utxos

    def get_script_hash_history(self, script_hash: str) -> list[Any]:
        """Return the transaction history of ``script_hash``."""
        _require_script_hash(script_hash)
        log.info("fetching history for script hash %s", script_hash)
        try:
            result = self.call_method(METHOD_GET_HISTORY, [script_hash])
        except ElectrumXError as exc:
            raise ElectrumXError(f"failed to get script hash history: {exc}", exc.code) from exc
        history = list(_decode(result, list, [], "script hash history"))
        log.info("got history for %s: count=%s", script_hash, len(history))
        return history

    def get_script_hash_unspent(self, script_hash: str) -> list[Any]:
        """Return the unspent outputs of ``script_hash``."""
        _require_script_hash(script_hash)
        log.info("fetching UTXOs for script hash %s", script_hash)
        try:
            result = self.call_method(METHOD_LIST_UNSPENT, [script_hash])
        except ElectrumXError as exc:
            raise ElectrumXError(f"failed to get script hash UTXO: {exc}", exc.code) from exc
        utxos = list(_decode(result, list, [], "script hash UTXO"))
        log.info("got UTXOs for %s: count=%s", script_hash, len(utxos))
        return utxos