"""Line-delimited JSON-RPC client for ElectrumX servers, with a connection pool."""

from __future__ import annotations

import itertools
import json
import logging
import queue
import socket
import ssl
import threading
import time
from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"
PING_METHOD = "server.ping"

DEFAULT_IDLE_TIMEOUT = 600.0
DEFAULT_MAX_IDLE_CONNS = 10
DEFAULT_MAX_OPEN_CONNS = 20
CONN_RETRY_DELAY = 5.0
VALIDATE_TIMEOUT = 1.0
MAX_RESPONSE_SIZE = 10 * 1024 * 1024
LOGGED_RESPONSE_LIMIT = 500

_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}

log = logging.getLogger(__name__)


@dataclass
class ElectrumXConfig:
    """Server address and pool limits; ``timeout`` is in seconds, 0 means none."""

    host: str
    port: int
    protocol: str = "tcp"
    use_tls: bool = False
    timeout: int = 10
    max_idle_conns: int = 0
    max_open_conns: int = 0


class ElectrumXError(Exception):
    """Raised when talking to the ElectrumX server fails."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class PoolClosedError(ElectrumXError):
    """The connection pool has been closed."""

    def __init__(self, message: str = "connection pool is closed") -> None:
        super().__init__(message)


class NoPoolError(ElectrumXError):
    """The client is not using a connection pool."""

    def __init__(self, message: str = "connection pool is not enabled") -> None:
        super().__init__(message)


class ConnTimeoutError(ElectrumXError):
    """No pooled connection became available in time."""

    def __init__(self, message: str = "timed out waiting for a connection") -> None:
        super().__init__(message)


def check_electrumx_config(config: ElectrumXConfig | None) -> ElectrumXConfig:
    """Validate settings and fill in default pool sizes; raises ``ValueError``."""
    if config is None:
        raise ValueError("ElectrumX RPC configuration is missing")
    if not config.host:
        raise ValueError("ElectrumX RPC host is not configured")
    if config.port <= 0:
        raise ValueError("ElectrumX RPC port is invalid")
    if config.max_idle_conns <= 0:
        config.max_idle_conns = DEFAULT_MAX_IDLE_CONNS
        log.info("ElectrumX max idle connections not set, using %s", DEFAULT_MAX_IDLE_CONNS)
    if config.max_open_conns <= 0:
        config.max_open_conns = DEFAULT_MAX_OPEN_CONNS
        log.info("ElectrumX max open connections not set, using %s", DEFAULT_MAX_OPEN_CONNS)
    log.info(
        "ElectrumX RPC client ready, server: %s:%s, max idle: %s, max open: %s",
        config.host,
        config.port,
        config.max_idle_conns,
        config.max_open_conns,
    )
    return config


class _Connection:
    """A socket with a persistent line reader."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._reader = sock.makefile("rb")

    def settimeout(self, timeout: float | None) -> None:
        self._sock.settimeout(timeout)

    def send(self, data: bytes) -> None:
        self._sock.sendall(data)

    def read_line(self, limit: int = -1) -> bytes:
        return self._reader.readline(limit)

    def close(self) -> None:
        try:
            self._reader.close()
        finally:
            self._sock.close()

    def __enter__(self) -> _Connection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _encode_request(req_id: int, method: str, params: Any) -> bytes:
    payload = {"jsonrpc": JSONRPC_VERSION, "id": req_id, "method": method, "params": params}
    try:
        return json.dumps(payload).encode() + b"\n"
    except (TypeError, ValueError) as exc:
        raise ElectrumXError(f"failed to serialise RPC request: {exc}") from exc


class ConnPool:
    """A bounded pool of validated connections to one ElectrumX server."""

    def __init__(
        self,
        client: ElectrumXClient,
        max_idle_conns: int = 0,
        max_open_conns: int = 0,
        idle_timeout: float = 0.0,
    ) -> None:
        if client is None:
            raise ValueError("ElectrumX client must not be None")
        config = client.config

        max_idle = DEFAULT_MAX_IDLE_CONNS
        max_open = DEFAULT_MAX_OPEN_CONNS
        if config.max_idle_conns > 0:
            max_idle = config.max_idle_conns
        if config.max_open_conns > 0:
            max_open = config.max_open_conns
        if max_idle_conns > 0:
            max_idle = max_idle_conns
        if max_open_conns > 0:
            max_open = max_open_conns
        max_idle = min(max_idle, max_open)

        self.max_idle_conns = max_idle
        self.max_open_conns = max_open
        self.conn_timeout = float(config.timeout)
        self.idle_timeout = idle_timeout if idle_timeout > 0 else DEFAULT_IDLE_TIMEOUT

        self._client = client
        self._lock = threading.Lock()
        self._idle: queue.Queue[_Connection | None] = queue.Queue(maxsize=max_idle)
        self._created = 0
        self._conn_err: ElectrumXError | None = None
        self._last_conn_err = 0.0
        self._closed = False
        self._stop = threading.Event()

        threading.Thread(target=self._clean_idle, daemon=True).start()
        log.info(
            "ElectrumX pool created, max idle: %s, max open: %s, idle timeout: %ss",
            max_idle,
            max_open,
            self.idle_timeout,
        )

    def get_conn(self, timeout: float | None = None) -> _Connection:
        """Take a connection, creating one if allowed, else wait up to ``timeout`` seconds."""
        wait = self.conn_timeout if timeout is None else timeout
        return self._acquire(time.monotonic() + wait)

    def _acquire(self, deadline: float) -> _Connection:
        create = False
        with self._lock:
            if self._closed:
                raise PoolClosedError()
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                conn = None
                if self._created < self.max_open_conns:
                    self._created += 1
                    create = True

        if conn is not None:
            if self._validate(conn):
                log.debug("took connection from pool")
                return conn
            conn.close()
            return self._create_conn()
        if create:
            return self._create_conn()

        remaining = max(0.0, deadline - time.monotonic())
        try:
            conn = self._idle.get(timeout=remaining)
        except queue.Empty:
            raise ConnTimeoutError() from None
        if conn is None:
            self._repost_sentinel()
            raise PoolClosedError()
        if not self._validate(conn):
            conn.close()
            with self._lock:
                self._created -= 1
            return self._acquire(deadline)
        return conn

    def _create_conn(self) -> _Connection:
        with self._lock:
            err = self._conn_err
            if err is not None and time.monotonic() - self._last_conn_err < CONN_RETRY_DELAY:
                self._created -= 1
                raise ElectrumXError(str(err), err.code) from err
        try:
            conn = self._client.connect()
        except ElectrumXError as exc:
            with self._lock:
                self._conn_err = exc
                self._last_conn_err = time.monotonic()
                self._created -= 1
            log.error("failed to create ElectrumX connection: %s", exc)
            raise
        log.debug("created new ElectrumX connection")
        return conn

    def put_conn(self, conn: _Connection | None) -> None:
        """Return a connection; it is closed if the pool is closed or full."""
        if conn is None:
            return
        with self._lock:
            if self._closed:
                conn.close()
                return
            try:
                self._idle.put_nowait(conn)
            except queue.Full:
                self._created -= 1
                conn.close()

    def _validate(self, conn: _Connection) -> bool:
        try:
            conn.settimeout(VALIDATE_TIMEOUT)
            conn.send(_encode_request(1, PING_METHOD, []))
            if not conn.read_line():
                log.error("connection check failed: connection closed")
                return False
            return True
        except OSError as exc:
            log.error("connection check failed: %s", exc)
            return False
        finally:
            try:
                conn.settimeout(None)
            except OSError:
                pass

    def _repost_sentinel(self) -> None:
        try:
            self._idle.put_nowait(None)
        except queue.Full:
            pass

    def close(self) -> None:
        """Close the pool and every idle connection; closing twice raises."""
        with self._lock:
            if self._closed:
                raise PoolClosedError()
            self._stop.set()
            self._closed = True
            while True:
                try:
                    conn = self._idle.get_nowait()
                except queue.Empty:
                    break
                if conn is not None:
                    conn.close()
            self._repost_sentinel()
        log.info("ElectrumX pool closed")

    def stats(self) -> tuple[int, int]:
        """Return ``(idle connections, open connections)``."""
        with self._lock:
            idle = 0 if self._closed else self._idle.qsize()
            return idle, self._created

    def _clean_idle(self) -> None:
        while not self._stop.wait(self.idle_timeout / 2):
            with self._lock:
                if self._closed:
                    return
                for _ in range(self._idle.qsize() - self.max_idle_conns):
                    try:
                        conn = self._idle.get_nowait()
                    except queue.Empty:
                        break
                    if conn is not None:
                        conn.close()
                        self._created -= 1


class ElectrumXClient:
    """Calls ElectrumX methods, through a pool by default or over one-off connections."""

    def __init__(self, config: ElectrumXConfig, use_pool: bool = True) -> None:
        if config is None:
            raise ValueError("ElectrumX configuration is missing")
        self.config = config
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()
        self._pool: ConnPool | None = None
        self._use_pool = False
        self._pool_lock = threading.Lock()
        if use_pool:
            try:
                self.enable_pool()
            except (ElectrumXError, ValueError) as exc:
                log.warning("could not enable ElectrumX pool: %s; using direct connections", exc)

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def enable_pool(self) -> None:
        """Start using a connection pool, creating it if needed."""
        with self._pool_lock:
            if self._pool is None:
                self._pool = ConnPool(
                    self,
                    max_idle_conns=self.config.max_idle_conns,
                    max_open_conns=self.config.max_open_conns,
                )
                log.info("ElectrumX client pool enabled")
            self._use_pool = True

    def disable_pool(self) -> None:
        """Stop using the pool and close it."""
        with self._pool_lock:
            self._use_pool = False
            if self._pool is not None:
                try:
                    self._pool.close()
                except PoolClosedError as exc:
                    raise ElectrumXError(f"failed to close connection pool: {exc}") from exc
                self._pool = None
        log.info("ElectrumX client pool disabled")

    def pool_stats(self) -> tuple[int, int]:
        """Return the pool's ``(idle, open)`` counts; raises ``NoPoolError`` without one."""
        with self._pool_lock:
            if self._pool is None or not self._use_pool:
                raise NoPoolError()
            return self._pool.stats()

    def connect(self) -> _Connection:
        """Open a new connection, check it with a ping and hand it to the caller."""
        cfg = self.config
        family = _FAMILIES.get(cfg.protocol)
        if family is None:
            raise ElectrumXError(f"unsupported protocol: {cfg.protocol}")
        timeout = cfg.timeout or None
        log.info("creating ElectrumX connection to %s:%s", cfg.host, cfg.port)

        try:
            sock = self._dial(family, timeout)
        except OSError as exc:
            log.error("failed to create ElectrumX connection: %s", exc)
            raise ElectrumXError(f"failed to create connection: {exc}") from exc

        conn = _Connection(sock)
        try:
            conn.settimeout(timeout)
            conn.send(_encode_request(self._next_id(), PING_METHOD, []))
            if not conn.read_line():
                raise ElectrumXError("failed to read ping response: connection closed")
            conn.settimeout(None)
        except OSError as exc:
            conn.close()
            raise ElectrumXError(f"ping on new connection failed: {exc}") from exc
        except ElectrumXError:
            conn.close()
            raise

        log.info("ElectrumX connection created and checked")
        return conn

    def _dial(self, family: int, timeout: float | None) -> socket.socket:
        cfg = self.config
        if family == socket.AF_UNSPEC:
            sock = socket.create_connection((cfg.host, cfg.port), timeout=timeout)
        else:
            sock = None
            last_error: OSError | None = None
            for fam, kind, proto, _, addr in socket.getaddrinfo(
                cfg.host, cfg.port, family, socket.SOCK_STREAM
            ):
                candidate = socket.socket(fam, kind, proto)
                candidate.settimeout(timeout)
                try:
                    candidate.connect(addr)
                except OSError as exc:
                    candidate.close()
                    last_error = exc
                    continue
                sock = candidate
                break
            if sock is None:
                raise last_error or OSError(f"no address found for {cfg.host}")
        if cfg.use_tls:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            try:
                sock = context.wrap_socket(sock, server_hostname=cfg.host)
            except OSError:
                sock.close()
                raise
        return sock

    def call(self, method: str, params: Any) -> Any:
        """Invoke ``method`` with ``params`` and return the decoded result."""
        with self._pool_lock:
            pool = self._pool if self._use_pool else None
        if pool is not None:
            return self._call_with_pool(pool, method, params)
        with self.connect() as conn:
            return self._exchange(conn, method, params)

    def _call_with_pool(self, pool: ConnPool, method: str, params: Any) -> Any:
        try:
            conn = pool.get_conn()
        except ElectrumXError as exc:
            log.error("failed to get connection from pool: %s", exc)
            raise
        try:
            return self._exchange(conn, method, params)
        finally:
            pool.put_conn(conn)

    def _exchange(self, conn: _Connection, method: str, params: Any) -> Any:
        req_id = self._next_id()
        request = _encode_request(req_id, method, params)
        log.debug("sending ElectrumX RPC request: method=%s, params=%r", method, params)

        try:
            conn.settimeout(self.config.timeout or None)
            conn.send(request)
        except OSError as exc:
            log.error("failed to send RPC request: %s", exc)
            raise ElectrumXError(f"failed to send RPC request: {exc}") from exc

        buffer = bytearray()
        while True:
            if len(buffer) > MAX_RESPONSE_SIZE:
                limit_mb = MAX_RESPONSE_SIZE // (1024 * 1024)
                log.error("RPC response exceeds %sMB", limit_mb)
                raise ElectrumXError(f"RPC response too large, over the {limit_mb}MB limit")

            try:
                line = conn.read_line(MAX_RESPONSE_SIZE + 1)
            except OSError as exc:
                log.error("failed to read RPC response: %s", exc)
                raise ElectrumXError(f"failed to read RPC response: {exc}") from exc
            buffer += line

            try:
                reply = json.loads(buffer)
            except ValueError:
                reply = None
            else:
                if isinstance(reply, dict) and reply.get("id") == req_id:
                    conn.settimeout(None)
                    return self._unwrap(reply, method, len(buffer))
                buffer.clear()

            if not line:
                text = buffer.decode(errors="replace")
                if len(text) > LOGGED_RESPONSE_LIMIT:
                    text = text[:LOGGED_RESPONSE_LIMIT] + "... [truncated]"
                log.error("connection closed before a complete response: %s", text)
                raise ElectrumXError("connection closed before a complete response was received")

    @staticmethod
    def _unwrap(reply: dict[str, Any], method: str, size: int) -> Any:
        error = reply.get("error")
        if error is not None:
            if isinstance(error, dict):
                message = str(error.get("message", ""))
                code = error.get("code", 0)
            else:
                message, code = str(error), 0
            log.warning("RPC call error: %s (code: %s)", message, code)
            raise ElectrumXError(f"RPC call error: {message} (code: {code})", code)
        log.debug("received ElectrumX RPC response: method=%s, size=%s bytes", method, size)
        return reply.get("result")