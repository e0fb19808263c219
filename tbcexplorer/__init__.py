"""Node JSON-RPC, pooled ElectrumX and MEXC clients, with block request handlers."""

__version__ = "0.1.0"

__all__ = [
    "blockchain_methods",
    "blockchain_rpc",
    "electrumx_client",
    "electrumx_methods",
    "exchange",
    "httpclient",
    "services",
]