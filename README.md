# tbcexplorer

Client code for a TBC block explorer backend. The package talks to a full
node over JSON-RPC 1.0 (HTTP POST), to an ElectrumX server over
newline-delimited JSON-RPC 2.0 on TCP or TLS with a bounded connection pool,
and to the MEXC exchange for ticker data. On top of the node client it has
block request handlers that return `(HTTP status, JSON-ready body)` pairs.

## Installation

```
pip install tbcexplorer
```

To run the tests:

```
pip install "tbcexplorer[test]"
pytest
```

## Modules

| Module | Main names | Purpose |
| --- | --- | --- |
| `tbcexplorer.httpclient` | `HttpClient`, `HttpError`, `parse_response` | HTTP GET against a base URL (default timeout 10 s); any status other than 200 raises `HttpError`. `parse_response` decodes a JSON body. |
| `tbcexplorer.exchange` | `MexcClient` | `get_ticker_24h` and `get_ticker_price` for a symbol, returned as decoded JSON objects. |
| `tbcexplorer.blockchain_rpc` | `NodeConfig`, `NodeRpcClient`, `RpcError`, `check_node_config` | JSON-RPC 1.0 calls to the node, with basic authentication when both user and password are set. |
| `tbcexplorer.blockchain_methods` | `BlockchainApi`, `BlockInfo`, `block_info_from_dict` | Blocks by height or hash, block headers, the ten headers below the tip, chain info and transactions. |
| `tbcexplorer.electrumx_client` | `ElectrumXConfig`, `ElectrumXClient`, `ConnPool`, `check_electrumx_config`, `ElectrumXError`, `PoolClosedError`, `NoPoolError`, `ConnTimeoutError` | ElectrumX connections (protocol `tcp`, `tcp4` or `tcp6`, optional TLS without certificate checks), each checked with `server.ping`, and a pool of them. |
| `tbcexplorer.electrumx_methods` | `ElectrumXApi`, `parse_header_timestamp` | Balances, frozen balances, UTXOs, history, broadcasting, fee estimates, server version, peers and features, and block hash/time by height. |
| `tbcexplorer.services` | `BlockService`, `ChainInfo`, `chain_info_from_dict`, `health_check` | Request handlers for block and chain endpoints, and a health check. |

## Examples

Current price on MEXC:

```python
from tbcexplorer.exchange import MexcClient

price = MexcClient().get_ticker_price("TBCUSDT")
print(price["symbol"], price["price"])
```

An empty symbol is refused before any request is sent:

```python
MexcClient().get_ticker_24h("")   # raises ValueError
```

Querying a node:

```python
from tbcexplorer.blockchain_rpc import NodeConfig, NodeRpcClient
from tbcexplorer.blockchain_methods import BlockchainApi

password = "password"
config = NodeConfig(url="http://localhost:8332", user="user", password=password, timeout=10)
api = BlockchainApi(NodeRpcClient(config))

block = api.get_block_by_height_structured(100)
print(block.hash, block.time)
```

ElectrumX, through the pool that `ElectrumXClient` enables by default:

```python
from tbcexplorer.electrumx_client import ElectrumXConfig, ElectrumXClient, check_electrumx_config
from tbcexplorer.electrumx_methods import ElectrumXApi

config = check_electrumx_config(ElectrumXConfig(host="localhost", port=50001))
client = ElectrumXClient(config)
balance = ElectrumXApi(client).get_script_hash_balance("a1b2c3...")
print(client.pool_stats())   # (idle connections, open connections)
```

Block handlers take any object with the `fetch_*` methods of `BlockchainApi`,
and optionally validators that raise `ValueError` for a bad height or hash:

```python
from tbcexplorer.services import BlockService, health_check

service = BlockService(api)
status, body = service.get_block_by_height("100")
status, body = service.get_block_by_height("abc")
# (200, {"error": "block height must be an integer"})

health_check()
# (200, {"code": 200, "message": "Turing API is running.", "data": {}})
```

`get_nearby_10_headers` answers 404 when no header could be fetched;
other failures are reported as 200 with an `{"error": ...}` body.

## Errors

Failures are raised: `HttpError` for HTTP problems, `RpcError` when a node
call fails or the node reports an error, and `ElectrumXError` (with
`PoolClosedError`, `NoPoolError` and `ConnTimeoutError`) for ElectrumX
connections and the pool. Invalid arguments — an empty symbol, a negative
block height, an empty script hash or transaction id — raise `ValueError`.

## What it does not do

The package provides no HTTP server or routing: the handlers in
`tbcexplorer.services` return status and body pairs for a web framework of
your choice to send. It does not read configuration files, keep a database,
convert addresses to script hashes, or include handlers for addresses,
tokens, NFTs or scripts; settings are passed in as `NodeConfig` and
`ElectrumXConfig` objects.