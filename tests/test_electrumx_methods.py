import pytest

from tbcexplorer.electrumx_client import ElectrumXError
from tbcexplorer.electrumx_methods import ElectrumXApi, parse_header_timestamp


class FakeClient:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    def call(self, method, params):
        self.calls.append((method, params))
        if self.error is not None:
            raise self.error
        value = self.responses[method]
        if callable(value):
            return value(params)
        return value


def make_header(timestamp):
    header = "0" * 68 + f"{timestamp:08x}" + "0" * 84
    assert len(header) == 160
    return header


@pytest.mark.parametrize("timestamp", [0, 1, 1700000000, 0xFFFFFFFF])
def test_parse_header_timestamp_round_trip(timestamp):
    assert parse_header_timestamp(make_header(timestamp)) == timestamp


def test_parse_header_timestamp_too_short():
    with pytest.raises(ValueError):
        parse_header_timestamp("00" * 79)


def test_parse_header_timestamp_invalid_hex():
    header = "0" * 68 + "zz" + "0" * 90
    with pytest.raises(ValueError):
        parse_header_timestamp(header)


def test_call_method_passes_through():
    client = FakeClient({"server.ping": None})
    api = ElectrumXApi(client)
    assert api.call_method("server.ping", []) is None
    assert client.calls == [("server.ping", [])]


def test_call_method_propagates_error():
    api = ElectrumXApi(FakeClient(error=ElectrumXError("boom")))
    with pytest.raises(ElectrumXError, match="boom"):
        api.call_method("server.ping", [])


def test_get_balance_params_and_result():
    client = FakeClient({"blockchain.scripthash.get_balance": {"confirmed": 5, "unconfirmed": 2}})
    api = ElectrumXApi(client)
    assert api.get_balance("abc") == {"confirmed": 5, "unconfirmed": 2}
    assert client.calls == [("blockchain.scripthash.get_balance", ["abc"])]


@pytest.mark.parametrize(
    "name",
    [
        "get_balance",
        "get_list_unspent",
        "get_script_hash_balance",
        "get_script_hash_frozen_balance",
        "get_unspent",
        "get_script_hash_history",
        "get_script_hash_unspent",
    ],
)
def test_empty_script_hash_rejected(name):
    client = FakeClient()
    api = ElectrumXApi(client)
    with pytest.raises(ValueError):
        getattr(api, name)("")
    assert client.calls == []


def test_get_balance_wraps_rpc_error():
    api = ElectrumXApi(FakeClient(error=ElectrumXError("down", 7)))
    with pytest.raises(ElectrumXError, match="down") as info:
        api.get_script_hash_balance("abc")
    assert info.value.code == 7


def test_frozen_balance():
    client = FakeClient({"blockchain.scripthash.get_frozen_balance": {"frozen": 9}})
    assert ElectrumXApi(client).get_script_hash_frozen_balance("abc") == {"frozen": 9}


def test_list_unspent_and_aliases():
    utxos = [{"tx_hash": "t1", "tx_pos": 0, "value": 10}]
    client = FakeClient({"blockchain.scripthash.listunspent": utxos})
    api = ElectrumXApi(client)
    assert api.get_list_unspent("abc") == utxos
    assert api.get_unspent("abc") == utxos
    assert api.get_script_hash_unspent("abc") == utxos
    assert all(call == ("blockchain.scripthash.listunspent", ["abc"]) for call in client.calls)


def test_list_unspent_bad_type():
    client = FakeClient({"blockchain.scripthash.listunspent": {"not": "a list"}})
    with pytest.raises(ElectrumXError):
        ElectrumXApi(client).get_list_unspent("abc")


def test_null_result_gives_empty_list():
    client = FakeClient({"blockchain.scripthash.get_history": None})
    assert ElectrumXApi(client).get_script_hash_history("abc") == []


def test_history():
    history = [{"tx_hash": "t1", "height": 3}]
    client = FakeClient({"blockchain.scripthash.get_history": history})
    api = ElectrumXApi(client)
    assert api.get_script_hash_history("abc") == history
    assert api.get_transaction_history("abc") == history


def test_broadcast_transaction():
    client = FakeClient({"blockchain.transaction.broadcast": "txid1"})
    assert ElectrumXApi(client).broadcast_transaction("rawhex") == "txid1"
    assert client.calls == [("blockchain.transaction.broadcast", ["rawhex"])]


def test_broadcast_transaction_bad_type():
    client = FakeClient({"blockchain.transaction.broadcast": 12})
    with pytest.raises(ElectrumXError):
        ElectrumXApi(client).broadcast_transaction("rawhex")


def test_get_transaction_requests_verbose():
    client = FakeClient({"blockchain.transaction.get": {"txid": "t1"}})
    assert ElectrumXApi(client).get_transaction("t1") == {"txid": "t1"}
    assert client.calls == [("blockchain.transaction.get", ["t1", True])]


def test_estimate_fee_accepts_int():
    client = FakeClient({"blockchain.estimatefee": 1})
    assert ElectrumXApi(client).estimate_fee(6) == 1.0
    assert client.calls == [("blockchain.estimatefee", [6])]


def test_server_version_params():
    client = FakeClient({"server.version": ["ElectrumX", "1.4"]})
    assert ElectrumXApi(client).server_version() == ["ElectrumX", "1.4"]
    assert client.calls == [("server.version", ["electrumx-client", "1.4"])]


def test_server_peers_and_features():
    client = FakeClient({"server.peers.subscribe": [], "server.features": {"pruning": None}})
    api = ElectrumXApi(client)
    assert api.server_peers() == []
    assert api.server_features() == {"pruning": None}


def test_get_block_header_requires_object():
    client = FakeClient({"blockchain.block.header": "abcd"})
    with pytest.raises(ElectrumXError):
        ElectrumXApi(client).get_block_header(1)


def test_get_block_by_height():
    timestamp = 1700000000

    def respond(params):
        if len(params) == 1:
            return make_header(timestamp)
        return {"hash": "blockhash"}

    client = FakeClient({"blockchain.block.header": respond})
    result = ElectrumXApi(client).get_block_by_height(5)
    assert result == {"hash": "blockhash", "height": 5, "time": timestamp}
    assert client.calls == [
        ("blockchain.block.header", [5]),
        ("blockchain.block.header", [5, 1]),
    ]


def test_get_block_by_height_negative():
    client = FakeClient()
    with pytest.raises(ValueError):
        ElectrumXApi(client).get_block_by_height(-1)
    assert client.calls == []


def test_get_block_by_height_short_header():
    client = FakeClient({"blockchain.block.header": "00"})
    with pytest.raises(ElectrumXError):
        ElectrumXApi(client).get_block_by_height(3)
    assert len(client.calls) == 1