import pytest

from tbcexplorer.blockchain_rpc import RpcError
from tbcexplorer.services import (
    BlockService,
    ChainInfo,
    chain_info_from_dict,
    health_check,
)


class FakeApi:
    def __init__(self, fail=False, headers=None, chain=None):
        self.fail = fail
        self.headers = headers if headers is not None else [{"height": 1}]
        self.chain = chain if chain is not None else {}
        self.calls = []

    def _maybe_fail(self):
        if self.fail:
            raise RpcError("boom")

    def fetch_block_by_height(self, height):
        self.calls.append(("block_height", height))
        self._maybe_fail()
        return {"height": height}

    def fetch_block_by_hash(self, block_hash):
        self.calls.append(("block_hash", block_hash))
        self._maybe_fail()
        return {"hash": block_hash}

    def fetch_block_header_by_height(self, height):
        self.calls.append(("header_height", height))
        self._maybe_fail()
        return {"height": height, "kind": "header"}

    def fetch_block_header_by_hash(self, block_hash):
        self.calls.append(("header_hash", block_hash))
        self._maybe_fail()
        return {"hash": block_hash, "kind": "header"}

    def fetch_nearby_10_headers(self):
        self._maybe_fail()
        return self.headers

    def fetch_chain_info(self):
        self._maybe_fail()
        return self.chain


def reject_negative(height):
    if height < 0:
        raise ValueError("negative height")


def reject_short(block_hash):
    if len(block_hash) != 64:
        raise ValueError("bad hash")


def test_block_by_height_parses_string():
    api = FakeApi()
    status, body = BlockService(api).get_block_by_height("42")
    assert status == 200
    assert body == {"height": 42}
    assert api.calls == [("block_height", 42)]


@pytest.mark.parametrize("height", ["abc", "", "1.5", " 7", "1_000", "99999999999999999999"])
def test_block_by_height_rejects_non_integer(height):
    api = FakeApi()
    status, body = BlockService(api).get_block_by_height(height)
    assert status == 200
    assert "error" in body
    assert api.calls == []


def test_height_validator_message_is_returned():
    api = FakeApi()
    service = BlockService(api, validate_height=reject_negative)
    status, body = service.get_block_header_by_height("-3")
    assert (status, body) == (200, {"error": "negative height"})
    assert api.calls == []


def test_block_by_height_rpc_failure():
    status, body = BlockService(FakeApi(fail=True)).get_block_by_height("1")
    assert status == 200
    assert set(body) == {"error"}


def test_block_by_hash_and_validator():
    api = FakeApi()
    service = BlockService(api, validate_hash=reject_short)
    good = "a" * 64
    assert service.get_block_by_hash(good) == (200, {"hash": good})
    assert service.get_block_by_hash("abc") == (200, {"error": "bad hash"})
    assert api.calls == [("block_hash", good)]


def test_header_by_hash_and_height():
    service = BlockService(FakeApi())
    assert service.get_block_header_by_hash("ff") == (200, {"hash": "ff", "kind": "header"})
    assert service.get_block_header_by_height("+8") == (200, {"height": 8, "kind": "header"})


def test_header_by_hash_rpc_failure():
    status, body = BlockService(FakeApi(fail=True)).get_block_header_by_hash("ff")
    assert status == 200
    assert "error" in body


def test_nearby_headers_ok():
    headers = [{"height": 5}, {"height": 4}]
    assert BlockService(FakeApi(headers=headers)).get_nearby_10_headers() == (200, headers)


def test_nearby_headers_empty_is_not_found():
    status, body = BlockService(FakeApi(headers=[])).get_nearby_10_headers()
    assert status == 404
    assert "error" in body


def test_nearby_headers_rpc_failure():
    status, body = BlockService(FakeApi(fail=True)).get_nearby_10_headers()
    assert status == 200
    assert "error" in body


def test_chain_info_conversion():
    data = {
        "bestblockhash": "00ab",
        "blocks": 100.0,
        "chain": "main",
        "chainwork": "0f",
        "difficulty": 2.5,
        "headers": 101,
        "mediantime": 1700000000,
        "pruned": True,
        "verificationprogress": 0.75,
    }
    status, info = BlockService(FakeApi(chain=data)).get_chain_info()
    assert status == 200
    assert info == ChainInfo(
        best_block_hash="00ab",
        blocks=100,
        chain="main",
        chain_work="0f",
        difficulty=2.5,
        headers=101,
        median_time=1700000000,
        pruned=True,
        verification_progress=0.75,
    )


def test_chain_info_defaults_for_bad_fields():
    info = chain_info_from_dict({"blocks": "x", "pruned": 1, "chain": 3, "difficulty": True})
    assert info == ChainInfo()


def test_chain_info_rpc_failure():
    status, body = BlockService(FakeApi(fail=True)).get_chain_info()
    assert status == 200
    assert "error" in body


def test_health_check():
    status, body = health_check()
    assert status == 200
    assert body == {"code": 200, "message": "Turing API is running.", "data": {}}