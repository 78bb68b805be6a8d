import json
from urllib.parse import urlencode

import pytest
from aiohttp.test_utils import TestClient, TestServer

from rollnode.handler import get_http_handler
from rollnode.rpc_types import ErrorCode, Response

QUERY = "message.sender='cosmos1njr26e02fjcq3schxstv458a3w5szp678h23dh'"
QUERY2 = "message.sender CONTAINS 'cosmos1njr26e02fjcq3schxstv458a3w5szp678h23dh'"


async def _events():
    yield {"block": {"height": 1}, "result_finalize_block": {}}


class FakeClient:
    def __init__(self):
        self.subs = set()
        self.calls = []

    async def health(self):
        return {}

    async def status(self):
        return {"node_info": {"id": "b93270b358a72a2db30089f3856475bb1f918d6d",
                              "network": "cosmoshub-4"},
                "sync_info": {"latest_block_height": "5622165", "catching_up": False}}

    async def abci_info(self):
        return {"response": {"data": "mock", "last_block_height": "345"}}

    async def block(self, height):
        raise RuntimeError(f"failed to load hash from index for height {height}")

    async def tx_search(self, query, prove, page, per_page, order_by):
        self.calls.append((query, prove, page, per_page, order_by))
        return {"txs": [], "total_count": "0"}

    async def check_tx(self, tx):
        self.calls.append(tx)
        return {"gas_wanted": "1000", "gas_used": "1000"}

    async def subscribe(self, addr, query, size):
        if query.count("'") % 2:
            raise ValueError("failed to parse query")
        if (addr, query) in self.subs:
            raise ValueError("already subscribed")
        self.subs.add((addr, query))
        return _events()

    async def unsubscribe(self, addr, query):
        if (addr, query) not in self.subs:
            raise ValueError("subscription not found")
        self.subs.discard((addr, query))

    async def unsubscribe_all(self, addr):
        mine = {s for s in self.subs if s[0] == addr}
        if not mine:
            raise ValueError("subscription not found")
        self.subs -= mine


def _client(fake):
    return TestClient(TestServer(get_http_handler(fake, None).application()))


def _rpc(method, params):
    return json.dumps({"jsonrpc": "2.0", "method": method, "params": params, "id": 1})


@pytest.mark.asyncio
async def test_handler_mapping():
    async with _client(FakeClient()) as client:
        resp = await client.post("/", data=_rpc("health", {}))
        assert resp.status == 200
        assert Response.from_json(await resp.text()).error is None


TX_PARAMS = urlencode(sorted({"query": QUERY, "prove": "true", "page": "1",
                              "per_page": "10", "order_by": "asc"}.items()))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "uri,code,contains",
    [
        ("/block?so{}wrong!", ErrorCode.INVALID_REQUEST, ""),
        ("/block", ErrorCode.INVALID_REQUEST, "missing param 'height'"),
        ("/abci_info", -1, '"last_block_height":"345"'),
        ("/block?height=321", ErrorCode.INTERNAL, "failed to load hash from index"),
        ("/block?height=foo", ErrorCode.PARSE, "failed to parse param 'height'"),
        ("/tx_search?" + TX_PARAMS, -1, '"total_count":"0"'),
        ("/tx_search?" + TX_PARAMS.replace("true", "blue", 1), ErrorCode.PARSE,
         "failed to parse param 'prove'"),
        ("/check_tx?tx=DEADBEEF", -1, '"gas_used":"1000"'),
        ("/check_tx?tx=QWERTY", ErrorCode.PARSE, "failed to parse param 'tx'"),
    ],
)
async def test_rest(uri, code, contains):
    async with _client(FakeClient()) as client:
        resp = await client.post(uri)
        assert resp.status == 200
        body = await resp.text()
        assert body
        assert contains in body
        parsed = Response.from_json(body)
        assert parsed.id == -1
        if code != -1:
            assert parsed.error is not None
            assert parsed.error.code == code


@pytest.mark.asyncio
async def test_rest_hex_param_decoded():
    fake = FakeClient()
    async with _client(fake) as client:
        await client.post("/check_tx?tx=DEADBEEF")
    assert fake.calls == [bytes.fromhex("DEADBEEF")]


@pytest.mark.asyncio
async def test_empty_request():
    async with _client(FakeClient()) as client:
        resp = await client.get("/")
        assert resp.status == 200
        assert await resp.text() == ""


@pytest.mark.asyncio
async def test_stringy_request():
    broken = ('{"jsonrpc":"2.0","id":0,"method":"tx_search","params":{"order_by":"","page":"1",'
              '"per_page":"1000","prove":true,"query":"' + QUERY + '"}}')
    fake = FakeClient()
    async with _client(fake) as client:
        resp = await client.get("/", data=broken)
        assert resp.status == 200
        assert await resp.text() == '{"jsonrpc":"2.0","result":{"txs":[],"total_count":"0"},"id":0}\n'
    assert fake.calls == [(QUERY, True, 1, 1000, "")]


@pytest.mark.asyncio
async def test_subscription():
    async with _client(FakeClient()) as client:
        async def call(method, params):
            resp = await client.get("/", data=_rpc(method, params))
            assert resp.status == 200
            return Response.from_json(await resp.text()).error

        assert await call("subscribe", {"query": QUERY}) is None
        assert await call("subscribe", {"query": QUERY2}) is None
        assert "failed to parse query" in (await call("subscribe", {"query": "message.sender='broken"})).message
        assert "already subscribed" in (await call("subscribe", {"query": QUERY})).message
        assert await call("unsubscribe", {"query": QUERY}) is None
        assert "subscription not found" in (await call("unsubscribe", {"query": QUERY})).message
        assert await call("unsubscribe_all", {}) is None
        assert "subscription not found" in (await call("unsubscribe_all", {})).message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("/health", {"jsonrpc": "2.0", "id": -1, "result": {}}),
        ("/status", {"jsonrpc": "2.0", "id": -1, "result": {
            "node_info": {"id": "b93270b358a72a2db30089f3856475bb1f918d6d", "network": "cosmoshub-4"},
            "sync_info": {"latest_block_height": "5622165", "catching_up": False}}}),
    ],
)
async def test_rest_serialization(endpoint, expected):
    async with _client(FakeClient()) as client:
        resp = await client.post(endpoint)
        assert resp.status == 200
        assert json.loads(await resp.text()) == expected


@pytest.mark.asyncio
async def test_unknown_method():
    async with _client(FakeClient()) as client:
        resp = await client.post("/", data=_rpc("nope", {}))
        assert Response.from_json(await resp.text()).error.code == ErrorCode.NO_METHOD


@pytest.mark.asyncio
async def test_websockets():
    fake = FakeClient()
    async with _client(fake) as client:
        ws = await client.ws_connect("/websocket")
        await ws.send_str(json.dumps({"jsonrpc": "2.0", "method": "subscribe", "id": 7,
                                      "params": {"query": "tm.event='NewBlock'"}}))
        first = Response.from_json(await ws.receive_str(timeout=1))
        assert first.error is None
        assert first.id == 7
        event = Response.from_json(await ws.receive_str(timeout=3))
        assert event.result["block"]["height"] >= 1
        assert len(fake.subs) == 1
        await ws.close()