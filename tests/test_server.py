import aiohttp
import pytest

from rollnode.server import RPCConfig, Server


class FakeClient:
    async def health(self):
        return {}


class FakeNode:
    def __init__(self):
        self.client = FakeClient()

    def get_client(self):
        return self.client


def test_client_is_node_client():
    node = FakeNode()
    assert Server(node, RPCConfig()).client() is node.client


def test_cors_enabled():
    assert RPCConfig().cors_enabled() is False
    assert RPCConfig(cors_allowed_origins=["*"]).cors_enabled() is True


@pytest.mark.asyncio
async def test_no_listen_address_serves_nothing():
    server = Server(FakeNode(), RPCConfig())
    await server.start()
    assert server.addresses == []


@pytest.mark.asyncio
async def test_invalid_listen_address():
    server = Server(FakeNode(), RPCConfig(listen_address="127.0.0.1:0"))
    with pytest.raises(ValueError, match="expecting tcp://host:port"):
        await server.start()


@pytest.mark.asyncio
async def test_serves_and_stops():
    server = Server(FakeNode(), RPCConfig(listen_address="tcp://127.0.0.1:0",
                                          cors_allowed_origins=["*"], max_open_connections=2))
    await server.start()
    try:
        host, port = server.addresses[0][:2]
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://{host}:{port}/health",
                                   headers={"Origin": "http://localhost"}) as resp:
                assert resp.status == 200
                assert resp.headers["Access-Control-Allow-Origin"] == "*"
                body = await resp.json(content_type=None)
                assert body["result"] == {}
    finally:
        await server.stop()
    assert server.addresses == []