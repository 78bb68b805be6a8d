"""JSON-RPC service: the method table and its dispatch onto a node client."""

from __future__ import annotations

import asyncio
import base64
import binascii
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from .rpc_types import ABCIQueryArgs, ErrorCode, Response, RPCError, parse_str_int

SUBSCRIBE_TIMEOUT = 5.0
SUBSCRIBE_BUFFER_SIZE = 100

_DEFAULTS: dict[str, Any] = {
    "str": "",
    "bool": False,
    "int": 0,
    "bytes": b"",
    "hexbytes": b"",
    "any": None,
}


@dataclass(frozen=True)
class _Param:
    """One argument of a method.

    ``field`` names the decoded argument, ``key`` is matched against JSON
    object keys and ``tag`` is the query parameter name of the REST form
    (empty for arguments that carry no explicit name).
    """

    field: str
    kind: str
    key: str
    tag: str


def _p(name: str, kind: str) -> _Param:
    return _Param(name, kind, name, name)


_Call = Callable[[str, dict[str, Any], Any], Awaitable[Any]]


@dataclass(frozen=True)
class MethodSpec:
    """A registered method: its arguments, its implementation and whether it uses the WebSocket."""

    name: str
    params: tuple[_Param, ...]
    call: _Call
    ws: bool = False


def _convert(param: _Param, value: Any) -> Any:
    if value is None:
        return _DEFAULTS[param.kind]
    kind = param.kind
    if kind == "str":
        if not isinstance(value, str):
            raise TypeError(f"expected string, got {type(value).__name__}")
        return value
    if kind == "bool":
        if not isinstance(value, bool):
            raise TypeError(f"expected boolean, got {type(value).__name__}")
        return value
    if kind == "int":
        return parse_str_int(value)
    if kind in ("bytes", "hexbytes"):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if not isinstance(value, str):
            raise TypeError(f"expected string, got {type(value).__name__}")
        if kind == "bytes":
            return base64.b64decode(value, validate=True)
        return binascii.unhexlify(value)
    return value


def _lookup(params: Mapping[str, Any], key: str) -> Any:
    if key in params:
        return params[key]
    folded = key.casefold()
    for name, value in params.items():
        if isinstance(name, str) and name.casefold() == folded:
            return value
    return None


def _decode_args(specs: tuple[_Param, ...], params: Any) -> dict[str, Any]:
    if isinstance(params, list):
        params = params[0] if params else None
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise RPCError(ErrorCode.INVALID_REQUEST, "params must be an object or an array")
    args = {}
    for spec in specs:
        try:
            args[spec.field] = _convert(spec, _lookup(params, spec.key))
        except (TypeError, ValueError) as exc:
            raise RPCError(
                ErrorCode.INVALID_REQUEST, f"cannot decode param '{spec.key}': {exc}"
            ) from None
    return args


async def _iterate(stream: Any) -> AsyncIterator[Any]:
    if hasattr(stream, "__aiter__"):
        async for item in stream:
            yield item
    else:
        for item in stream:
            yield item


class Service:
    """Maps JSON-RPC method names onto calls of a node client."""

    def __init__(self, client: Any, logger: Any = None) -> None:
        self.client = client
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.subscribe_timeout = SUBSCRIBE_TIMEOUT
        self._tasks: set[asyncio.Task] = set()

        def simple(client_method: str, *params: _Param) -> _Call:
            async def call(remote_addr: str, args: dict[str, Any], ws_conn: Any) -> Any:
                return await self._call(client_method, *(args[p.field] for p in params))

            return call

        def spec(name: str, call: _Call, *params: _Param, ws: bool = False) -> MethodSpec:
            return MethodSpec(name, tuple(params), call, ws)

        height = _p("height", "int")
        page = _p("page", "int")
        per_page = _p("per_page", "int")
        query = _p("query", "str")
        order_by = _p("order_by", "str")
        prove = _p("prove", "bool")
        tx = _p("tx", "bytes")
        min_height = _Param("min_height", "int", "MinHeight", "")
        max_height = _Param("max_height", "int", "MaxHeight", "")
        chunk = _Param("chunk", "int", "chunk", "chunk")
        abci_params = (
            _p("path", "str"),
            _p("data", "hexbytes"),
            height,
            prove,
        )

        specs = [
            spec("subscribe", lambda r, a, w: self.subscribe(r, a, w), query, ws=True),
            spec("unsubscribe", lambda r, a, w: self.unsubscribe(r, a), query),
            spec("unsubscribe_all", lambda r, a, w: self.unsubscribe_all(r, a)),
            spec("health", simple("health")),
            spec("status", simple("status")),
            spec("net_info", simple("net_info")),
            spec(
                "blockchain",
                simple("blockchain_info", min_height, max_height),
                min_height,
                max_height,
            ),
            spec("genesis", simple("genesis")),
            spec("genesis_chunked", simple("genesis_chunked", chunk), chunk),
            spec("block", simple("block", height), height),
            spec("block_by_hash", simple("block_by_hash", _p("hash", "bytes")), _p("hash", "bytes")),
            spec("block_results", simple("block_results", height), height),
            spec("commit", simple("commit", height), height),
            spec("check_tx", simple("check_tx", tx), tx),
            spec("tx", simple("tx", _p("hash", "bytes"), prove), _p("hash", "bytes"), prove),
            spec(
                "tx_search",
                simple("tx_search", query, prove, page, per_page, order_by),
                query,
                prove,
                page,
                per_page,
                order_by,
            ),
            spec(
                "block_search",
                simple("block_search", query, page, per_page, order_by),
                query,
                page,
                per_page,
                order_by,
            ),
            spec(
                "validators",
                simple("validators", height, page, per_page),
                height,
                page,
                per_page,
            ),
            spec("dump_consensus_state", simple("dump_consensus_state")),
            spec("consensus_state", simple("consensus_state")),
            spec("consensus_params", simple("consensus_params", height), height),
            spec(
                "unconfirmed_txs",
                simple("unconfirmed_txs", _p("limit", "int")),
                _p("limit", "int"),
            ),
            spec("num_unconfirmed_txs", simple("num_unconfirmed_txs")),
            spec("broadcast_tx_commit", simple("broadcast_tx_commit", tx), tx),
            spec("broadcast_tx_sync", simple("broadcast_tx_sync", tx), tx),
            spec("broadcast_tx_async", simple("broadcast_tx_async", tx), tx),
            spec("abci_query", self._abci_query, *abci_params),
            spec("abci_info", simple("abci_info")),
            spec(
                "broadcast_evidence",
                simple("broadcast_evidence", _p("evidence", "any")),
                _p("evidence", "any"),
            ),
        ]
        self.methods: dict[str, MethodSpec] = {s.name: s for s in specs}

    async def _call(self, name: str, *args: Any, **kwargs: Any) -> Any:
        result = getattr(self.client, name)(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def method(self, name: str) -> MethodSpec:
        """Return the specification of a registered method."""
        try:
            return self.methods[name]
        except KeyError:
            raise RPCError(ErrorCode.NO_METHOD, f"method not found: {name}") from None

    async def invoke(
        self, name: str, remote_addr: str, params: Any = None, ws_conn: Any = None
    ) -> Any:
        """Decode params for a method and call it; raises RPCError for bad requests."""
        spec = self.method(name)
        args = _decode_args(spec.params, params)
        return await spec.call(remote_addr, args, ws_conn)

    async def subscribe(
        self, remote_addr: str, params: Mapping[str, Any], ws_conn: Any = None
    ) -> dict[str, Any]:
        """Subscribe to events; each event is sent as a response over the WebSocket."""
        query = params.get("query") or ""
        try:
            subscription = await asyncio.wait_for(
                self._call("subscribe", remote_addr, query, SUBSCRIBE_BUFFER_SIZE),
                self.subscribe_timeout,
            )
        except asyncio.TimeoutError:
            raise RuntimeError("failed to subscribe: context deadline exceeded") from None
        except Exception as exc:
            raise RuntimeError(f"failed to subscribe: {exc}") from exc

        task = asyncio.get_running_loop().create_task(self._forward(subscription, ws_conn))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return {}

    async def _forward(self, subscription: Any, ws_conn: Any) -> None:
        try:
            async for msg in _iterate(subscription):
                data = getattr(msg, "data", msg)
                request_id = ws_conn.request_id if ws_conn is not None else None
                try:
                    payload = (Response(result=data, id=request_id).to_json() + "\n").encode()
                except (TypeError, ValueError) as exc:
                    self.logger.error("failed to encode subscription event: %s", exc)
                    return
                if ws_conn is not None:
                    try:
                        await ws_conn.enqueue(payload)
                    except ConnectionError:
                        return
        except Exception as exc:
            self.logger.error("subscription stream failed: %s", exc)

    async def unsubscribe(self, remote_addr: str, params: Mapping[str, Any]) -> dict[str, Any]:
        """Cancel one subscription of the caller."""
        query = params.get("query") or ""
        self.logger.debug("unsubscribe from query remote=%s query=%s", remote_addr, query)
        try:
            await self._call("unsubscribe", remote_addr, query)
        except Exception as exc:
            raise RuntimeError(f"failed to unsubscribe: {exc}") from exc
        return {}

    async def unsubscribe_all(
        self, remote_addr: str, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Cancel every subscription of the caller."""
        self.logger.debug("unsubscribe from all queries remote=%s", remote_addr)
        try:
            await self._call("unsubscribe_all", remote_addr)
        except Exception as exc:
            raise RuntimeError(f"failed to unsubscribe all: {exc}") from exc
        return {}

    async def _abci_query(self, remote_addr: str, args: dict[str, Any], ws_conn: Any) -> Any:
        query = ABCIQueryArgs(
            path=args["path"], data=args["data"], height=args["height"], prove=args["prove"]
        )
        return await self._call(
            "abci_query_with_options",
            query.path,
            query.data,
            height=query.height,
            prove=query.prove,
        )