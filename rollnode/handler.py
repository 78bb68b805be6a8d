"""HTTP, REST and WebSocket front end for the JSON-RPC service."""

from __future__ import annotations

import asyncio
import binascii
import dataclasses
import json
import logging
from typing import Any

from aiohttp import WSMsgType, web

from .rpc_types import ErrorCode, Response, RPCError, parse_str_int
from .service import MethodSpec, Service
from .ws import WSConnection

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_SECURITY_HEADERS = {"x-content-type-options": "nosniff"}


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _jsonable(dataclasses.asdict(value))
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex().upper()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _encode(response: Response) -> str:
    return response.to_json() + "\n"


def _remote_addr(request: web.Request) -> str:
    peer = request.transport.get_extra_info("peername") if request.transport else None
    if isinstance(peer, (tuple, list)) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return request.remote or ""


def _parse_bool(raw: str) -> bool:
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f'parsing "{raw}": invalid syntax')


def _parse_rest_value(kind: str, raw: str) -> Any:
    if kind == "bool":
        return _parse_bool(raw)
    if kind == "int":
        return parse_str_int(raw)
    if kind == "str":
        return raw
    if kind in ("bytes", "hexbytes"):
        return binascii.unhexlify(raw)
    raise ValueError("unknown type")


class Handler:
    """Serves JSON-RPC over HTTP POST/GET, REST-style URIs and WebSockets."""

    def __init__(self, service: Service, logger: Any = None) -> None:
        self.service = service
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    async def _dispatch(self, body: bytes, remote_addr: str, ws_conn: Any = None) -> str | None:
        if not body.strip():
            return None
        try:
            request = json.loads(body)
        except ValueError as exc:
            return _encode(Response(error=RPCError(ErrorCode.PARSE, f"parse error: {exc}"), id=None))
        if not isinstance(request, dict):
            return _encode(
                Response(error=RPCError(ErrorCode.INVALID_REQUEST, "request must be an object"), id=None)
            )
        request_id = request.get("id")
        if ws_conn is not None:
            ws_conn.request_id = request_id
        method = request.get("method")
        if request.get("jsonrpc") != "2.0" or not isinstance(method, str):
            error = RPCError(ErrorCode.INVALID_REQUEST, "rpc: method request ill-formed")
            return _encode(Response(error=error, id=request_id))
        try:
            result = await self.service.invoke(method, remote_addr, request.get("params"), ws_conn)
        except RPCError as exc:
            return _encode(Response(error=exc, id=request_id))
        except Exception as exc:
            return _encode(Response(error=RPCError(ErrorCode.SERVER, str(exc)), id=request_id))
        try:
            return _encode(Response(result=_jsonable(result), id=request_id))
        except (TypeError, ValueError) as exc:
            return _encode(Response(error=RPCError(ErrorCode.SERVER, str(exc)), id=request_id))

    async def serve_jsonrpc(self, request: web.Request) -> web.Response:
        """Serve a JSON-RPC request read from the body; an empty body gives an empty page."""
        body = await request.read()
        text = await self._dispatch(body, _remote_addr(request))
        if text is None:
            return web.Response(status=200)
        return web.Response(
            text=text, content_type="application/json", headers=_SECURITY_HEADERS
        )

    def _rest_response(self, result: Any, error: Exception | None, code: int) -> web.Response:
        if error is not None:
            response = Response(error=RPCError(code, "", str(error)), id=-1)
        else:
            try:
                response = Response(result=_jsonable(result), id=-1)
                response.to_json()
            except (TypeError, ValueError) as exc:
                response = Response(error=RPCError(ErrorCode.INTERNAL, "", str(exc)), id=-1)
        return web.Response(
            text=_encode(response),
            content_type="application/json",
            charset="utf-8",
            headers=_SECURITY_HEADERS,
        )

    async def serve_rest(self, request: web.Request) -> web.Response:
        """Serve /<method>?<params>, with parameters taken from the query string."""
        spec: MethodSpec = self.service.method(request.match_info["method"])
        query = request.query
        args: dict[str, Any] = {}
        for param in spec.params:
            if param.tag not in query:
                return self._rest_response(
                    None, ValueError(f"missing param '{param.tag}'"), ErrorCode.INVALID_REQUEST
                )
            try:
                args[param.field] = _parse_rest_value(param.kind, query[param.tag])
            except (TypeError, ValueError) as exc:
                error = ValueError(f"failed to parse param '{param.tag}': {exc}")
                return self._rest_response(None, error, ErrorCode.PARSE)
        try:
            result = await spec.call(_remote_addr(request), args, None)
        except Exception as exc:
            return self._rest_response(None, exc, ErrorCode.INTERNAL)
        return self._rest_response(result, None, ErrorCode.INTERNAL)

    async def ws_handler(self, request: web.Request) -> web.WebSocketResponse:
        """Serve JSON-RPC requests arriving as WebSocket text messages."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        remote_addr = _remote_addr(request)
        conn = WSConnection(ws, self.logger)
        sender = asyncio.get_running_loop().create_task(conn.send_loop())
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    text = await self._dispatch(msg.data.encode("utf-8"), remote_addr, conn)
                    if text:
                        await conn.enqueue(text)
                elif msg.type == WSMsgType.ERROR:
                    self.logger.error("failed to read next WebSocket message: %s", ws.exception())
                    break
                else:
                    self.logger.debug("expected text message")
        finally:
            conn.close()
            await sender
            await ws.close()
        return ws

    def application(self) -> web.Application:
        """Build the aiohttp application routing to this handler."""
        app = web.Application()
        app.router.add_route("*", "/websocket", self.ws_handler)
        for name in self.service.methods:
            self.logger.debug("registering method %s", name)

        async def rest_or_rpc(request: web.Request) -> web.StreamResponse:
            if request.match_info["method"] in self.service.methods:
                return await self.serve_rest(request)
            return await self.serve_jsonrpc(request)

        app.router.add_route("*", "/", self.serve_jsonrpc)
        app.router.add_route("*", "/{method}", rest_or_rpc)
        app.router.add_route("*", "/{tail:.*}", self.serve_jsonrpc)
        return app


def get_http_handler(client: Any, logger: Any = None) -> Handler:
    """Return a handler serving the RPC API of the given node client."""
    return Handler(Service(client, logger), logger)