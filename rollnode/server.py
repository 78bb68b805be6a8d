"""RPC server: listens on the configured address and serves the handler."""

from __future__ import annotations

import asyncio
import logging
import os
import ssl
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web

from .handler import get_http_handler

SHUTDOWN_TIMEOUT = 5.0


@dataclass
class RPCConfig:
    """Settings of the RPC server."""

    listen_address: str = ""
    max_open_connections: int = 0
    cors_allowed_origins: list[str] = field(default_factory=list)
    cors_allowed_methods: list[str] = field(default_factory=lambda: ["HEAD", "GET", "POST"])
    cors_allowed_headers: list[str] = field(default_factory=list)
    tls_cert_file: str = ""
    tls_key_file: str = ""
    root_dir: str = ""

    def cors_enabled(self) -> bool:
        """True when any CORS origin is allowed."""
        return len(self.cors_allowed_origins) != 0

    def _path(self, name: str) -> str:
        return name if os.path.isabs(name) else os.path.join(self.root_dir, "config", name)


def _cors_middleware(config: RPCConfig):
    origins = config.cors_allowed_origins

    def allowed(origin: str) -> bool:
        return "*" in origins or origin in origins

    @web.middleware
    async def cors(request: web.Request, handler):
        origin = request.headers.get("Origin")
        preflight = request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers
        if preflight and origin:
            response: web.StreamResponse = web.Response(status=204)
            if allowed(origin):
                response.headers["Access-Control-Allow-Methods"] = ", ".join(
                    config.cors_allowed_methods
                )
                if config.cors_allowed_headers:
                    response.headers["Access-Control-Allow-Headers"] = ", ".join(
                        config.cors_allowed_headers
                    )
        else:
            response = await handler(request)
        if origin and allowed(origin) and not response.prepared:
            response.headers["Access-Control-Allow-Origin"] = "*" if "*" in origins else origin
        return response

    return cors


def _limit_middleware(limit: int):
    # Bounds the number of requests served at once.
    semaphore = asyncio.Semaphore(limit)

    @web.middleware
    async def limiter(request: web.Request, handler):
        async with semaphore:
            return await handler(request)

    return limiter


class Server:
    """Serves the node's RPC API over HTTP and WebSocket."""

    def __init__(self, node: Any, config: RPCConfig, logger: Any = None) -> None:
        self.config = config
        self._client = node.get_client()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._runner: web.AppRunner | None = None

    def client(self) -> Any:
        """Return the node client the server exposes."""
        return self._client

    @property
    def addresses(self) -> list[Any]:
        """Addresses the server is bound to (empty when not serving)."""
        return list(self._runner.addresses) if self._runner is not None else []

    async def start(self) -> None:
        """Start listening; does nothing when no listen address is configured."""
        address = self.config.listen_address
        if not address:
            self.logger.info("Listen address not specified - RPC will not be exposed")
            return
        parts = address.split("://", 1)
        if len(parts) != 2:
            raise ValueError("invalid RPC listen address: expecting tcp://host:port")
        proto, addr = parts

        handler = get_http_handler(self._client, self.logger)
        app = handler.application()
        if self.config.max_open_connections:
            self.logger.debug("limiting number of connections %s", self.config.max_open_connections)
            app.middlewares.append(_limit_middleware(self.config.max_open_connections))
        if self.config.cors_enabled():
            self.logger.debug(
                "CORS enabled origins=%s methods=%s headers=%s",
                self.config.cors_allowed_origins,
                self.config.cors_allowed_methods,
                self.config.cors_allowed_headers,
            )
            app.middlewares.append(_cors_middleware(self.config))

        ssl_context = None
        if self.config.tls_cert_file and self.config.tls_key_file:
            ssl_context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
            ssl_context.load_cert_chain(
                self.config._path(self.config.tls_cert_file),
                self.config._path(self.config.tls_key_file),
            )

        runner = web.AppRunner(app)
        await runner.setup()
        try:
            if proto == "unix":
                site: web.BaseSite = web.UnixSite(runner, addr, ssl_context=ssl_context)
            elif proto in ("tcp", "tcp4", "tcp6"):
                host, sep, port = addr.rpartition(":")
                if not sep or not port.isdigit():
                    raise ValueError(f"invalid RPC listen address: {address}")
                site = web.TCPSite(
                    runner, host.strip("[]") or None, int(port), ssl_context=ssl_context
                )
            else:
                raise ValueError(f"unsupported network: {proto}")
            await site.start()
        except BaseException:
            await runner.cleanup()
            raise
        self._runner = runner
        self.logger.info("serving HTTP listen address %s", self.addresses)

    async def stop(self) -> None:
        """Shut the server down, waiting at most five seconds."""
        runner, self._runner = self._runner, None
        if runner is None:
            return
        try:
            await asyncio.wait_for(runner.cleanup(), SHUTDOWN_TIMEOUT)
        except Exception as exc:
            self.logger.error("error while shutting down RPC server: %s", exc)