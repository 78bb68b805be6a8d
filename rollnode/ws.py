"""Outgoing message queue of a JSON-RPC WebSocket connection."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

_CLOSED = object()


class WSConnection:
    """Queues responses for one WebSocket and writes them out as text messages.

    ``conn`` is any object with an awaitable ``send_str``; ``request_id`` holds
    the id of the request most recently read from the connection.
    """

    def __init__(self, conn: Any, logger: Any = None) -> None:
        self.conn = conn
        self.request_id: Any = None
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def enqueue(self, data: bytes | str) -> None:
        """Queue a message; raises ConnectionError once the connection is closed."""
        if self._closed:
            raise ConnectionError("websocket connection closed")
        if isinstance(data, str):
            data = data.encode("utf-8")
        await self._queue.put(bytes(data))

    async def send_loop(self) -> None:
        """Send queued messages in order until the connection is closed."""
        while True:
            msg = await self._queue.get()
            if msg is _CLOSED:
                return
            try:
                await self.conn.send_str(msg.decode("utf-8", errors="replace"))
            except Exception as exc:
                self.logger.error("failed to write message: %s", exc)

    def close(self) -> None:
        """Stop accepting messages; the send loop ends after what is queued."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)