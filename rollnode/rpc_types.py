"""JSON-RPC wire types: error codes, errors, responses and lenient integer parsing."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass
from typing import Any

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class ErrorCode(enum.IntEnum):
    """Standard JSON-RPC 2.0 error codes."""

    PARSE = -32700
    INVALID_REQUEST = -32600
    NO_METHOD = -32601
    BAD_PARAMS = -32602
    INTERNAL = -32603
    SERVER = -32000


def _coerce_code(code: int) -> int:
    try:
        return ErrorCode(code)
    except ValueError:
        return int(code)


class RPCError(Exception):
    """A JSON-RPC error object, raisable as an exception."""

    def __init__(self, code: int, message: str = "", data: Any = None) -> None:
        super().__init__(message or (data if data is not None else ""))
        self.code = _coerce_code(code)
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        """Return the error as the JSON object sent on the wire."""
        return {"code": int(self.code), "message": self.message, "data": self.data}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RPCError):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((int(self.code), self.message, repr(self.data)))

    def __repr__(self) -> str:
        return f"RPCError(code={int(self.code)}, message={self.message!r}, data={self.data!r})"


def _escape_html(text: str) -> str:
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


@dataclass
class Response:
    """A JSON-RPC 2.0 response envelope."""

    version: str = "2.0"
    result: Any = None
    error: RPCError | None = None
    id: Any = -1

    def to_json(self) -> str:
        """Encode compactly, with HTML-sensitive characters escaped."""
        body: dict[str, Any] = {"jsonrpc": self.version}
        if self.error is None or self.result is not None:
            body["result"] = self.result
        if self.error is not None:
            body["error"] = self.error.to_dict()
        body["id"] = self.id
        return _escape_html(json.dumps(body, separators=(",", ":"), ensure_ascii=False))

    @staticmethod
    def from_json(text: str | bytes) -> Response:
        """Decode a response envelope; raises ValueError on malformed input."""
        body = json.loads(text)
        if not isinstance(body, dict):
            raise ValueError("JSON-RPC response must be an object")
        error = None
        raw_error = body.get("error")
        if raw_error is not None:
            if not isinstance(raw_error, dict) or not isinstance(raw_error.get("code"), int):
                raise ValueError("malformed JSON-RPC error object")
            error = RPCError(
                raw_error["code"],
                raw_error.get("message", "") or "",
                raw_error.get("data"),
            )
        return Response(
            version=body.get("jsonrpc", ""),
            result=body.get("result"),
            error=error,
            id=body.get("id"),
        )


@dataclass
class ABCIQueryArgs:
    """Arguments of the ABCI query method."""

    path: str = ""
    data: bytes = b""
    height: int = 0
    prove: bool = False


@dataclass
class ABCIInfoArgs:
    """Arguments of the ABCI info method (none)."""


def _check_range(value: int) -> int:
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"value out of range: {value}")
    return value


def parse_str_int(value: Any) -> int:
    """Accept a decoded JSON integer or a decimal integer quoted as a string."""
    if isinstance(value, bool):
        raise TypeError(f"unsupported value: {value!r}")
    if isinstance(value, int):
        return _check_range(value)
    if isinstance(value, str):
        if not _DECIMAL.fullmatch(value):
            raise ValueError(f"invalid syntax: {value!r}")
        return _check_range(int(value))
    raise TypeError(f"unsupported value: {value!r}")


def loads_str_int(text: str | bytes) -> int:
    """Parse JSON text holding an integer or a quoted integer."""
    return parse_str_int(json.loads(text))