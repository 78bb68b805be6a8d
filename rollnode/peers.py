"""Peer addressing: multiaddrs, peer IDs and seed or peer list parsing."""

from __future__ import annotations

import base64
import binascii
import enum
import ipaddress
import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

REANNOUNCE_PERIOD = timedelta(hours=1)
PEER_LIMIT = 60
TX_TOPIC_SUFFIX = "-tx"

_LOG = logging.getLogger(__name__)

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_INDEX = {char: index for index, char in enumerate(_B58_ALPHABET)}
_LIBP2P_KEY_CODEC = 0x72
_PORT = re.compile(r"[0-9]+")


class NoPrivKeyError(ValueError):
    """Raised when a peer-to-peer client is created without a private key."""

    def __init__(self, message: str = "private key not provided") -> None:
        super().__init__(message)


class MultiaddrError(ValueError):
    """Raised for malformed multiaddrs, peer IDs or peer address info."""


class _Kind(enum.Enum):
    NONE = "none"
    IP4 = "ip4"
    IP6 = "ip6"
    PORT = "port"
    TEXT = "text"
    PEER = "peer"
    PATH = "path"


_PROTOCOLS: dict[str, _Kind] = {
    "ip4": _Kind.IP4,
    "ip6": _Kind.IP6,
    "ip6zone": _Kind.TEXT,
    "tcp": _Kind.PORT,
    "udp": _Kind.PORT,
    "dccp": _Kind.PORT,
    "sctp": _Kind.PORT,
    "dns": _Kind.TEXT,
    "dns4": _Kind.TEXT,
    "dns6": _Kind.TEXT,
    "dnsaddr": _Kind.TEXT,
    "sni": _Kind.TEXT,
    "p2p": _Kind.PEER,
    "unix": _Kind.PATH,
    "udt": _Kind.NONE,
    "utp": _Kind.NONE,
    "quic": _Kind.NONE,
    "quic-v1": _Kind.NONE,
    "webtransport": _Kind.NONE,
    "webrtc": _Kind.NONE,
    "webrtc-direct": _Kind.NONE,
    "ws": _Kind.NONE,
    "wss": _Kind.NONE,
    "tls": _Kind.NONE,
    "noise": _Kind.NONE,
    "http": _Kind.NONE,
    "https": _Kind.NONE,
    "p2p-circuit": _Kind.NONE,
}

_ALIASES = {"ipfs": "p2p"}


def _b58decode(text: str) -> bytes:
    if not text:
        raise MultiaddrError("empty base58 string")
    number = 0
    for char in text:
        try:
            number = number * 58 + _B58_INDEX[char]
        except KeyError:
            raise MultiaddrError(f"invalid base58 character {char!r}") from None
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    leading = len(text) - len(text.lstrip("1"))
    return b"\x00" * leading + body


def _b58encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(_B58_ALPHABET[remainder])
    leading = len(data) - len(data.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(digits))


def _read_uvarint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise MultiaddrError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise MultiaddrError("varint overflows 64 bits")


def _check_multihash(data: bytes) -> bytes:
    _code, pos = _read_uvarint(data, 0)
    length, pos = _read_uvarint(data, pos)
    if len(data) - pos != length:
        raise MultiaddrError(
            f"multihash length mismatch: declared {length}, got {len(data) - pos}"
        )
    return data


def _multihash_from_cid(data: bytes) -> bytes:
    version, pos = _read_uvarint(data, 0)
    if version != 1:
        raise MultiaddrError(f"unsupported CID version {version}")
    codec, pos = _read_uvarint(data, pos)
    if codec != _LIBP2P_KEY_CODEC:
        raise MultiaddrError(f"CID codec {codec:#x} is not libp2p-key")
    return _check_multihash(data[pos:])


def decode_peer_id(text: str) -> str:
    """Validate a textual peer ID and return it in canonical base58 form."""
    if not text:
        raise MultiaddrError("empty peer ID")
    if text.startswith(("Qm", "1")):
        multihash = _check_multihash(_b58decode(text))
    elif text.startswith("b"):
        encoded = text[1:].upper()
        encoded += "=" * (-len(encoded) % 8)
        try:
            raw = base64.b32decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise MultiaddrError(f"invalid base32 peer ID: {exc}") from None
        multihash = _multihash_from_cid(raw)
    elif text.startswith("z"):
        multihash = _multihash_from_cid(_b58decode(text[1:]))
    else:
        raise MultiaddrError(f"unrecognised peer ID encoding: {text!r}")
    return _b58encode(multihash)


def _normalize(protocol: str, kind: _Kind, raw: str) -> str:
    if not raw:
        raise MultiaddrError(f"empty value for protocol {protocol}")
    if kind is _Kind.IP4:
        try:
            return str(ipaddress.IPv4Address(raw))
        except ValueError:
            raise MultiaddrError(f"invalid IPv4 address {raw!r}") from None
    if kind is _Kind.IP6:
        try:
            return str(ipaddress.IPv6Address(raw))
        except ValueError:
            raise MultiaddrError(f"invalid IPv6 address {raw!r}") from None
    if kind is _Kind.PORT:
        if not _PORT.fullmatch(raw) or int(raw) > 65535:
            raise MultiaddrError(f"invalid port {raw!r} for {protocol}")
        return str(int(raw))
    if kind is _Kind.PEER:
        return decode_peer_id(raw)
    return raw


@dataclass(frozen=True)
class Multiaddr:
    """A parsed, self-describing network address."""

    components: tuple[tuple[str, str | None], ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        parts = []
        for protocol, value in self.components:
            if value is None:
                parts.append(f"/{protocol}")
            elif _PROTOCOLS[protocol] is _Kind.PATH:
                parts.append(f"/{protocol}{value}")
            else:
                parts.append(f"/{protocol}/{value}")
        return "".join(parts)

    @property
    def protocols(self) -> tuple[str, ...]:
        return tuple(protocol for protocol, _ in self.components)

    def value_for(self, protocol: str) -> str | None:
        """Return the value of the first component with this protocol."""
        protocol = _ALIASES.get(protocol, protocol)
        for name, value in self.components:
            if name == protocol:
                return value
        raise KeyError(f"protocol {protocol} not found in {self}")


def parse_multiaddr(text: str) -> Multiaddr:
    """Parse the textual form of a multiaddr."""
    trimmed = text.rstrip("/")
    if not trimmed:
        raise MultiaddrError("empty multiaddr")
    if not trimmed.startswith("/"):
        raise MultiaddrError(f"multiaddr must begin with /: {text!r}")
    components: list[tuple[str, str | None]] = []
    tokens = iter(trimmed[1:].split("/"))
    for name in tokens:
        protocol = _ALIASES.get(name, name)
        kind = _PROTOCOLS.get(protocol)
        if kind is None:
            raise MultiaddrError(f"unknown protocol {name!r} in {text!r}")
        if kind is _Kind.NONE:
            components.append((protocol, None))
        elif kind is _Kind.PATH:
            rest = "/".join(tokens)
            if not rest:
                raise MultiaddrError(f"empty path for protocol {protocol}")
            components.append((protocol, "/" + rest))
        else:
            raw = next(tokens, None)
            if raw is None:
                raise MultiaddrError(f"unexpected end of multiaddr {text!r}")
            components.append((protocol, _normalize(protocol, kind, raw)))
    return Multiaddr(tuple(components))


@dataclass(frozen=True)
class AddrInfo:
    """A peer ID together with the transport addresses it is reachable at."""

    id: str
    addrs: tuple[Multiaddr, ...] = ()


def addr_info_from_p2p_addr(maddr: Multiaddr | str) -> AddrInfo:
    """Split a multiaddr ending in /p2p/<id> into peer ID and transport address."""
    if isinstance(maddr, str):
        maddr = parse_multiaddr(maddr)
    if not maddr.components:
        raise MultiaddrError("invalid p2p multiaddr")
    *transport, (protocol, value) = maddr.components
    if protocol != "p2p" or value is None:
        raise MultiaddrError(f"invalid p2p multiaddr: {maddr}")
    addrs = (Multiaddr(tuple(transport)),) if transport else ()
    return AddrInfo(id=value, addrs=addrs)


class _ErrorLogger(Protocol):
    def error(self, msg: str, *args: Any) -> Any: ...


def parse_addr_info_list(text: str, logger: _ErrorLogger | None = None) -> list[AddrInfo]:
    """Parse comma separated p2p multiaddrs, logging and skipping bad entries."""
    log = logger if logger is not None else _LOG
    if not text:
        return []
    result = []
    for entry in text.split(","):
        try:
            maddr = parse_multiaddr(entry)
        except MultiaddrError as exc:
            log.error("failed to parse peer %s: %s", entry, exc)
            continue
        try:
            result.append(addr_info_from_p2p_addr(maddr))
        except MultiaddrError as exc:
            log.error("failed to create addr info for peer %s: %s", maddr, exc)
    return result


def tx_topic(namespace: str) -> str:
    """Return the pubsub topic used to gossip transactions in a network."""
    return namespace + TX_TOPIC_SUFFIX