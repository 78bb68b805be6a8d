"""In-process counters and gauges for the peer-to-peer layer."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field

METRICS_SUBSYSTEM = "p2p"


@dataclass
class _Family:
    name: str
    help: str
    label_names: tuple[str, ...]
    values: dict[tuple[str, ...], float] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class _Metric:
    def __init__(self, name: str | None = None, help: str = "", label_names=()) -> None:
        self._family = None if name is None else _Family(name, help, tuple(label_names))
        self._labels: tuple[tuple[str, str], ...] = ()

    @property
    def name(self) -> str | None:
        return None if self._family is None else self._family.name

    @property
    def help(self) -> str:
        return "" if self._family is None else self._family.help

    @property
    def label_names(self) -> tuple[str, ...]:
        return () if self._family is None else self._family.label_names

    def with_labels(self, *args: str):
        """Return a view with the given alternating label names and values added."""
        if self._family is None:
            return self
        values = list(args)
        if len(values) % 2:
            values.append("unknown")
        clone = copy.copy(self)
        clone._labels = self._labels + tuple(zip(values[::2], values[1::2]))
        return clone

    def _key(self) -> tuple[str, ...]:
        assert self._family is not None
        labels = dict(self._labels)
        if set(labels) != set(self._family.label_names):
            raise ValueError(
                f"{self._family.name}: labels {sorted(labels)} do not match "
                f"{sorted(self._family.label_names)}"
            )
        return tuple(labels[n] for n in self._family.label_names)

    def _update(self, fn) -> None:
        if self._family is None:
            return
        key = self._key()
        with self._family.lock:
            self._family.values[key] = fn(self._family.values.get(key, 0.0))

    @property
    def value(self) -> float:
        """Current value for this view's label values (always 0 when discarding)."""
        if self._family is None:
            return 0.0
        key = self._key()
        with self._family.lock:
            return self._family.values.get(key, 0.0)


class Counter(_Metric):
    """A monotonically increasing value."""

    def add(self, delta: float) -> None:
        if delta < 0:
            raise ValueError("counter cannot decrease in value")
        self._update(lambda current: current + delta)

    def with_labels(self, *args: str) -> Counter:
        return super().with_labels(*args)


class Gauge(_Metric):
    """A value that can go up and down."""

    def set(self, value: float) -> None:
        self._update(lambda _current: float(value))

    def add(self, delta: float) -> None:
        self._update(lambda current: current + delta)

    def with_labels(self, *args: str) -> Gauge:
        return super().with_labels(*args)


@dataclass
class Metrics:
    """Metrics exposed by the peer-to-peer layer."""

    peers: Gauge
    peer_receive_bytes_total: Counter
    peer_send_bytes_total: Counter
    peer_pending_send_bytes: Gauge
    num_txs: Gauge
    message_receive_bytes_total: Counter
    message_send_bytes_total: Counter


def _fq_name(namespace: str, name: str) -> str:
    return "_".join(part for part in (namespace, METRICS_SUBSYSTEM, name) if part)


def prometheus_metrics(namespace: str, *args: str) -> Metrics:
    """Build recording metrics; args are optional alternating label names and values."""
    labels = tuple(args[::2])

    def make(kind, name, help, extra=()):
        return kind(_fq_name(namespace, name), help, labels + tuple(extra)).with_labels(*args)

    return Metrics(
        peers=make(Gauge, "peers", "Number of peers."),
        peer_receive_bytes_total=make(
            Counter,
            "peer_receive_bytes_total",
            "Number of bytes received from a given peer.",
            ("peer_id", "chID"),
        ),
        peer_send_bytes_total=make(
            Counter,
            "peer_send_bytes_total",
            "Number of bytes sent to a given peer.",
            ("peer_id", "chID"),
        ),
        peer_pending_send_bytes=make(
            Gauge,
            "peer_pending_send_bytes",
            "Pending bytes to be sent to a given peer.",
            ("peer_id",),
        ),
        num_txs=make(
            Gauge, "num_txs", "Number of transactions submitted by each peer.", ("peer_id",)
        ),
        message_receive_bytes_total=make(
            Counter,
            "message_receive_bytes_total",
            "Number of bytes of each message type received.",
            ("message_type",),
        ),
        message_send_bytes_total=make(
            Counter,
            "message_send_bytes_total",
            "Number of bytes of each message type sent.",
            ("message_type",),
        ),
    )


def nop_metrics() -> Metrics:
    """Build metrics that discard every observation."""
    return Metrics(
        peers=Gauge(),
        peer_receive_bytes_total=Counter(),
        peer_send_bytes_total=Counter(),
        peer_pending_send_bytes=Gauge(),
        num_txs=Gauge(),
        message_receive_bytes_total=Counter(),
        message_send_bytes_total=Counter(),
    )