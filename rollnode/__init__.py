"""Tendermint-compatible JSON-RPC, REST and WebSocket serving, peer-address parsing and P2P metrics."""

__version__ = "0.1.0"

__all__ = ["handler", "metrics", "peers", "rpc_types", "server", "service", "ws"]