# rollnode

`rollnode` is the RPC front end of a rollup node. It serves a
Tendermint-compatible API over HTTP with aiohttp. Each method can be
reached in three ways:

- **JSON-RPC 2.0** requests sent in the body of a request to `/`. A request
  with an empty body gets an empty `200` page.
- **REST-style** calls such as `/block?height=5` or `/check_tx?tx=DEADBEEF`.
- **WebSocket** connections at `/websocket`. Each text message is handled
  as a JSON-RPC request, and subscription events are pushed over the same
  connection.

The package also has helpers for a node's peer-to-peer layer: multiaddr
and peer-list parsing, the name of the transaction gossip topic, and a
small set of P2P counters and gauges.

## Installing

```
pip install .
pip install ".[test]"   # with pytest and pytest-asyncio
```

## Serving the RPC API

`rollnode.handler.get_http_handler(client, logger)` builds a `Handler`
around a node client. `Handler.application()` returns the aiohttp
application:

```python
import logging

from aiohttp import web

from rollnode.handler import get_http_handler

handler = get_http_handler(node_client, logging.getLogger("rpc"))
web.run_app(handler.application())
```

The client is any object that has the methods below. Each may be a plain
function or a coroutine function. Whatever it returns is sent back as the
result. Dataclasses are turned into objects, and `bytes` become
upper-case hex strings.

| RPC method             | client call                                                |
|------------------------|------------------------------------------------------------|
| `health`               | `health()`                                                 |
| `status`               | `status()`                                                 |
| `net_info`             | `net_info()`                                               |
| `blockchain`           | `blockchain_info(min_height, max_height)`                  |
| `genesis`              | `genesis()`                                                |
| `genesis_chunked`      | `genesis_chunked(chunk)`                                   |
| `block`                | `block(height)`                                            |
| `block_by_hash`        | `block_by_hash(hash)`                                      |
| `block_results`        | `block_results(height)`                                    |
| `commit`               | `commit(height)`                                           |
| `check_tx`             | `check_tx(tx)`                                             |
| `tx`                   | `tx(hash, prove)`                                          |
| `tx_search`            | `tx_search(query, prove, page, per_page, order_by)`        |
| `block_search`         | `block_search(query, page, per_page, order_by)`            |
| `validators`           | `validators(height, page, per_page)`                       |
| `dump_consensus_state` | `dump_consensus_state()`                                   |
| `consensus_state`      | `consensus_state()`                                        |
| `consensus_params`     | `consensus_params(height)`                                 |
| `unconfirmed_txs`      | `unconfirmed_txs(limit)`                                   |
| `num_unconfirmed_txs`  | `num_unconfirmed_txs()`                                    |
| `broadcast_tx_commit`  | `broadcast_tx_commit(tx)`                                  |
| `broadcast_tx_sync`    | `broadcast_tx_sync(tx)`                                    |
| `broadcast_tx_async`   | `broadcast_tx_async(tx)`                                   |
| `abci_query`           | `abci_query_with_options(path, data, height=..., prove=...)` |
| `abci_info`            | `abci_info()`                                              |
| `broadcast_evidence`   | `broadcast_evidence(evidence)`                             |
| `subscribe`            | `subscribe(remote_addr, query, 100)`                       |
| `unsubscribe`          | `unsubscribe(remote_addr, query)`                          |
| `unsubscribe_all`      | `unsubscribe_all(remote_addr)`                             |

The method table lives in `rollnode.service.Service`. `Service.method(name)`
returns a method's `MethodSpec`. `Service.invoke(name, remote_addr, params,
ws_conn)` decodes the parameters and makes the call.

### JSON-RPC parameters

- `params` may be an object, or an array whose first element is that
  object. Missing parameters take their zero value.
- Integer parameters may be JSON numbers or quoted strings (`"page": "1"`).
- `tx` and `hash` are base64. The `data` of `abci_query` is hex.
- `blockchain` takes `MinHeight` and `MaxHeight`. Key matching ignores case.

The kinds of error returned:

- Bad JSON gets a `-32700` error.
- A request that is not well formed gets `-32600`.
- An unknown method gets `-32601`.
- An exception raised by the client gets `-32000`, with the exception text
  as the message.

### REST calls

Every parameter of the method must appear in the query string. Values are
read as follows:

- Booleans accept `1 t T TRUE true True 0 f F FALSE false False`.
- Integers are decimal.
- Byte values are hex.

REST calls always answer with HTTP 200 and id `-1`. Errors are carried in
the `error` object, with the reason in its `data`:

- `-32600` for a missing parameter (`missing param 'height'`).
- `-32700` for a parameter that cannot be parsed
  (`failed to parse param 'height': ...`).
- `-32603` when the client call fails.

### Subscriptions

`subscribe` waits up to five seconds for the client, then forwards every
item the client's subscription yields. Items may come from a sync or an
async iterable, and an item's `data` attribute is used when it has one.
Each item is sent as a JSON-RPC response carrying the id of the latest
request on the WebSocket. Events are delivered only over a WebSocket. A
subscription made over plain HTTP is accepted, but its events are not sent
anywhere. `rollnode.ws.WSConnection` is the per-connection send queue.

## Running a server

`rollnode.server.Server(node, config, logger)` takes the client from
`node.get_client()` and serves it according to an `RPCConfig`:

- `listen_address` has the form `tcp://host:port`. `tcp4://`, `tcp6://`
  and `unix://path` are also accepted. An address without `://` raises
  `ValueError`.
- An empty address means the API is not exposed: `start()` logs this and
  returns.
- When `max_open_connections` is non-zero, it limits how many requests are
  handled at once.
- CORS headers are added when `cors_enabled()` is true, that is, when
  `cors_allowed_origins` is non-empty.
- TLS is used when both `tls_cert_file` and `tls_key_file` are set. Paths
  that are not absolute are resolved under `<root_dir>/config`.

`await server.start()` begins serving, and `server.addresses` lists the
bound addresses. `await server.stop()` shuts down, waiting at most five
seconds. `server.client()` returns the node client.

## Response envelopes

`rollnode.rpc_types` holds the wire types:

- `Response` has `to_json()` and `Response.from_json(text)`. The output is
  compact, with `<`, `>` and `&` escaped.
- `RPCError` is raisable. It has `code`, `message` and `data`, and
  `to_dict()` returns the error object.
- `ErrorCode` holds the standard JSON-RPC error codes.
- `parse_str_int(value)` and `loads_str_int(text)` accept an integer or a
  quoted decimal integer within the signed 64-bit range.
- `ABCIQueryArgs` and `ABCIInfoArgs` are the argument records of the ABCI
  methods.

## Peer lists

`rollnode.peers` covers peer addressing:

- `parse_multiaddr(text)` parses text addresses such as
  `/ip4/127.0.0.1/tcp/7676/p2p/12D3Koo...` into a `Multiaddr`.
  `Multiaddr.value_for(protocol)` reads a component.
- `decode_peer_id(text)` validates a peer ID and returns it in base58 form.
- `addr_info_from_p2p_addr(maddr)` splits an address into an `AddrInfo`
  (`id`, `addrs`).
- `parse_addr_info_list(text, logger)` parses a comma-separated list.
  Entries that cannot be parsed, or that have no `/p2p/` ID, are reported
  with `logger.error` and skipped.
- `tx_topic(namespace)` gives the transaction gossip topic
  (`<namespace>-tx`).
- `NoPrivKeyError` and `MultiaddrError` are the errors of this module.

## Metrics

`rollnode.metrics.prometheus_metrics(namespace, *labels_and_values)` builds
a `Metrics` set of in-process `Counter` and `Gauge` objects. It covers
peers, bytes received and sent per peer and channel, pending bytes, and
transactions per peer. It also counts bytes received and sent per message
type. Labels are attached with `with_labels(name, value, ...)`, and the
current value is read from `value`. `nop_metrics()` returns a set that
discards every update. These metrics are kept in memory; nothing exports
them.

## What this package does not do

It contains no node. Blocks, transactions, consensus state and
subscriptions all come from the client you pass in. There is no
peer-to-peer networking either: nothing dials peers, runs a DHT or gossips
transactions. The peer helpers only parse and name things. The package
installs no command-line program.