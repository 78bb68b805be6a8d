import pytest

from rollnode.metrics import Counter, Gauge, nop_metrics, prometheus_metrics


def test_nop_metrics_discard_everything():
    m = nop_metrics()
    m.peers.set(5)
    m.num_txs.with_labels("peer_id", "x").add(3)
    m.message_send_bytes_total.add(9)
    assert m.peers.value == 0.0
    assert m.num_txs.with_labels("peer_id", "x").value == 0.0
    assert m.message_send_bytes_total.value == 0.0
    assert m.peers.name is None


def test_prometheus_names_and_help():
    m = prometheus_metrics("rollkit")
    assert m.peers.name == "rollkit_p2p_peers"
    assert m.peers.help == "Number of peers."
    assert m.num_txs.help == "Number of transactions submitted by each peer."


def test_empty_namespace_is_skipped_in_name():
    m = prometheus_metrics("")
    assert m.peers.name == "p2p_peers"


def test_label_names_include_constant_labels():
    m = prometheus_metrics("ns", "chain_id", "c1")
    assert m.peers.label_names == ("chain_id",)
    assert m.peer_receive_bytes_total.label_names == ("chain_id", "peer_id", "chID")
    assert m.num_txs.label_names == ("chain_id", "peer_id")
    assert m.message_send_bytes_total.label_names == ("chain_id", "message_type")


def test_gauge_set_and_add():
    m = prometheus_metrics("ns", "chain_id", "c1")
    m.peers.set(10)
    m.peers.add(-4)
    assert m.peers.value == 10 - 4


def test_counter_accumulates_per_label_set():
    m = prometheus_metrics("ns")
    tx = m.message_send_bytes_total.with_labels("message_type", "tx")
    block = m.message_send_bytes_total.with_labels("message_type", "block")
    tx.add(2)
    tx.add(3)
    block.add(7)
    assert tx.value == 2 + 3
    assert block.value == 7
    assert m.message_send_bytes_total.with_labels("message_type", "tx").value == tx.value


def test_counter_cannot_decrease():
    m = prometheus_metrics("ns")
    counter = m.message_receive_bytes_total.with_labels("message_type", "tx")
    with pytest.raises(ValueError):
        counter.add(-1)


def test_missing_labels_raise():
    m = prometheus_metrics("ns")
    with pytest.raises(ValueError):
        m.peer_receive_bytes_total.add(1)
    with pytest.raises(ValueError):
        m.peer_receive_bytes_total.with_labels("peer_id", "p").add(1)


def test_unknown_label_raises():
    m = prometheus_metrics("ns")
    with pytest.raises(ValueError):
        m.num_txs.with_labels("peer_id", "a", "bogus", "b").set(1)


def test_odd_label_list_gets_unknown_value():
    m = prometheus_metrics("ns")
    m.num_txs.with_labels("peer_id").set(4)
    assert m.num_txs.with_labels("peer_id", "unknown").value == 4


def test_with_labels_does_not_mutate_original():
    m = prometheus_metrics("ns")
    base = m.num_txs
    base.with_labels("peer_id", "p").set(2)
    with pytest.raises(ValueError):
        base.set(1)
    assert base.with_labels("peer_id", "p").value == 2


def test_separate_metric_sets_are_independent():
    first = prometheus_metrics("ns")
    second = prometheus_metrics("ns")
    first.peers.set(3)
    assert second.peers.value == 0.0
    assert first.peers.value == 3


def test_standalone_metrics():
    gauge = Gauge("g", "help", ("a",))
    gauge.with_labels("a", "x").set(1.5)
    counter = Counter()
    counter.add(5)
    assert gauge.with_labels("a", "x").value == 1.5
    assert counter.value == 0.0