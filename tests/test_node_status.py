from datetime import datetime, timedelta, timezone

import pytest

from newsnode.node_status import (
    NetworkSummary,
    build_live_node_status,
    build_offline_node_status,
    summarize_network_error,
)
from newsnode.sync_status import (
    SyncActivityStatus,
    SyncBitTorrentStatus,
    SyncLibP2PStatus,
    SyncMDNSStatus,
    SyncPubSubStatus,
    SyncRuntimeStatus,
)

NOW = datetime(2026, 3, 12, 12, 0, 0, tzinfo=timezone.utc)
NETWORK_ID = "2c2d6cf7b255ba20d6ad01135654933851b02bd00c65c2a6a54b97ab56590475"
LISTEN = "0.0.0.0:51818"

ENTRY_LABELS = [
    "Overall",
    "HTTP UI",
    "Bundle store",
    "Torrent refs",
    "Sync daemon",
    "libp2p pubsub",
    "Discovery file",
    "Network ID",
    "LAN mDNS",
    "libp2p bootstrap",
    "libp2p rendezvous",
    "BitTorrent DHT",
]


def offline(net=None, error=None):
    return build_offline_node_status(3, "ready", "good", 2, net, error, LISTEN)


def live(status, net=None):
    return build_live_node_status(3, "ready", "good", 2, net, status, LISTEN, NOW)


def heartbeat(**kwargs):
    kwargs.setdefault("updated_at", NOW - timedelta(seconds=5))
    return SyncRuntimeStatus(**kwargs)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("dial to self attempted", "A discovered address points back to this node. This is noisy but harmless."),
        ("failed: peer id mismatch", "At least one peer advertised an address with the wrong peer identity. The node skipped it."),
        ("Context Deadline Exceeded", "A network dial timed out. The node will keep retrying healthy peers."),
        ("dial tcp: connection refused", "A peer address was reachable at the network layer but refused the connection."),
        ("timed out waiting for metadata", "Torrent metadata retrieval timed out for at least one queued ref."),
    ],
)
def test_summarize_network_error_known_patterns(raw, expected):
    assert summarize_network_error(raw, "fallback") == expected


def test_summarize_network_error_blank_long_and_plain():
    assert summarize_network_error("   ", "fallback") == "fallback"
    assert summarize_network_error("x" * 181, "fallback") == "fallback"
    assert summarize_network_error("  odd failure  ", "fallback") == "odd failure"


def test_offline_without_config():
    status = offline()
    assert status.summary == "offline"
    assert status.summary_tone == "warn"
    assert status.summary_detail == "No bootstrap transports are configured yet."
    assert [e.label for e in status.entries] == ENTRY_LABELS
    assert len(status.dashboard) == 7
    assert status.dashboard[0].label == "Node mode"
    assert status.entry("Sync daemon").value == "not running"
    assert status.entry("HTTP UI").value == "online " + LISTEN
    assert status.entry("Bundle store").value == "ready · 3 bundles"
    assert status.entry("Discovery file").value == "not loaded"


def test_offline_bootstrap_ready():
    net = NetworkSummary(
        exists=True,
        network_id=NETWORK_ID,
        libp2p_bootstrap=["/dnsaddr/bootstrap.libp2p.io/p2p/QmNnooDu7bfjPFoTZYxMNLWUQJyrVwtbZg5gBMjTezGAJN"],
        libp2p_rendezvous=["aip2p.news/global", "aip2p.news/world"],
        dht_routers=["router.bittorrent.com:6881", "router.utorrent.com:6881"],
    )
    status = offline(net)
    assert status.summary == "bootstrap ready"
    assert status.summary_tone == "good"
    assert status.entry("Discovery file").value == "aip2p_news_net.inf loaded"
    assert status.entry("Network ID").value == NETWORK_ID
    assert status.entry("BitTorrent DHT").value == "2 bootstrap routers configured"
    assert status.entry("libp2p rendezvous").tone == "good"


def test_offline_partial():
    status = offline(NetworkSummary(dht_routers=["router.bittorrent.com:6881"]))
    assert status.summary == "partially ready"
    assert status.entry("libp2p bootstrap").value == "not configured"


def test_offline_config_error():
    status = offline(NetworkSummary(), OSError("broken"))
    assert status.summary == "config error"
    assert status.summary_tone == "bad"
    for label in ("Discovery file", "Network ID", "libp2p bootstrap", "libp2p rendezvous", "BitTorrent DHT"):
        assert status.entry(label).tone == "bad"
        assert status.entry(label).value == "config error"


def test_live_online():
    status = live(
        heartbeat(
            libp2p=SyncLibP2PStatus(reachable_bootstrap=1, configured_bootstrap=4),
            bittorrent_dht=SyncBitTorrentStatus(good_nodes=2, nodes=5),
        )
    )
    assert status.summary == "online"
    assert status.summary_tone == "good"
    assert status.entry("libp2p bootstrap").tone == "good"
    assert status.entry("BitTorrent DHT").tone == "good"
    assert [e.label for e in status.entries] == ENTRY_LABELS
    assert status.dashboard[5].label == "Sync daemon"


def test_live_stale():
    status = live(heartbeat(updated_at=NOW - timedelta(minutes=5)))
    assert status.summary == "stale"
    assert status.summary_detail == "Sync daemon status is stale. Last heartbeat was 5m0s ago."


def test_live_backfill_stalled():
    status = live(
        heartbeat(
            sync_activity=SyncActivityStatus(queue_refs=3, last_event_at=NOW - timedelta(minutes=3)),
        )
    )
    assert status.summary == "backfill stalled"
    assert status.summary_detail.endswith("3m0s.")
    assert "Queue activity has been idle for" in status.entry("Sync daemon").detail


def test_live_partial_and_degraded():
    partial = live(heartbeat(libp2p=SyncLibP2PStatus(connected_bootstrap=1)))
    assert partial.summary == "partial"
    degraded = live(heartbeat())
    assert degraded.summary == "degraded"
    assert degraded.summary_detail.startswith("Sync daemon heartbeat updated ")


def test_live_mdns_and_pubsub():
    off = live(heartbeat())
    assert off.entry("LAN mDNS").value == "disabled"
    assert off.entry("LAN mDNS").detail == "Local network peer discovery is not active."
    assert off.entry("libp2p pubsub").value == "disabled"
    on = live(
        heartbeat(
            libp2p=SyncLibP2PStatus(mdns=SyncMDNSStatus(enabled=True, discovered_peers=2)),
            pubsub=SyncPubSubStatus(enabled=True, last_error="all dials failed"),
        )
    )
    assert on.entry("LAN mDNS").tone == "good"
    assert on.entry("libp2p pubsub").tone == "good"
    assert on.entry("libp2p pubsub").detail == (
        "Some peer dial attempts failed. Other reachable peers may still be healthy."
    )


def test_live_daemon_and_network_id():
    status = live(heartbeat(pid=42, mode="seed"), NetworkSummary(network_id=NETWORK_ID))
    assert status.entry("Sync daemon").value == "pid 42 · seed"
    assert status.entry("Network ID").value == NETWORK_ID
    assert status.entry("Network ID").tone == "warn"
    assert status.entry("Discovery file").value == "status only"
    pinned = live(heartbeat(network_id=NETWORK_ID))
    assert pinned.entry("Network ID").tone == "good"


def test_live_requires_heartbeat():
    with pytest.raises(ValueError):
        live(SyncRuntimeStatus())