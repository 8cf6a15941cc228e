import json
from datetime import datetime, timezone

import pytest

from newsnode.sync_status import (
    SyncLibP2PStatus,
    SyncPeerRef,
    SyncRuntimeStatus,
    load_sync_runtime_status,
)

NETWORK_ID = "b2090347cee0ff1a577b1101d4adbd664c309932d3c2578971c11997fdd2164e"


def _payload():
    return {
        "updated_at": "2026-03-12T12:00:00Z",
        "started_at": "2026-03-12T11:00:00Z",
        "pid": 4242,
        "store_root": "/tmp/store",
        "mode": "seed",
        "seed": True,
        "network_id": NETWORK_ID,
        "libp2p": {
            "enabled": True,
            "peer_id": "12D3KooWTestPeer",
            "configured_listen": ["/ip4/0.0.0.0/tcp/52892"],
            "listen_addrs": ["/ip4/192.168.102.74/tcp/52892"],
            "reachable_bootstrap": 2,
            "mdns": {
                "enabled": True,
                "discovered_peers": 3,
                "peers": [
                    {"peer_id": "peer-a", "address": "/ip4/10.0.0.2/tcp/1", "connected": True, "rtt": "12ms"}
                ],
            },
        },
        "bittorrent_dht": {"configured_listen": "0.0.0.0:52893", "good_nodes": 5},
        "pubsub": {"enabled": True, "joined_topics": ["aip2p.news/global"], "last_published_at": None},
        "sync_activity": {"queue_refs": 7, "last_event_at": "2026-03-12T11:59:00Z"},
    }


def _write_status(store_root, text):
    path = store_root / "sync" / "status.json"
    path.parent.mkdir(parents=True)
    path.write_text(text, encoding="utf-8")


def test_missing_file_gives_empty_status(tmp_path):
    status = load_sync_runtime_status(str(tmp_path))
    assert status == SyncRuntimeStatus()
    assert status.updated_at is None


def test_loads_nested_fields(tmp_path):
    _write_status(tmp_path, json.dumps(_payload()))
    status = load_sync_runtime_status(str(tmp_path))
    assert status.pid == 4242
    assert status.mode == "seed"
    assert status.seed is True
    assert status.network_id == NETWORK_ID
    assert status.updated_at == datetime(2026, 3, 12, 12, 0, tzinfo=timezone.utc)
    assert status.libp2p.peer_id == "12D3KooWTestPeer"
    assert status.libp2p.configured_listen == ["/ip4/0.0.0.0/tcp/52892"]
    assert status.libp2p.reachable_bootstrap == 2
    assert status.libp2p.mdns.discovered_peers == 3
    assert status.libp2p.mdns.peers == [
        SyncPeerRef(peer_id="peer-a", address="/ip4/10.0.0.2/tcp/1", connected=True, rtt="12ms")
    ]
    assert status.bittorrent_dht.configured_listen == "0.0.0.0:52893"
    assert status.bittorrent_dht.good_nodes == 5
    assert status.pubsub.joined_topics == ["aip2p.news/global"]
    assert status.pubsub.last_published_at is None
    assert status.sync_activity.queue_refs == 7
    assert status.sync_activity.last_event_at == datetime(2026, 3, 12, 11, 59, tzinfo=timezone.utc)


def test_file_and_dict_give_same_status(tmp_path):
    _write_status(tmp_path, json.dumps(_payload()))
    assert load_sync_runtime_status(str(tmp_path)) == SyncRuntimeStatus.from_dict(_payload())


def test_zero_time_is_treated_as_unset():
    status = SyncRuntimeStatus.from_dict({"updated_at": "0001-01-01T00:00:00Z"})
    assert status.updated_at is None


def test_nanosecond_fraction_is_truncated_to_microseconds():
    status = SyncRuntimeStatus.from_dict({"updated_at": "2026-03-12T12:00:00.123456789Z"})
    assert status.updated_at == datetime(2026, 3, 12, 12, 0, 0, 123456, tzinfo=timezone.utc)


def test_offset_time_denotes_same_instant():
    status = SyncRuntimeStatus.from_dict({"started_at": "2026-03-12T14:00:00+02:00"})
    assert status.started_at == datetime(2026, 3, 12, 12, 0, tzinfo=timezone.utc)


def test_null_sections_give_defaults():
    status = SyncRuntimeStatus.from_dict({"libp2p": None, "pid": None})
    assert status.libp2p == SyncLibP2PStatus()
    assert status.pid == 0


def test_none_gives_default():
    assert SyncRuntimeStatus.from_dict(None) == SyncRuntimeStatus()


def test_invalid_json_raises(tmp_path):
    _write_status(tmp_path, "{not json")
    with pytest.raises(ValueError):
        load_sync_runtime_status(str(tmp_path))


def test_invalid_time_raises():
    with pytest.raises(ValueError):
        SyncRuntimeStatus.from_dict({"updated_at": "yesterday"})


def test_wrong_field_type_raises():
    with pytest.raises(ValueError):
        SyncRuntimeStatus.from_dict({"pid": "many"})


def test_non_object_raises():
    with pytest.raises(ValueError):
        SyncRuntimeStatus.from_dict([1, 2])