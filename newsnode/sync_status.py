"""Runtime status snapshot written by the sync daemon to ``sync/status.json``."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})\Z"
)
_ZERO_TIME_TEXT = "0001-01-01T00:00:00Z"


def _parse_time(text: str) -> datetime:
    """Parse an RFC 3339 timestamp; raise ValueError when it is malformed."""
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


def _format_time(value: Optional[datetime]) -> str:
    """Format a timestamp in RFC 3339 with trimmed fractional seconds."""
    if value is None:
        return _ZERO_TIME_TEXT
    offset = value.utcoffset() or timedelta(0)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    if not offset:
        return text + "Z"
    total = int(offset.total_seconds()) // 60
    sign = "+" if total >= 0 else "-"
    hours, minutes = divmod(abs(total), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def _is_zero_time(value: datetime) -> bool:
    return value.replace(tzinfo=None) == datetime(1, 1, 1) and not value.utcoffset()


def _typed(data: dict, key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise ValueError(f"field {key!r}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def _str(data: dict, key: str) -> str:
    return _typed(data, key, str, "")


def _int(data: dict, key: str) -> int:
    return _typed(data, key, int, 0)


def _bool(data: dict, key: str) -> bool:
    return _typed(data, key, bool, False)


def _str_list(data: dict, key: str) -> list[str]:
    items = _typed(data, key, list, [])
    result = []
    for item in items:
        if item is None:
            item = ""
        if not isinstance(item, str):
            raise ValueError(f"field {key!r}: expected a list of strings")
        result.append(item)
    return result


def _time(data: dict, key: str) -> Optional[datetime]:
    text = _typed(data, key, str, None)
    if text is None:
        return None
    parsed = _parse_time(text)
    return None if _is_zero_time(parsed) else parsed


def _object(data: Any, what: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{what}: expected a JSON object")
    return data


def _obj_list(data: dict, key: str) -> list[dict]:
    return [_object(item, key) for item in _typed(data, key, list, [])]


@dataclass
class SyncPeerRef:
    """One peer known to the daemon and the outcome of dialing it."""

    peer_id: str = ""
    address: str = ""
    connected: bool = False
    reachable: bool = False
    rtt: str = ""
    error: str = ""


@dataclass
class SyncMDNSStatus:
    """Local network discovery state."""

    enabled: bool = False
    service_name: str = ""
    discovered_peers: int = 0
    connected_peers: int = 0
    last_discovered_at: Optional[datetime] = None
    last_error: str = ""
    peers: list[SyncPeerRef] = field(default_factory=list)


@dataclass
class SyncLibP2PStatus:
    """libp2p control-plane state."""

    enabled: bool = False
    peer_id: str = ""
    configured_listen: list[str] = field(default_factory=list)
    listen_addrs: list[str] = field(default_factory=list)
    configured_bootstrap: int = 0
    configured_rendezvous: int = 0
    connected_bootstrap: int = 0
    reachable_bootstrap: int = 0
    connected_peers: int = 0
    routing_table_peers: int = 0
    mdns: SyncMDNSStatus = field(default_factory=SyncMDNSStatus)
    last_bootstrap_at: Optional[datetime] = None
    last_error: str = ""
    peers: list[SyncPeerRef] = field(default_factory=list)


@dataclass
class SyncBitTorrentStatus:
    """BitTorrent DHT state."""

    enabled: bool = False
    configured_listen: str = ""
    listen_addrs: list[str] = field(default_factory=list)
    configured_routers: int = 0
    servers: int = 0
    good_nodes: int = 0
    nodes: int = 0
    outstanding_transactions: int = 0
    last_error: str = ""


@dataclass
class SyncPubSubStatus:
    """Pubsub announcement relay state."""

    enabled: bool = False
    joined_topics: list[str] = field(default_factory=list)
    discovery_namespaces: list[str] = field(default_factory=list)
    published: int = 0
    received: int = 0
    enqueued: int = 0
    last_topic: str = ""
    last_infohash: str = ""
    last_published_at: Optional[datetime] = None
    last_received_at: Optional[datetime] = None
    last_error: str = ""


@dataclass
class SyncActivityStatus:
    """Queue and import counters of the sync worker."""

    queue_refs: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    last_ref: str = ""
    last_infohash: str = ""
    last_status: str = ""
    last_message: str = ""
    last_event_at: Optional[datetime] = None


def _peer_from_dict(data: dict) -> SyncPeerRef:
    return SyncPeerRef(
        peer_id=_str(data, "peer_id"),
        address=_str(data, "address"),
        connected=_bool(data, "connected"),
        reachable=_bool(data, "reachable"),
        rtt=_str(data, "rtt"),
        error=_str(data, "error"),
    )


def _mdns_from_dict(data: dict) -> SyncMDNSStatus:
    return SyncMDNSStatus(
        enabled=_bool(data, "enabled"),
        service_name=_str(data, "service_name"),
        discovered_peers=_int(data, "discovered_peers"),
        connected_peers=_int(data, "connected_peers"),
        last_discovered_at=_time(data, "last_discovered_at"),
        last_error=_str(data, "last_error"),
        peers=[_peer_from_dict(item) for item in _obj_list(data, "peers")],
    )


def _libp2p_from_dict(data: dict) -> SyncLibP2PStatus:
    return SyncLibP2PStatus(
        enabled=_bool(data, "enabled"),
        peer_id=_str(data, "peer_id"),
        configured_listen=_str_list(data, "configured_listen"),
        listen_addrs=_str_list(data, "listen_addrs"),
        configured_bootstrap=_int(data, "configured_bootstrap"),
        configured_rendezvous=_int(data, "configured_rendezvous"),
        connected_bootstrap=_int(data, "connected_bootstrap"),
        reachable_bootstrap=_int(data, "reachable_bootstrap"),
        connected_peers=_int(data, "connected_peers"),
        routing_table_peers=_int(data, "routing_table_peers"),
        mdns=_mdns_from_dict(_object(data.get("mdns"), "mdns")),
        last_bootstrap_at=_time(data, "last_bootstrap_at"),
        last_error=_str(data, "last_error"),
        peers=[_peer_from_dict(item) for item in _obj_list(data, "peers")],
    )


def _bittorrent_from_dict(data: dict) -> SyncBitTorrentStatus:
    return SyncBitTorrentStatus(
        enabled=_bool(data, "enabled"),
        configured_listen=_str(data, "configured_listen"),
        listen_addrs=_str_list(data, "listen_addrs"),
        configured_routers=_int(data, "configured_routers"),
        servers=_int(data, "servers"),
        good_nodes=_int(data, "good_nodes"),
        nodes=_int(data, "nodes"),
        outstanding_transactions=_int(data, "outstanding_transactions"),
        last_error=_str(data, "last_error"),
    )


def _pubsub_from_dict(data: dict) -> SyncPubSubStatus:
    return SyncPubSubStatus(
        enabled=_bool(data, "enabled"),
        joined_topics=_str_list(data, "joined_topics"),
        discovery_namespaces=_str_list(data, "discovery_namespaces"),
        published=_int(data, "published"),
        received=_int(data, "received"),
        enqueued=_int(data, "enqueued"),
        last_topic=_str(data, "last_topic"),
        last_infohash=_str(data, "last_infohash"),
        last_published_at=_time(data, "last_published_at"),
        last_received_at=_time(data, "last_received_at"),
        last_error=_str(data, "last_error"),
    )


def _activity_from_dict(data: dict) -> SyncActivityStatus:
    return SyncActivityStatus(
        queue_refs=_int(data, "queue_refs"),
        imported=_int(data, "imported"),
        skipped=_int(data, "skipped"),
        failed=_int(data, "failed"),
        last_ref=_str(data, "last_ref"),
        last_infohash=_str(data, "last_infohash"),
        last_status=_str(data, "last_status"),
        last_message=_str(data, "last_message"),
        last_event_at=_time(data, "last_event_at"),
    )


@dataclass
class SyncRuntimeStatus:
    """The full heartbeat record of the sync daemon.

    ``updated_at`` and ``started_at`` are ``None`` when the daemon has never
    reported them.
    """

    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    pid: int = 0
    store_root: str = ""
    queue_path: str = ""
    mode: str = ""
    seed: bool = False
    network_id: str = ""
    libp2p: SyncLibP2PStatus = field(default_factory=SyncLibP2PStatus)
    bittorrent_dht: SyncBitTorrentStatus = field(default_factory=SyncBitTorrentStatus)
    pubsub: SyncPubSubStatus = field(default_factory=SyncPubSubStatus)
    sync_activity: SyncActivityStatus = field(default_factory=SyncActivityStatus)

    @classmethod
    def from_dict(cls, data: Any) -> "SyncRuntimeStatus":
        """Build a status from decoded JSON; raise ValueError on bad shapes."""
        data = _object(data, "status")
        return cls(
            updated_at=_time(data, "updated_at"),
            started_at=_time(data, "started_at"),
            pid=_int(data, "pid"),
            store_root=_str(data, "store_root"),
            queue_path=_str(data, "queue_path"),
            mode=_str(data, "mode"),
            seed=_bool(data, "seed"),
            network_id=_str(data, "network_id"),
            libp2p=_libp2p_from_dict(_object(data.get("libp2p"), "libp2p")),
            bittorrent_dht=_bittorrent_from_dict(
                _object(data.get("bittorrent_dht"), "bittorrent_dht")
            ),
            pubsub=_pubsub_from_dict(_object(data.get("pubsub"), "pubsub")),
            sync_activity=_activity_from_dict(
                _object(data.get("sync_activity"), "sync_activity")
            ),
        )


def load_sync_runtime_status(store_root: str) -> SyncRuntimeStatus:
    """Read ``<store_root>/sync/status.json``; a missing file gives an empty status."""
    path = Path(store_root) / "sync" / "status.json"
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return SyncRuntimeStatus()
    return SyncRuntimeStatus.from_dict(json.loads(text))