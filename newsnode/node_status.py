"""Health summary of a node: what the dashboard and every page header show."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from .sync_status import SyncRuntimeStatus

DEFAULT_NET_FILE_NAME = "aip2p_news_net.inf"
STALE_AFTER = timedelta(minutes=2)
_MAX_ERROR_TEXT = 180

_ERROR_SUMMARIES = (
    ("dial to self attempted", "A discovered address points back to this node. This is noisy but harmless."),
    ("peer id mismatch", "At least one peer advertised an address with the wrong peer identity. The node skipped it."),
    ("no addresses", "A peer was discovered without dialable addresses. Discovery still worked, but that peer could not be contacted."),
    ("context deadline exceeded", "A network dial timed out. The node will keep retrying healthy peers."),
    ("connection refused", "A peer address was reachable at the network layer but refused the connection."),
    ("all dials failed", "Some peer dial attempts failed. Other reachable peers may still be healthy."),
    ("timed out waiting for metadata", "Torrent metadata retrieval timed out for at least one queued ref."),
)

_HTTP_UI_DETAIL = "The local dashboard is reachable on this node."
_STORE_DETAIL = "AiP2P News is reading from the local immutable bundle store."
_TORRENT_DETAIL = "Immutable torrent references currently mirrored on this node."
_PUBSUB_IDLE_DETAIL = "Pubsub topic joins start when the sync daemon is running."
_MDNS_IDLE_DETAIL = "Local network discovery starts when the sync daemon is running."


@dataclass
class NetworkSummary:
    """The parts of the bootstrap configuration file that the status view needs."""

    exists: bool = False
    file_name: str = DEFAULT_NET_FILE_NAME
    network_id: str = ""
    lan_peers: list[str] = field(default_factory=list)
    lan_torrent_peers: list[str] = field(default_factory=list)
    libp2p_bootstrap: list[str] = field(default_factory=list)
    libp2p_rendezvous: list[str] = field(default_factory=list)
    dht_routers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NodeStatusEntry:
    """One labelled line (or dashboard card) of the node status."""

    label: str
    value: str
    detail: str
    tone: str


@dataclass
class NodeStatus:
    """Overall verdict plus the detailed entries and the dashboard cards."""

    summary: str
    summary_tone: str
    summary_detail: str
    entries: list[NodeStatusEntry] = field(default_factory=list)
    dashboard: list[NodeStatusEntry] = field(default_factory=list)

    def entry(self, label: str) -> NodeStatusEntry:
        """The entry with ``label``; raise KeyError when there is none."""
        for item in self.entries:
            if item.label == label:
                return item
        raise KeyError(label)


def _format_duration(value: timedelta) -> str:
    """Whole-second duration in the compact ``1h2m3s`` form."""
    micros = value // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    seconds = abs(micros) // 1_000_000
    if seconds == 0:
        return "0s"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def summarize_network_error(raw: str, fallback: str) -> str:
    """A readable explanation of a transport error, or ``fallback`` for blank or long text."""
    text = (raw or "").strip()
    if not text:
        return fallback
    lower = text.lower()
    for needle, summary in _ERROR_SUMMARIES:
        if needle in lower:
            return summary
    if len(text) > _MAX_ERROR_TEXT:
        return fallback
    return text


def _common_entries(
    listen_addr: str, store_state: str, store_tone: str, bundle_count: int, torrent_count: int
) -> list[NodeStatusEntry]:
    return [
        NodeStatusEntry("HTTP UI", "online " + listen_addr, _HTTP_UI_DETAIL, "good"),
        NodeStatusEntry(
            "Bundle store", f"{store_state} · {bundle_count} bundles", _STORE_DETAIL, store_tone
        ),
        NodeStatusEntry("Torrent refs", f"{torrent_count} available", _TORRENT_DETAIL, "good"),
    ]


def build_offline_node_status(
    bundle_count: int,
    store_state: str,
    store_tone: str,
    torrent_count: int,
    net: Optional[NetworkSummary],
    net_error: object,
    listen_addr: str,
) -> NodeStatus:
    """Status from configuration alone, used while no sync daemon heartbeat exists.

    ``net_error`` is anything truthy (usually the exception) when the
    bootstrap file could not be read.
    """
    net = net or NetworkSummary()
    failed = bool(net_error)

    if failed:
        discovery = NodeStatusEntry(
            "Discovery file", "config error", "aip2p_news_net.inf could not be read.", "bad"
        )
        dht = NodeStatusEntry(
            "BitTorrent DHT", "config error", "BitTorrent router config could not be parsed.", "bad"
        )
        libp2p = NodeStatusEntry(
            "libp2p bootstrap", "config error", "libp2p bootstrap config could not be parsed.", "bad"
        )
        rendezvous = NodeStatusEntry(
            "libp2p rendezvous", "config error", "Rendezvous config could not be parsed.", "bad"
        )
        network_id = NodeStatusEntry(
            "Network ID",
            "config error",
            "network_id could not be parsed from aip2p_news_net.inf.",
            "bad",
        )
    else:
        if net.exists:
            discovery = NodeStatusEntry(
                "Discovery file",
                f"{net.file_name} loaded",
                "Bootstrap profile is present on this node.",
                "good",
            )
        else:
            discovery = NodeStatusEntry(
                "Discovery file",
                "not loaded",
                "Add aip2p_news_net.inf to declare bootstrap peers and routers.",
                "warn",
            )
        if net.dht_routers:
            dht = NodeStatusEntry(
                "BitTorrent DHT",
                f"{len(net.dht_routers)} bootstrap routers configured",
                "Router list is ready. Live DHT traffic will come from the sync daemon.",
                "good",
            )
        else:
            dht = NodeStatusEntry(
                "BitTorrent DHT",
                "not configured",
                "Add dht_router entries to prepare BitTorrent-assisted discovery.",
                "warn",
            )
        if net.libp2p_bootstrap:
            libp2p = NodeStatusEntry(
                "libp2p bootstrap",
                f"{len(net.libp2p_bootstrap)} bootstrap peers configured",
                "Peer list is ready. Live peer dialing will come from the sync daemon.",
                "good",
            )
        else:
            libp2p = NodeStatusEntry(
                "libp2p bootstrap",
                "not configured",
                "Add libp2p_bootstrap peers to prepare the live control plane.",
                "warn",
            )
        if net.libp2p_rendezvous:
            rendezvous = NodeStatusEntry(
                "libp2p rendezvous",
                f"{len(net.libp2p_rendezvous)} rendezvous topics configured",
                "Namespaces are ready for peer discovery.",
                "good",
            )
        else:
            rendezvous = NodeStatusEntry(
                "libp2p rendezvous",
                "not configured",
                "Add libp2p_rendezvous topics so peers can meet on shared namespaces.",
                "warn",
            )
        if net.network_id:
            network_id = NodeStatusEntry(
                "Network ID",
                net.network_id,
                "This node is pinned to one AiP2P network namespace even if other projects "
                "reuse the same human-readable name.",
                "good",
            )
        else:
            network_id = NodeStatusEntry(
                "Network ID",
                "not configured",
                "Add a stable 256-bit network_id so same-name projects do not share the same "
                "AiP2P discovery space.",
                "warn",
            )

    if failed:
        summary, tone = "config error", "bad"
        detail = "aip2p_news_net.inf exists but could not be parsed."
    elif net.libp2p_bootstrap and net.dht_routers:
        summary, tone = "bootstrap ready", "good"
        detail = (
            "libp2p and BitTorrent discovery profiles are loaded. AiP2P News Public is still "
            "in UI/index mode until the sync daemon is running."
        )
    elif net.libp2p_bootstrap or net.dht_routers:
        summary, tone = "partially ready", "warn"
        detail = (
            "At least one transport profile is loaded, but the network bootstrap set is "
            "incomplete."
        )
    else:
        summary, tone = "offline", "warn"
        detail = "No bootstrap transports are configured yet."

    pubsub = NodeStatusEntry("libp2p pubsub", "not running", _PUBSUB_IDLE_DETAIL, "warn")
    mdns = NodeStatusEntry("LAN mDNS", "not running", _MDNS_IDLE_DETAIL, "warn")
    daemon = NodeStatusEntry(
        "Sync daemon",
        "not running",
        "Run `aip2p sync` to turn bootstrap configuration into a live network session.",
        "warn",
    )
    entries = [
        NodeStatusEntry("Overall", summary, detail, tone),
        *_common_entries(listen_addr, store_state, store_tone, bundle_count, torrent_count),
        daemon,
        pubsub,
        discovery,
        network_id,
        mdns,
        libp2p,
        rendezvous,
        dht,
    ]
    dashboard = [
        NodeStatusEntry("Node mode", summary, detail, tone),
        pubsub,
        mdns,
        libp2p,
        dht,
        NodeStatusEntry("Discovery profile", discovery.value, discovery.detail, discovery.tone),
        network_id,
    ]
    return NodeStatus(summary, tone, detail, entries, dashboard)


def build_live_node_status(
    bundle_count: int,
    store_state: str,
    store_tone: str,
    torrent_count: int,
    net: Optional[NetworkSummary],
    sync_status: SyncRuntimeStatus,
    listen_addr: str,
    now: Optional[datetime] = None,
) -> NodeStatus:
    """Status from the sync daemon heartbeat; ``sync_status.updated_at`` must be set."""
    if sync_status.updated_at is None:
        raise ValueError("sync status has no heartbeat time")
    net = net or NetworkSummary()
    now = now or datetime.now(timezone.utc)
    activity = sync_status.sync_activity
    libp2p_state = sync_status.libp2p
    dht_state = sync_status.bittorrent_dht
    pubsub_state = sync_status.pubsub

    age = now - sync_status.updated_at
    queue_stalled = False
    stall_age = timedelta(0)
    if activity.queue_refs > 0:
        if activity.last_event_at is not None:
            stall_age = now - activity.last_event_at
        elif sync_status.started_at is not None:
            stall_age = now - sync_status.started_at
        else:
            stall_age = age
        queue_stalled = stall_age > STALE_AFTER

    if age > STALE_AFTER:
        summary, tone = "stale", "warn"
        detail = f"Sync daemon status is stale. Last heartbeat was {_format_duration(age)} ago."
    elif queue_stalled:
        summary, tone = "backfill stalled", "warn"
        detail = (
            "Sync worker is alive, but queue refs have not moved for "
            f"{_format_duration(stall_age)}."
        )
    elif libp2p_state.reachable_bootstrap > 0 and dht_state.good_nodes > 0:
        summary, tone = "online", "good"
        detail = "libp2p bootstrap peers are reachable and BitTorrent DHT has live nodes."
    elif libp2p_state.connected_bootstrap > 0 or dht_state.nodes > 0:
        summary, tone = "partial", "warn"
        detail = "At least one transport is online, but the full sync path is not yet healthy."
    else:
        summary, tone = "degraded", "warn"
        detail = f"Sync daemon heartbeat updated {_format_duration(age)} ago."

    libp2p_detail = "Live libp2p bootstrap reachability from the sync daemon."
    if libp2p_state.last_error:
        libp2p_detail = summarize_network_error(
            libp2p_state.last_error, "libp2p bootstrap has transient dial noise."
        )
    libp2p = NodeStatusEntry(
        "libp2p bootstrap",
        f"{libp2p_state.reachable_bootstrap}/{libp2p_state.configured_bootstrap} reachable"
        f" · {libp2p_state.connected_peers} peers",
        libp2p_detail,
        "good" if libp2p_state.reachable_bootstrap > 0 else "warn",
    )

    rendezvous = NodeStatusEntry(
        "libp2p rendezvous",
        f"{libp2p_state.configured_rendezvous} configured",
        "Rendezvous namespaces declared for the live control plane.",
        "good" if libp2p_state.configured_rendezvous > 0 else "warn",
    )

    dht_detail = (
        f"{dht_state.servers} DHT servers, "
        f"{dht_state.outstanding_transactions} outstanding transactions."
    )
    if dht_state.last_error:
        dht_detail = summarize_network_error(
            dht_state.last_error, "BitTorrent DHT reported a transport problem."
        )
    dht = NodeStatusEntry(
        "BitTorrent DHT",
        f"{dht_state.good_nodes} good / {dht_state.nodes} total nodes",
        dht_detail,
        "good" if dht_state.good_nodes > 0 else "warn",
    )

    if pubsub_state.enabled:
        pubsub_detail = (
            f"{pubsub_state.published} local announcements published across "
            f"{len(pubsub_state.discovery_namespaces)} discovery namespaces."
        )
        if pubsub_state.last_error:
            pubsub_detail = summarize_network_error(
                pubsub_state.last_error,
                "Pubsub relay is active but some peer announcements are noisy.",
            )
        pubsub = NodeStatusEntry(
            "libp2p pubsub",
            f"{len(pubsub_state.joined_topics)} topics · {pubsub_state.received} rx"
            f" · {pubsub_state.enqueued} enqueued",
            pubsub_detail,
            "good",
        )
    else:
        pubsub = NodeStatusEntry(
            "libp2p pubsub", "disabled", "Pubsub announcement relay is not active.", "warn"
        )

    mdns_state = libp2p_state.mdns
    if not mdns_state.enabled:
        mdns = NodeStatusEntry(
            "LAN mDNS", "disabled", "Local network peer discovery is not active.", "warn"
        )
    else:
        mdns_tone = "warn"
        mdns_detail = "mDNS is listening for AiP2P peers on the local network."
        if mdns_state.last_error:
            mdns_detail = summarize_network_error(
                mdns_state.last_error, "mDNS is active but local peer dialing is noisy."
            )
        elif mdns_state.discovered_peers > 0:
            mdns_tone = "good"
            mdns_detail = "Local network peers have been discovered through mDNS."
        mdns = NodeStatusEntry(
            "LAN mDNS",
            f"{mdns_state.discovered_peers} discovered · {mdns_state.connected_peers} connected",
            mdns_detail,
            mdns_tone,
        )

    if net.exists:
        discovery = NodeStatusEntry(
            "Discovery file",
            "sync daemon active",
            f"{net.file_name} loaded; sync status heartbeat is current.",
            "good",
        )
    else:
        discovery = NodeStatusEntry(
            "Discovery file",
            "status only",
            "Sync daemon is running, but aip2p_news_net.inf is not present on this node.",
            "good",
        )

    daemon_detail = (
        f"Queue refs {activity.queue_refs}, imported {activity.imported}, "
        f"skipped {activity.skipped}, failed {activity.failed}."
    )
    if activity.last_status:
        daemon_detail = f"{daemon_detail} Last result: {activity.last_status}."
    if queue_stalled:
        daemon_detail = (
            f"{daemon_detail} Queue activity has been idle for {_format_duration(stall_age)}."
        )
    daemon = NodeStatusEntry(
        "Sync daemon", f"pid {sync_status.pid} · {sync_status.mode}", daemon_detail, "good"
    )

    if sync_status.network_id:
        network_id = NodeStatusEntry(
            "Network ID",
            sync_status.network_id,
            "Active 256-bit namespace used for pubsub topics, rendezvous discovery, and "
            "announcement filtering.",
            "good",
        )
    else:
        network_id = NodeStatusEntry(
            "Network ID",
            net.network_id,
            "No network_id is active; this node may still be using older shared discovery "
            "namespaces.",
            "warn",
        )

    entries = [
        NodeStatusEntry("Overall", summary, detail, tone),
        *_common_entries(listen_addr, store_state, store_tone, bundle_count, torrent_count),
        daemon,
        pubsub,
        discovery,
        network_id,
        mdns,
        libp2p,
        rendezvous,
        dht,
    ]
    dashboard = [
        NodeStatusEntry("Node mode", summary, detail, tone),
        pubsub,
        mdns,
        libp2p,
        dht,
        daemon,
        network_id,
    ]
    return NodeStatus(summary, tone, detail, entries, dashboard)