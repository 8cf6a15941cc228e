"""Network bootstrap answers: which addresses a LAN peer can dial to reach this node."""

from __future__ import annotations

import ipaddress
import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from urllib.parse import urlsplit

from .sync_status import SyncRuntimeStatus, _object, _str, _str_list

DEFAULT_HTTP_PORT = "51818"
BOOTSTRAP_PATH = "/api/network/bootstrap"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_WILDCARD_OR_LOOPBACK = frozenset({"", "0.0.0.0", "::", "[::]", "127.0.0.1", "::1", "[::1]"})


@dataclass
class NetworkBootstrapResponse:
    """What ``/api/network/bootstrap`` reports about a running node."""

    project: str = ""
    version: str = ""
    network_id: str = ""
    peer_id: str = ""
    listen_addrs: list[str] = field(default_factory=list)
    dial_addrs: list[str] = field(default_factory=list)
    bittorrent_nodes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "NetworkBootstrapResponse":
        """Build a response from decoded JSON; raise ValueError on bad shapes."""
        data = _object(data, "bootstrap response")
        return cls(
            project=_str(data, "project"),
            version=_str(data, "version"),
            network_id=_str(data, "network_id"),
            peer_id=_str(data, "peer_id"),
            listen_addrs=_str_list(data, "listen_addrs"),
            dial_addrs=_str_list(data, "dial_addrs"),
            bittorrent_nodes=_str_list(data, "bittorrent_nodes"),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping; ``bittorrent_nodes`` is left out when empty."""
        payload: dict[str, Any] = {
            "project": self.project,
            "version": self.version,
            "network_id": self.network_id,
            "peer_id": self.peer_id,
            "listen_addrs": list(self.listen_addrs),
            "dial_addrs": list(self.dial_addrs),
        }
        if self.bittorrent_nodes:
            payload["bittorrent_nodes"] = list(self.bittorrent_nodes)
        return payload


def _parse_ip(text: str) -> Optional[IPAddress]:
    """An IP address, with IPv4-mapped IPv6 folded to IPv4; None when not an IP."""
    text = text.strip()
    if not text or "%" in text:
        return None
    try:
        ip = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _split_host_port(hostport: str) -> tuple[str, str]:
    """Split ``host:port`` or ``[host]:port``; raise ValueError when malformed."""
    colon = hostport.rfind(":")
    if colon < 0:
        raise ValueError(f"missing port in address {hostport!r}")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {hostport!r}")
        if end + 1 == len(hostport):
            raise ValueError(f"missing port in address {hostport!r}")
        if end + 1 != colon:
            if hostport[end + 1] == ":":
                raise ValueError(f"too many colons in address {hostport!r}")
            raise ValueError(f"missing port in address {hostport!r}")
        host = hostport[1:end]
        open_from, close_from = 1, end + 1
    else:
        host = hostport[:colon]
        if ":" in host:
            raise ValueError(f"too many colons in address {hostport!r}")
        open_from = close_from = 0
    if "[" in hostport[open_from:]:
        raise ValueError(f"unexpected '[' in address {hostport!r}")
    if "]" in hostport[close_from:]:
        raise ValueError(f"unexpected ']' in address {hostport!r}")
    return host, hostport[colon + 1:]


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def request_bootstrap_host(host: Optional[str]) -> str:
    """The bare host of a request's Host header, without port or brackets."""
    host = (host or "").strip()
    if not host:
        return ""
    try:
        name, _ = _split_host_port(host)
    except ValueError:
        return host.strip("[]")
    return name.strip("[]")


def multiaddr_ip(value: str) -> Optional[IPAddress]:
    """The first ``/ip4/`` or ``/ip6/`` address in a multiaddr, if any."""
    parts = value.strip().split("/")
    for protocol, argument in zip(parts, parts[1:]):
        if protocol in ("ip4", "ip6"):
            ip = _parse_ip(argument)
            if ip is not None:
                return ip
    return None


def rewrite_bootstrap_addr_for_host(value: str, host: str) -> str:
    """Replace a wildcard or loopback IP in a multiaddr with the request host."""
    host = host.strip()
    if not value or not host:
        return value
    ip = _parse_ip(host)
    if ip is None:
        return value
    if isinstance(ip, ipaddress.IPv4Address):
        value = value.replace("/ip4/0.0.0.0/", f"/ip4/{host}/", 1)
        value = value.replace("/ip4/127.0.0.1/", f"/ip4/{host}/", 1)
    else:
        value = value.replace("/ip6/::/", f"/ip6/{host}/", 1)
        value = value.replace("/ip6/::1/", f"/ip6/{host}/", 1)
    return value


def rewrite_bittorrent_listen_for_host(value: str, host: str) -> str:
    """A dialable ``host:port`` for a BitTorrent listen address, or "" if there is none."""
    value = value.strip()
    host = host.strip()
    if not value:
        return ""
    try:
        listen_host, port = _split_host_port(value)
    except ValueError:
        return ""
    if listen_host.strip() in _WILDCARD_OR_LOOPBACK:
        if not host:
            return ""
        return _join_host_port(host, port)
    return _join_host_port(listen_host.strip("[]"), port)


def _multiaddr_matches(value: str, request_ip: Optional[IPAddress]) -> bool:
    if request_ip is None:
        return True
    addr_ip = multiaddr_ip(value)
    if addr_ip is None:
        return True
    return addr_ip == request_ip


def _torrent_node_matches(value: str, request_ip: Optional[IPAddress]) -> bool:
    if request_ip is None:
        return True
    try:
        node_host, _ = _split_host_port(value.strip())
    except ValueError:
        return False
    ip = _parse_ip(node_host.strip("[]"))
    return ip is not None and ip == request_ip


def dialable_libp2p_addrs(status: SyncRuntimeStatus, host: str) -> list[str]:
    """libp2p multiaddrs, with peer id, that a client reaching ``host`` can dial."""
    peer_id = status.libp2p.peer_id.strip()
    if not peer_id:
        return []
    request_ip = _parse_ip(host)
    result: list[str] = []
    seen: set[str] = set()
    for raw in [*status.libp2p.listen_addrs, *status.libp2p.configured_listen]:
        value = rewrite_bootstrap_addr_for_host(raw.strip(), host)
        if not value or not _multiaddr_matches(value, request_ip):
            continue
        if "/p2p/" not in value:
            value += "/p2p/" + peer_id
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def dialable_bittorrent_nodes(status: SyncRuntimeStatus, host: str) -> list[str]:
    """BitTorrent ``host:port`` nodes that a client reaching ``host`` can dial."""
    dht = status.bittorrent_dht
    candidates = [
        rewrite_bittorrent_listen_for_host(raw, host)
        for raw in [dht.configured_listen, *dht.listen_addrs]
    ]
    request_ip = _parse_ip(host)
    result: list[str] = []
    seen: set[str] = set()
    for value in candidates:
        if not value or not _torrent_node_matches(value, request_ip):
            continue
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def build_bootstrap_response(
    project: str, version: str, status: SyncRuntimeStatus, host: Optional[str]
) -> NetworkBootstrapResponse:
    """The bootstrap answer for a request whose Host header is ``host``.

    Raises LookupError when the sync daemon is offline or nothing is dialable.
    """
    if not status.libp2p.enabled or not status.libp2p.peer_id.strip():
        raise LookupError("libp2p sync daemon is not online on this node")
    request_host = request_bootstrap_host(host)
    dial_addrs = dialable_libp2p_addrs(status, request_host)
    if not dial_addrs:
        raise LookupError("no dialable libp2p addresses available on this node")
    return NetworkBootstrapResponse(
        project=project,
        version=version,
        network_id=status.network_id,
        peer_id=status.libp2p.peer_id,
        listen_addrs=list(status.libp2p.listen_addrs),
        dial_addrs=dial_addrs,
        bittorrent_nodes=dialable_bittorrent_nodes(status, request_host),
    )


def lan_bootstrap_endpoint(value: str) -> str:
    """The bootstrap API URL of a LAN peer given as a host, ``host:port`` or URL."""
    value = value.strip()
    if not value:
        raise ValueError("empty lan bt peer")
    if "://" not in value:
        value = "http://" + value
    parts = urlsplit(value)
    userinfo, _, host = parts.netloc.rpartition("@")
    host = host.strip()
    path = parts.path
    if not host:
        host = path.strip()
    if not host:
        raise ValueError("missing host")
    try:
        _split_host_port(host)
    except ValueError:
        host = _join_host_port(host.strip("[]"), DEFAULT_HTTP_PORT)
    prefix = f"{userinfo}@" if userinfo else ""
    return f"http://{prefix}{host}{BOOTSTRAP_PATH}"


def fetch_network_bootstrap_response(
    value: str, expected_network_id: str = "", timeout: float = 3.0
) -> NetworkBootstrapResponse:
    """Ask a LAN peer for its bootstrap answer.

    Raises ConnectionError for a non-200 reply, ValueError for a bad address,
    body or network id mismatch, and OSError for transport failures.
    """
    endpoint = lan_bootstrap_endpoint(value)
    request = urllib.request.Request(endpoint, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = response.status
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise ConnectionError(f"status {exc.code}") from None
    if status != 200:
        raise ConnectionError(f"status {status}")
    payload = NetworkBootstrapResponse.from_dict(json.loads(body))
    if (
        expected_network_id.strip()
        and payload.network_id.strip()
        and payload.network_id != expected_network_id
    ):
        raise ValueError("network id mismatch")
    return payload