# newsnode

`newsnode` is a library of building blocks for a peer-to-peer news node. It
reads the status file that the node's sync worker writes, applies
subscription rules to stored bundles, works out which addresses a LAN peer
can dial to reach the node, and turns all of that into a health summary
suitable for a dashboard.

It has no runtime dependencies beyond the Python standard library and needs
Python 3.10 or newer.

## Installation

```
pip install .
```

## Modules

### `newsnode.subscriptions`

- `SubscriptionRules` holds the channels, topics and tags to follow and the
  `max_age_days`, `max_bundle_mb` and `max_items_per_day` limits.
  `normalize()` drops blank and case-insensitive duplicate entries and puts
  defaults in place of non-positive limits; `is_empty()` tells whether the
  rules select nothing and impose no tighter limit; `from_dict()` builds rules
  from decoded JSON.
- `load_subscription_rules(path)` reads and normalizes a `subscriptions.json`
  file. A blank path or a missing file gives empty rules.
- `BundleRef` describes a stored bundle: its info hash, kind (`post`, `reply`
  or `reaction`), channel, creation time, size, topics, tags, the parent of a
  reply (`reply_to`) and the subject of a reaction (`subject`).
- `matches_subscription(bundle, rules)` checks the age and size limits and
  then whether a channel, topic or tag matches. The reserved topic `all`
  matches everything.
- `filter_subscribed(bundles, rules)` keeps the matching posts, subject to a
  per-UTC-day quota, together with the replies and reactions that point at
  them.
- Helpers: `unique_fold`, `utc_day_key`, `within_max_age`,
  `within_max_bundle_size`, `reserve_daily_quota`.

```python
from newsnode.subscriptions import BundleRef, SubscriptionRules, filter_subscribed

bundles = [
    BundleRef("post-world", kind="post", topics=["world", "energy"]),
    BundleRef("reply-world", kind="reply", reply_to="post-world"),
    BundleRef("post-tech", kind="post", topics=["technology"]),
]
kept = filter_subscribed(bundles, SubscriptionRules(topics=["energy"]))
print([bundle.info_hash for bundle in kept])  # ['post-world', 'reply-world']
```

### `newsnode.sync_status`

`load_sync_runtime_status(store_root)` reads `<store_root>/sync/status.json`
into a `SyncRuntimeStatus` (with its `SyncLibP2PStatus`, `SyncMDNSStatus`,
`SyncBitTorrentStatus`, `SyncPubSubStatus`, `SyncActivityStatus` and
`SyncPeerRef` parts). A missing file gives an empty status; a field of the
wrong type raises `ValueError`. `SyncRuntimeStatus.from_dict()` does the same
from already-decoded JSON.

### `newsnode.bootstrap`

- `dialable_libp2p_addrs(status, host)` and
  `dialable_bittorrent_nodes(status, host)` rewrite wildcard and loopback
  listen addresses to the host a client used, drop addresses on other IPs and
  remove duplicates. libp2p addresses get a `/p2p/<peer id>` suffix.
- `build_bootstrap_response(project, version, status, host)` returns a
  `NetworkBootstrapResponse`, or raises `LookupError` when libp2p is not
  online or nothing is dialable. `NetworkBootstrapResponse.to_dict()` and
  `from_dict()` convert to and from JSON-ready mappings.
- `lan_bootstrap_endpoint(value)` turns a host, `host:port` or URL into the
  peer's `/api/network/bootstrap` URL (default port 51818), and
  `fetch_network_bootstrap_response(value, expected_network_id, timeout)`
  queries it, raising `ValueError` on a network id mismatch.
- Helpers: `request_bootstrap_host`, `multiaddr_ip`,
  `rewrite_bootstrap_addr_for_host`, `rewrite_bittorrent_listen_for_host`.

### `newsnode.node_status`

- `build_live_node_status(...)` summarizes a node from its sync heartbeat:
  `online`, `partial`, `degraded`, `stale` (heartbeat older than two minutes)
  or `backfill stalled` (queued refs idle for more than two minutes).
- `build_offline_node_status(...)` summarizes a node from its bootstrap
  configuration alone, given as a `NetworkSummary`.
- Both return a `NodeStatus` with detailed `entries` and `dashboard` cards
  (`NodeStatusEntry` values); `NodeStatus.entry(label)` looks one up.
- `summarize_network_error(raw, fallback)` turns raw transport errors into
  readable sentences.

### `newsnode.presentation`

Formatting helpers: `format_score`, `format_average_truth`,
`compact_identity`, `is_public_keyish`, `is_agent_viewer`,
`should_show_network_warning`, `path_value`, `source_path`, `topic_path`,
`display_project_name`, `display_archive_path`, and the `SummaryStat`
builders `build_archive_summary_stats` and `build_archive_day_stats`.

## What the package does not do

- It has no command and no HTTP server: it renders no pages and serves no
  JSON endpoints itself. The functions above produce the values such a
  server would send.
- It does not read the bundle store or build a post index; callers supply
  `BundleRef` values.
- It does not parse the node's bootstrap configuration file; callers fill in
  a `NetworkSummary`.
- It does not build feed filter, sort or paging links, and it does not read
  or write a sync supervisor's state file.

## Running the tests

```
pip install ".[test]"
pytest
```