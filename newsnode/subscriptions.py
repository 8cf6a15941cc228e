"""Subscription rules that decide which bundles this node keeps."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, MutableMapping, Optional

from .sync_status import _int, _object, _parse_time, _str_list

RESERVED_TOPIC_ALL = "all"
DEFAULT_MAX_AGE_DAYS = 99999999
DEFAULT_MAX_BUNDLE_MB = 10
DEFAULT_MAX_ITEMS_PER_DAY = 999999999999


def unique_fold(items: Iterable[str]) -> list[str]:
    """Trimmed, non-empty items with case-insensitive duplicates dropped, order kept."""
    seen: set[str] = set()
    result = []
    for item in items:
        item = item.strip()
        if not item:
            continue
        key = item.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def _contains_fold(items: Iterable[str], target: str) -> bool:
    target = target.strip().lower()
    return any(item.strip().lower() == target for item in items)


@dataclass
class SubscriptionRules:
    """Channels, topics and tags to follow, plus age, size and daily limits."""

    channels: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    max_age_days: int = 0
    max_bundle_mb: int = 0
    max_items_per_day: int = 0

    def normalize(self) -> None:
        """Deduplicate the lists and replace non-positive limits with defaults."""
        self.channels = unique_fold(self.channels)
        self.topics = unique_fold(self.topics)
        self.tags = unique_fold(self.tags)
        if self.max_age_days <= 0:
            self.max_age_days = DEFAULT_MAX_AGE_DAYS
        if self.max_bundle_mb <= 0:
            self.max_bundle_mb = DEFAULT_MAX_BUNDLE_MB
        if self.max_items_per_day <= 0:
            self.max_items_per_day = DEFAULT_MAX_ITEMS_PER_DAY

    def is_empty(self) -> bool:
        """True when the rules select nothing and impose no tighter limits."""
        rules = replace(self)
        rules.normalize()
        return (
            not rules.channels
            and not rules.topics
            and not rules.tags
            and rules.max_age_days >= DEFAULT_MAX_AGE_DAYS
            and rules.max_bundle_mb >= DEFAULT_MAX_BUNDLE_MB
            and rules.max_items_per_day >= DEFAULT_MAX_ITEMS_PER_DAY
        )

    @classmethod
    def from_dict(cls, data: Any) -> "SubscriptionRules":
        """Build rules from decoded JSON without normalizing them."""
        data = _object(data, "subscription rules")
        return cls(
            channels=_str_list(data, "channels"),
            topics=_str_list(data, "topics"),
            tags=_str_list(data, "tags"),
            max_age_days=_int(data, "max_age_days"),
            max_bundle_mb=_int(data, "max_bundle_mb"),
            max_items_per_day=_int(data, "max_items_per_day"),
        )


@dataclass
class BundleRef:
    """The parts of a stored bundle that subscription filtering looks at.

    ``reply_to`` is the parent info hash of a reply, ``subject`` the info
    hash a reaction refers to.
    """

    info_hash: str
    kind: str = ""
    channel: str = ""
    created_at: str = ""
    size_bytes: int = 0
    topics: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    reply_to: Optional[str] = None
    subject: str = ""


def load_subscription_rules(path: str) -> SubscriptionRules:
    """Read and normalize rules; a blank path or missing file gives empty rules."""
    path = path.strip()
    if not path:
        return SubscriptionRules()
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return SubscriptionRules()
    rules = SubscriptionRules.from_dict(json.loads(text))
    rules.normalize()
    return rules


def _parse_created(created_at: str) -> Optional[datetime]:
    created_at = created_at.strip()
    if not created_at:
        return None
    try:
        return _parse_time(created_at)
    except ValueError:
        return None


def utc_day_key(created_at: str) -> str:
    """The UTC calendar day of an RFC 3339 timestamp, or "" if it cannot be parsed."""
    parsed = _parse_created(created_at)
    if parsed is None:
        return ""
    try:
        day = parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return ""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def within_max_age(created_at: str, max_age_days: int) -> bool:
    """True when the timestamp is no older than the limit; unparsable times pass."""
    if max_age_days <= 0:
        max_age_days = DEFAULT_MAX_AGE_DAYS
    parsed = _parse_created(created_at)
    if parsed is None:
        return True
    return datetime.now(timezone.utc) - parsed <= timedelta(days=max_age_days)


def within_max_bundle_size(size_bytes: int, max_bundle_mb: int) -> bool:
    """True when the bundle fits the size limit; unknown sizes pass."""
    if max_bundle_mb <= 0:
        max_bundle_mb = DEFAULT_MAX_BUNDLE_MB
    if size_bytes <= 0:
        return True
    return size_bytes <= max_bundle_mb * 1024 * 1024


def reserve_daily_quota(
    counts: MutableMapping[str, int], created_at: str, max_items_per_day: int
) -> bool:
    """Count one item against its UTC day; False when that day is full."""
    if max_items_per_day <= 0:
        max_items_per_day = DEFAULT_MAX_ITEMS_PER_DAY
    day = utc_day_key(created_at)
    if not day:
        return True
    if counts.get(day, 0) >= max_items_per_day:
        return False
    counts[day] = counts.get(day, 0) + 1
    return True


def matches_subscription(bundle: BundleRef, rules: SubscriptionRules) -> bool:
    """True when a bundle passes the limits and matches a channel, topic or tag."""
    rules = replace(rules)
    rules.normalize()
    if not within_max_age(bundle.created_at, rules.max_age_days):
        return False
    if not within_max_bundle_size(bundle.size_bytes, rules.max_bundle_mb):
        return False
    if rules.is_empty():
        return True
    if _contains_fold(rules.topics, RESERVED_TOPIC_ALL):
        return True
    if _contains_fold(rules.channels, bundle.channel):
        return True
    if any(_contains_fold(rules.topics, topic) for topic in bundle.topics):
        return True
    return any(_contains_fold(rules.tags, tag) for tag in bundle.tags)


def filter_subscribed(bundles: Iterable[BundleRef], rules: SubscriptionRules) -> list[BundleRef]:
    """Keep subscribed posts and the replies and reactions attached to them."""
    bundles = list(bundles)
    rules = replace(rules)
    rules.normalize()
    if rules.is_empty():
        return bundles
    allowed: set[str] = set()
    daily_counts: dict[str, int] = {}
    for bundle in bundles:
        if bundle.kind != "post" or not matches_subscription(bundle, rules):
            continue
        if not reserve_daily_quota(daily_counts, bundle.created_at, rules.max_items_per_day):
            continue
        allowed.add(bundle.info_hash.lower())

    def kept(bundle: BundleRef) -> bool:
        if bundle.kind == "post":
            return bundle.info_hash.lower() in allowed
        if bundle.kind == "reply":
            return bundle.reply_to is not None and bundle.reply_to.lower() in allowed
        if bundle.kind == "reaction":
            return bundle.subject.lower() in allowed
        return False

    return [bundle for bundle in bundles if kept(bundle)]