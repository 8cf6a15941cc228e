"""Small formatting helpers shared by the HTML pages and the JSON API."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import quote, unquote_to_bytes

_PUBLIC_PROJECT = "aip2p.news"
_PUBLIC_PROJECT_TITLE = "AiP2P News Public"

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})
_AGENT_MARKERS = (
    "agent",
    "bot",
    "crawler",
    "python",
    "curl",
    "wget",
    "httpie",
    "go-http-client",
    "openai",
    "anthropic",
    "claude",
    "gpt",
    "llm",
)
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
# Characters a URL path segment may carry without escaping.
_PATH_SEGMENT_SAFE = "$&+:=@"


@dataclass(frozen=True)
class SummaryStat:
    """One labelled figure in a page's summary strip."""

    label: str
    value: str


def _trimmed_decimal(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_score(value: Optional[float]) -> str:
    """Two decimals with trailing zeros dropped, or "-" when there is no score."""
    if value is None:
        return "-"
    return _trimmed_decimal(value)


def format_average_truth(scores: Iterable[Optional[float]]) -> str:
    """Average of the scores that are present, formatted like a score."""
    present = [score for score in scores if score is not None]
    if not present:
        return "-"
    return _trimmed_decimal(sum(present) / len(present))


def is_public_keyish(value: str) -> bool:
    """True for hex strings at least 32 characters long."""
    value = value.strip()
    return len(value) >= 32 and all(ch in _HEX_DIGITS for ch in value)


def compact_identity(value: str) -> str:
    """Shorten long identities: keys to 10 characters, other names to 24."""
    value = value.strip()
    if not value:
        return ""
    limit = 10 if is_public_keyish(value) else 24
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def is_agent_viewer(agent_param: Optional[str], user_agent: Optional[str]) -> bool:
    """Decide whether a request comes from an automated agent rather than a browser.

    An explicit ``agent`` query value wins; otherwise the user agent is inspected.
    """
    explicit = (agent_param or "").strip().lower()
    if explicit in _TRUE_WORDS:
        return True
    if explicit in _FALSE_WORDS:
        return False
    ua = (user_agent or "").strip().lower()
    if not ua:
        return False
    if "mozilla/" in ua and "bot" not in ua and "agent" not in ua:
        return False
    return any(marker in ua for marker in _AGENT_MARKERS)


def should_show_network_warning(cookie_value: Optional[str]) -> bool:
    """True unless the warning cookie is present with a non-blank value."""
    if cookie_value is None:
        return True
    return not cookie_value.strip()


def path_value(prefix: str, path: str) -> str:
    """The single decoded segment after ``prefix``, or "" when there is none."""
    if not path.startswith(prefix):
        return ""
    value = path[len(prefix):]
    if not value or "/" in value:
        return ""
    if _BAD_ESCAPE.search(value):
        return ""
    decoded = unquote_to_bytes(value).decode("utf-8", errors="replace")
    return decoded.strip()


def _collection_path(base: str, name: str) -> str:
    name = name.strip()
    if not name:
        return ""
    return base + quote(name, safe=_PATH_SEGMENT_SAFE)


def source_path(name: str) -> str:
    """Site path of a source page, or "" for a blank name."""
    return _collection_path("/sources/", name)


def topic_path(name: str) -> str:
    """Site path of a topic page, or "" for a blank name."""
    return _collection_path("/topics/", name)


def display_project_name(project: str) -> str:
    """Human title of the project."""
    project = project.strip()
    if project.lower() == _PUBLIC_PROJECT:
        return _PUBLIC_PROJECT_TITLE
    return project


def _base_name(value: str) -> str:
    stripped = value.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def display_archive_path(value: str) -> str:
    """Archive file path relative to the runtime root, never the absolute location."""
    value = value.replace(os.sep, "/").strip()
    if not value:
        return ""
    idx = value.find("/archive/")
    if idx >= 0:
        return value[idx + 1:].lstrip("/")
    if value.startswith("archive/"):
        return value
    return _base_name(value)


def build_archive_summary_stats(day_count: int, bundle_count: int) -> list[SummaryStat]:
    """Summary strip of the archive index page."""
    return [
        SummaryStat("Archive days", str(day_count)),
        SummaryStat("Mirrored bundles", str(bundle_count)),
    ]


def build_archive_day_stats(kinds: Iterable[str]) -> list[SummaryStat]:
    """Summary strip of one archive day, from the kinds of its entries."""
    entries = stories = replies = reactions = 0
    for kind in kinds:
        entries += 1
        if kind == "post":
            stories += 1
        elif kind == "reply":
            replies += 1
        elif kind == "reaction":
            reactions += 1
    return [
        SummaryStat("Entries", str(entries)),
        SummaryStat("Stories", str(stories)),
        SummaryStat("Replies", str(replies)),
        SummaryStat("Reactions", str(reactions)),
    ]