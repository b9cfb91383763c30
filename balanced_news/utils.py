from __future__ import annotations

import hashlib
import html
import re
from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from dateutil import parser as date_parser

from .config import STOP_WORDS


UTM_PREFIXES = ("utm_", "fbclid", "gclid", "mc_cid", "mc_eid")
OLDEST = datetime.min.replace(tzinfo=timezone.utc)

TWO_LEVEL_SUFFIXES = {
    "co.uk",
    "com.au",
    "com.br",
    "co.jp",
    "co.kr",
    "co.in",
    "com.sg",
    "com.hk",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def normalize_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def strip_html(value: str) -> str:
    text = re.sub(r"<[^>]+>", " ", value or "")
    text = html.unescape(text)
    return normalize_whitespace(text)


def stable_id(*parts: str) -> str:
    payload = "|".join(part for part in parts if part)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def canonicalize_url(url: str) -> str:
    if not url:
        return ""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url.strip()
    query_pairs = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=False)
        if not any(key.lower().startswith(prefix) for prefix in UTM_PREFIXES)
    ]
    cleaned = parsed._replace(
        query=urlencode(query_pairs),
        fragment="",
        scheme=parsed.scheme.lower(),
        netloc=parsed.netloc.lower(),
    )
    return urlunparse(cleaned)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError, TypeError):
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def newest_first(items: list, key=None) -> list:
    getter = key or (lambda item: item)
    return sorted(items, key=lambda item: getter(item).published_at or OLDEST, reverse=True)


def is_date_only(value: str) -> bool:
    return bool(re.fullmatch(r"\d{4}-\d{2}-\d{2}", (value or "").strip()))


def extract_hostname(url: str) -> str:
    try:
        hostname = urlparse((url or "").strip()).hostname or ""
    except ValueError:
        return ""
    hostname = hostname.lower().rstrip(".")
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def registrable_domain(hostname: str) -> str:
    labels = [label for label in (hostname or "").split(".") if label]
    if len(labels) < 2:
        return ".".join(labels)
    last_two = ".".join(labels[-2:])
    if last_two in TWO_LEVEL_SUFFIXES and len(labels) >= 3:
        return ".".join(labels[-3:])
    return last_two


def tokenize(text: str) -> list[str]:
    lowered = re.sub(r"[^a-z0-9\s]", " ", (text or "").lower())
    return [token for token in lowered.split() if token and token not in STOP_WORDS]
