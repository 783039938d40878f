from __future__ import annotations

import re
from datetime import datetime, timezone
from urllib.parse import urlsplit, urlunsplit

BOILERPLATE_PATTERNS = [
    r"accept (all )?cookies?",
    r"we use cookies[^.]*\.",
    r"all rights reserved\.?",
    r"sign up for (our|the) newsletter",
    r"subscribe (now|today)( to [a-z ]+)?",
    r"click here( to [a-z ]+)?",
    r"read more\b",
    r"advertisement",
    r"skip to (main )?content",
    r"javascript is (disabled|required)[^.]*\.?",
]
_BOILERPLATE_RE = re.compile("|".join(BOILERPLATE_PATTERNS), re.IGNORECASE)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlsplit(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def clean_content(text: str, max_length: int = 8000) -> str:
    """Collapse whitespace and trim to max length."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def sanitize_for_rerank(text: str, max_length: int = 800) -> str:
    """Strip boilerplate phrases and collapse whitespace before sending to the reranker."""
    stripped = _BOILERPLATE_RE.sub(" ", text or "")
    collapsed = re.sub(r"\s+", " ", stripped).strip()
    return collapsed[:max_length]


def hostname(url: str) -> str:
    """Lowercased hostname with a leading `www.` removed."""
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def normalize_url_key(url: str) -> str:
    """Key used for URL deduplication.

    Scheme and host are case-insensitive, default ports and fragments are
    dropped, and one trailing slash on the path is ignored. Path and query
    string stay case-sensitive and untouched.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return raw
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{host}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    path = parts.path
    if path.endswith("/"):
        path = path[:-1]
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def parse_timestamp(value: object) -> datetime | None:
    """Parse provider ISO-8601 timestamps into aware UTC datetimes."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
