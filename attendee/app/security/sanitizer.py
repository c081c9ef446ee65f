"""Input sanitization for attendee-submitted content.

Every function here is total: hostile or malformed input degrades to an
empty string (or ``None`` for URLs) instead of raising, so request handlers
can treat untrusted input uniformly.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime
from types import MappingProxyType
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit, urlunsplit

import nh3

from attendee.app.core.logging import get_logger
from attendee.app.security.models import DEFAULT_POLICY, SanitizationPolicy

logger = get_logger(__name__)

# Stripped from plain text input
_UNSAFE_CHARS = re.compile(r"[<>\"'&]")
_UNSAFE_PROTOCOLS = re.compile(r"(?:javascript|data|vbscript):", re.IGNORECASE)

# Never allowed in rich text, whatever the policy says
FORBIDDEN_TAGS = frozenset({"script", "object", "embed", "form", "input"})
# Removed together with everything inside them
CONTENT_STRIPPED_TAGS = frozenset({"script", "style", "object", "embed"})
# Schemes rich-text links may use, before the policy's forbidden set is removed
LINK_SCHEMES = frozenset({"http", "https", "mailto", "tel"})

# Rejected by sanitize_url even when a caller allow-lists them
HARD_DENIED_PROTOCOLS = frozenset({"javascript", "data", "vbscript"})
DEFAULT_ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})
_HIERARCHICAL_SCHEMES = frozenset({"http", "https"})
# Browsers ignore tabs and newlines anywhere in a URL
_URL_IGNORED_CHARS = re.compile(r"[\t\n\r]")
_URL_EDGE_CHARS = "".join(chr(c) for c in range(0x21))

SESSION_REQUIRED_FIELDS = ("id", "title", "start_time", "end_time")
SESSION_TITLE_MAX_LENGTH = 200

SECURITY_HEADERS: Mapping[str, str] = MappingProxyType({
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
})


def sanitize_text(value: Any, max_length: int = 1000) -> str:
    """Sanitize plain text input to prevent injection attacks.

    Removes HTML-significant characters and script-capable URL protocols,
    trims surrounding whitespace and limits the length. Applying it twice
    gives the same result as applying it once.

    Args:
        value: Raw text input
        max_length: Maximum allowed length

    Returns:
        Sanitized text, or an empty string for non-string input
    """
    if not isinstance(value, str) or max_length < 1:
        return ""

    text = _UNSAFE_CHARS.sub("", value)
    # Removing one occurrence can join the halves into a new one.
    removed = 1
    while removed:
        text, removed = _UNSAFE_PROTOCOLS.subn("", text)

    text = text.strip()
    if len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def _normalize_protocols(protocols: Iterable[str]) -> frozenset[str]:
    return frozenset(str(p).strip().lower().rstrip(":") for p in protocols)


def sanitize_rich_text(value: Any, policy: SanitizationPolicy = DEFAULT_POLICY) -> str:
    """Sanitize constrained markup (announcements, session abstracts).

    Tags and attributes outside the policy are stripped. Script-capable
    tags and ``on*`` event handler attributes are removed even when the
    policy allows them.

    Args:
        value: Raw HTML content
        policy: Allowed tags, attributes and link protocols

    Returns:
        Sanitized HTML, or an empty string for non-string input
    """
    if not isinstance(value, str) or not value:
        return ""

    tags = set(policy.allowed_tags - FORBIDDEN_TAGS - CONTENT_STRIPPED_TAGS)
    attrs = {a for a in policy.allowed_attrs if not a.startswith("on")}
    schemes = set(LINK_SCHEMES - policy.forbidden_protocols - HARD_DENIED_PROTOCOLS)

    try:
        cleaned = _clean_markup(value, tags, attrs, schemes)
        source = cleaned
        cut = policy.max_length
        # Re-cleaning closes open tags and may escape text, so the result can
        # outgrow the cut. Shrink the cut until the cleaned result fits.
        while len(cleaned) > policy.max_length:
            cut = _safe_cut(source, cut)
            cleaned = _clean_markup(source[:cut], tags, attrs, schemes)
            cut = max(0, cut - (len(cleaned) - policy.max_length))
    except Exception as e:
        logger.error(f"Rich text sanitization failed: {e}")
        return ""
    return cleaned


def _safe_cut(html: str, cut: int) -> int:
    """Move ``cut`` back so it does not fall inside a tag or an entity."""
    head = html[:cut]
    tag_start = head.rfind("<")
    if tag_start > head.rfind(">"):
        cut = tag_start
    entity_start = html.rfind("&", 0, cut)
    if entity_start > html.rfind(";", 0, cut):
        cut = entity_start
    return cut


def _clean_markup(value: str, tags: set[str], attrs: set[str], schemes: set[str]) -> str:
    return nh3.clean(
        value,
        tags=tags,
        clean_content_tags=set(CONTENT_STRIPPED_TAGS),
        attributes={"*": attrs},
        url_schemes=schemes,
        # nh3 refuses an explicit rel attribute while it manages rel itself
        link_rel=None if "rel" in attrs else "noopener noreferrer",
    )


def sanitize_url(
    value: Any,
    allowed_protocols: Iterable[str] = DEFAULT_ALLOWED_PROTOCOLS,
) -> str | None:
    """Validate and normalize a URL.

    Protocols may be given with or without the trailing colon. The
    ``javascript``, ``data`` and ``vbscript`` schemes are always rejected,
    even when listed in ``allowed_protocols``.

    Args:
        value: URL to validate
        allowed_protocols: Allowed URL schemes

    Returns:
        Normalized URL, or None if it is malformed or not allowed
    """
    if not isinstance(value, str):
        return None

    candidate = _URL_IGNORED_CHARS.sub("", value).strip(_URL_EDGE_CHARS)
    if not candidate:
        return None

    try:
        parts = urlsplit(candidate)
        scheme = parts.scheme.lower()
        if not scheme or scheme in HARD_DENIED_PROTOCOLS:
            return None
        if scheme not in _normalize_protocols(allowed_protocols):
            return None

        netloc = parts.netloc
        path = parts.path
        if scheme in _HIERARCHICAL_SCHEMES:
            if not parts.hostname:
                return None
            host = parts.hostname
            if ":" in host:
                host = f"[{host}]"
            port = parts.port
            userinfo = netloc.rpartition("@")[0] if "@" in netloc else ""
            netloc = f"{userinfo}@{host}" if userinfo else host
            if port is not None:
                netloc = f"{netloc}:{port}"
            path = path or "/"
        elif not (netloc or path):
            return None
    except ValueError:
        # Bad port or unbalanced IPv6 brackets
        return None

    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def _parse_time(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def validate_session_data(record: Any) -> bool:
    """Check that a programme session record is well formed.

    Requires non-null id, title, start_time and end_time; a string or
    integer id; a title of at most 200 characters; and a start strictly
    before the end. The record is never modified.
    """
    if not isinstance(record, Mapping):
        return False

    if any(record.get(name) is None for name in SESSION_REQUIRED_FIELDS):
        return False

    session_id = record["id"]
    if isinstance(session_id, bool) or not isinstance(session_id, (str, int)):
        return False

    title = record["title"]
    if not isinstance(title, str) or len(title) > SESSION_TITLE_MAX_LENGTH:
        return False

    start = _parse_time(record["start_time"])
    end = _parse_time(record["end_time"])
    if start is None or end is None:
        return False

    try:
        return start < end
    except TypeError:
        # naive and timezone-aware times are not comparable
        return False


def generate_csp(connect_sources: Iterable[str] = ()) -> str:
    """Build the Content-Security-Policy header value.

    Args:
        connect_sources: Extra origins allowed for fetch/websocket
            connections, such as the hosted database endpoint.
    """
    connect = " ".join(["'self'", *connect_sources])
    policies = [
        "default-src 'self'",
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
        "font-src 'self' https://fonts.gstatic.com",
        "img-src 'self' data: https:",
        f"connect-src {connect}",
        "frame-ancestors 'none'",
        "base-uri 'self'",
        "form-action 'self'",
        "upgrade-insecure-requests",
    ]
    return "; ".join(policies)


def generate_secure_token(length: int = 32) -> str:
    """Generate a random hex token (e.g. for CSRF protection).

    Uses `secrets.token_hex()`, so the result is ``2 * length`` characters.
    """
    return secrets.token_hex(length)
