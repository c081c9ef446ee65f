import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_list(raw: Any) -> list[str]:
    """Parse a list setting from a JSON array or a comma/space separated string."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    # Prefer JSON, but tolerate plain "a,b c" values from .env files.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    return [p for p in re.split(r"[,\s]+", raw) if p]


def _parse_cors_origins(raw: Any) -> list[str]:
    origins: list[str] = []
    for part in _parse_list(raw):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browsers include the scheme in the Origin header.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    # Deduplicate while preserving order.
    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Rate limiting settings
    rate_limit_algorithm: str = "sliding_window"  # sliding_window | approximate
    rate_limit_max_entries: int = 10000  # Tracked identities per action class

    # Per-action-class quotas (requests per window)
    rate_limit_questions_max_requests: int = 10
    rate_limit_questions_window_ms: int = 60000
    rate_limit_votes_max_requests: int = 50
    rate_limit_votes_window_ms: int = 60000
    rate_limit_bookmarks_max_requests: int = 100
    rate_limit_bookmarks_window_ms: int = 60000
    rate_limit_general_max_requests: int = 200
    rate_limit_general_window_ms: int = 60000

    # Question submission settings
    question_min_length: int = 10
    question_max_length: int = 500
    session_id_min_length: int = 3
    session_id_max_length: int = 50

    # URL sanitization. No endpoint accepts URLs yet; code that does passes this
    # list to sanitize_url(url, settings.url_allowed_protocols) explicitly.
    url_allowed_protocols: Annotated[list[str], NoDecode] = ["http", "https", "mailto"]

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("url_allowed_protocols", mode="before")
    @classmethod
    def decode_allowed_protocols(cls, v: Any) -> list[str]:
        return [p.lower().rstrip(":") for p in _parse_list(v)]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "rate_limit_questions_max_requests",
        "rate_limit_questions_window_ms",
        "rate_limit_votes_max_requests",
        "rate_limit_votes_window_ms",
        "rate_limit_bookmarks_max_requests",
        "rate_limit_bookmarks_window_ms",
        "rate_limit_general_max_requests",
        "rate_limit_general_window_ms",
        "rate_limit_max_entries",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("rate_limit_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("sliding_window", "approximate"):
            raise ValueError(
                "rate_limit_algorithm must be 'sliding_window' or 'approximate'"
            )
        return v

    @field_validator(
        "question_min_length",
        "question_max_length",
        "session_id_min_length",
        "session_id_max_length",
    )
    @classmethod
    def validate_length_positive(cls, v: int) -> int:
        """Validate length bounds are positive."""
        if v < 1:
            raise ValueError("length bounds must be at least 1")
        return v

    def rate_limit_for(self, action_class: str) -> tuple[int, int]:
        """Return the (max_requests, window_ms) pair configured for an action class."""
        return (
            getattr(self, f"rate_limit_{action_class}_max_requests"),
            getattr(self, f"rate_limit_{action_class}_window_ms"),
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
