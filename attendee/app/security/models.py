"""Admission data models.

Value objects shared by the sanitizer, the validator and the admission gate.
All of them are frozen: a result handed to a caller is never mutated after
it is returned.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


def _freeze(data: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    if data is None:
        return None
    return MappingProxyType(dict(data))


@dataclass(frozen=True)
class SanitizationPolicy:
    """Markup and URL policy for rich-text sanitization."""
    allowed_tags: frozenset[str] = frozenset(
        {"b", "i", "em", "strong", "p", "br", "ul", "ol", "li"}
    )
    allowed_attrs: frozenset[str] = frozenset({"class"})
    forbidden_protocols: frozenset[str] = frozenset({"javascript", "data", "vbscript"})
    max_length: int = 10000

    def __post_init__(self) -> None:
        # Accept any iterable of names from callers.
        object.__setattr__(self, "allowed_tags", frozenset(t.lower() for t in self.allowed_tags))
        object.__setattr__(self, "allowed_attrs", frozenset(a.lower() for a in self.allowed_attrs))
        object.__setattr__(
            self,
            "forbidden_protocols",
            frozenset(p.lower().rstrip(":") for p in self.forbidden_protocols),
        )


DEFAULT_POLICY = SanitizationPolicy()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one submission or field."""
    is_valid: bool
    errors: tuple[str, ...] = ()
    sanitized: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "sanitized", _freeze(self.sanitized))


class AdmissionReason(str, Enum):
    """Why a submission was accepted or rejected."""
    OK = "OK"
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_FAILED = "VALIDATION_FAILED"


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of an admission check."""
    accepted: bool
    reason: AdmissionReason
    sanitized_payload: Optional[Mapping[str, Any]] = None
    errors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "sanitized_payload", _freeze(self.sanitized_payload))

    def to_response(self) -> dict:
        """Convert to a JSON-ready dict."""
        return {
            "accepted": self.accepted,
            "reason": self.reason.value,
            "sanitized_payload": (
                dict(self.sanitized_payload) if self.sanitized_payload is not None else None
            ),
            "errors": list(self.errors),
        }
