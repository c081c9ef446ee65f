"""Validation of Q&A question submissions.

Validators never stop at the first problem: every violation is collected
so the caller can report all of them in one round trip. Only fields that
passed end up in ``ValidationResult.sanitized``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from attendee.app.core.logging import get_logger
from attendee.app.exceptions import ConfigurationError
from attendee.app.security.models import ValidationResult
from attendee.app.security.sanitizer import sanitize_text
from attendee.app.security.spam_rules import DEFAULT_SPAM_RULES, SpamPredicate, find_spam_rule

logger = get_logger(__name__)

SPAM_MESSAGE = "Question appears to contain spam or inappropriate content"


@dataclass(frozen=True)
class SubmissionLimits:
    """Length and character bounds for submission fields."""
    text_min_length: int = 10
    text_max_length: int = 500
    session_id_min_length: int = 3
    session_id_max_length: int = 50
    session_id_pattern: str = r"[A-Za-z0-9_-]+"

    def __post_init__(self) -> None:
        if self.text_min_length > self.text_max_length:
            raise ConfigurationError("text_min_length must not exceed text_max_length")
        if self.session_id_min_length > self.session_id_max_length:
            raise ConfigurationError(
                "session_id_min_length must not exceed session_id_max_length"
            )

    @classmethod
    def from_settings(cls, settings: Any) -> "SubmissionLimits":
        return cls(
            text_min_length=settings.question_min_length,
            text_max_length=settings.question_max_length,
            session_id_min_length=settings.session_id_min_length,
            session_id_max_length=settings.session_id_max_length,
        )


DEFAULT_LIMITS = SubmissionLimits()


def validate_question_text(
    value: Any,
    limits: SubmissionLimits = DEFAULT_LIMITS,
    spam_rules: Sequence[SpamPredicate] = DEFAULT_SPAM_RULES,
) -> ValidationResult:
    """Validate question text.

    Args:
        value: Raw question text
        limits: Length bounds
        spam_rules: Ordered spam predicates, checked against the sanitized text

    Returns:
        ValidationResult with ``sanitized["text"]`` when valid
    """
    errors: list[str] = []
    text = sanitize_text(value)

    if not text:
        errors.append("Question text is required")
    elif len(text) < limits.text_min_length:
        errors.append(
            f"Question must be at least {limits.text_min_length} characters long"
        )
    elif len(text) > limits.text_max_length:
        errors.append(
            f"Question must be less than {limits.text_max_length} characters"
        )

    if text:
        rule = find_spam_rule(text, spam_rules)
        if rule is not None:
            errors.append(getattr(rule, "message", None) or SPAM_MESSAGE)

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, sanitized={"text": text})


def validate_session_id(
    value: Any,
    limits: SubmissionLimits = DEFAULT_LIMITS,
) -> ValidationResult:
    """Validate an optional session reference.

    A missing (None or empty) value is valid and yields nothing to store.
    """
    if value is None or value == "":
        return ValidationResult(is_valid=True)

    errors: list[str] = []
    session_id = sanitize_text(value)

    if len(session_id) < limits.session_id_min_length:
        errors.append(
            f"Session ID must be at least {limits.session_id_min_length} characters"
        )
    elif len(session_id) > limits.session_id_max_length:
        errors.append(
            f"Session ID must be less than {limits.session_id_max_length} characters"
        )
    elif not re.fullmatch(limits.session_id_pattern, session_id):
        errors.append(
            "Session ID can only contain letters, numbers, hyphens, and underscores"
        )

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, sanitized={"session": session_id})


def validate_submission(
    payload: Any,
    limits: SubmissionLimits = DEFAULT_LIMITS,
    spam_rules: Sequence[SpamPredicate] = DEFAULT_SPAM_RULES,
) -> ValidationResult:
    """Validate a complete question submission.

    Checks ``text`` and the optional ``session`` field, coerces ``anonymous``
    to a boolean, and collects the errors of every field in that order.
    """
    if not isinstance(payload, Mapping):
        return ValidationResult(
            is_valid=False, errors=["Submission payload must be an object"]
        )

    errors: list[str] = []
    sanitized: dict[str, Any] = {}

    for result in (
        validate_question_text(payload.get("text"), limits, spam_rules),
        validate_session_id(payload.get("session"), limits),
    ):
        if result.is_valid:
            sanitized.update(result.sanitized)
        else:
            errors.extend(result.errors)

    sanitized["anonymous"] = bool(payload.get("anonymous"))

    if errors:
        logger.debug(f"Submission rejected with {len(errors)} error(s)")
        return ValidationResult(is_valid=False, errors=errors, sanitized=sanitized)
    return ValidationResult(is_valid=True, sanitized=sanitized)


def format_error_message(error: Any) -> str:
    """Format an error, list of errors or exception for user display."""
    if isinstance(error, (list, tuple)):
        return ". ".join(str(e) for e in error)
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, str):
        return error
    return "An unexpected error occurred"
