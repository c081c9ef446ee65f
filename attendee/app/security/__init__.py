"""Input sanitization, spam screening and submission validation.

Split into:
- models.py: Policy and result value objects
- sanitizer.py: Text, markup and URL sanitizers
- spam_rules.py: Pluggable spam heuristics
- validation.py: Submission validators
"""

from attendee.app.security.models import (
    DEFAULT_POLICY,
    AdmissionDecision,
    AdmissionReason,
    SanitizationPolicy,
    ValidationResult,
)
from attendee.app.security.sanitizer import (
    SECURITY_HEADERS,
    generate_csp,
    generate_secure_token,
    sanitize_rich_text,
    sanitize_text,
    sanitize_url,
    validate_session_data,
)
from attendee.app.security.spam_rules import (
    DEFAULT_SPAM_RULES,
    INAPPROPRIATE_CONTENT_RULES,
    SpamRule,
    contains_inappropriate_content,
)
from attendee.app.security.validation import (
    DEFAULT_LIMITS,
    SubmissionLimits,
    format_error_message,
    validate_question_text,
    validate_session_id,
    validate_submission,
)

__all__ = [
    "DEFAULT_POLICY",
    "AdmissionDecision",
    "AdmissionReason",
    "SanitizationPolicy",
    "ValidationResult",
    "SECURITY_HEADERS",
    "generate_csp",
    "generate_secure_token",
    "sanitize_rich_text",
    "sanitize_text",
    "sanitize_url",
    "validate_session_data",
    "DEFAULT_SPAM_RULES",
    "INAPPROPRIATE_CONTENT_RULES",
    "SpamRule",
    "contains_inappropriate_content",
    "DEFAULT_LIMITS",
    "SubmissionLimits",
    "format_error_message",
    "validate_question_text",
    "validate_session_id",
    "validate_submission",
]
