"""Admission gate for attendee write actions.

Combines the per-action-class rate limiters with submission validation:
an attempt is first charged against the identity's quota and only then
validated. Rejections are returned as decisions, never raised.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Mapping, Optional

from attendee.app.core.logging import get_log_context, get_logger
from attendee.app.middleware.rate_limit import Clock, RateLimiterRegistry
from attendee.app.security.models import AdmissionDecision, AdmissionReason, ValidationResult
from attendee.app.security.validation import SubmissionLimits, validate_submission

logger = get_logger(__name__)

Validator = Callable[[Any], ValidationResult]

RATE_LIMITED_ERROR = "rate limit exceeded"


class AdmissionGate:
    """Decide whether an identity may perform an action with a payload."""

    def __init__(
        self,
        registry: RateLimiterRegistry,
        validators: Optional[Mapping[str, Validator]] = None,
        default_validator: Validator = validate_submission,
    ):
        """Initialize the gate.

        Args:
            registry: Rate limiters keyed by action class
            validators: Per-action-class validators
            default_validator: Used for action classes without their own validator
        """
        self.registry = registry
        self._validators = dict(validators or {})
        self._default_validator = default_validator

    @classmethod
    def from_settings(cls, settings: Any, clock: Optional[Clock] = None) -> "AdmissionGate":
        """Build a registry and gate from application settings."""
        limits = SubmissionLimits.from_settings(settings)
        return cls(
            RateLimiterRegistry.from_settings(settings, clock=clock),
            default_validator=partial(validate_submission, limits=limits),
        )

    def validator_for(self, action_class: str) -> Validator:
        return self._validators.get(action_class, self._default_validator)

    def check(self, action_class: str, identity: str, raw_payload: Any) -> AdmissionDecision:
        """Run the admission check for one attempted action.

        The rate limit is evaluated first. An attempt that passes it uses
        up a slot even if its payload then fails validation, so repeated
        invalid submissions exhaust the identity's quota.

        Args:
            action_class: Action category, e.g. "questions" or "votes"
            identity: Opaque key of whoever performs the action
            raw_payload: Untrusted submission data

        Returns:
            AdmissionDecision with the sanitized payload when accepted
        """
        limiter = self.registry.get(action_class)

        if not limiter.is_allowed(identity):
            logger.warning(
                "Admission rejected: rate limited",
                extra=get_log_context(
                    identity=identity,
                    action_class=action_class,
                    reason=AdmissionReason.RATE_LIMITED.value,
                ),
            )
            return AdmissionDecision(
                accepted=False,
                reason=AdmissionReason.RATE_LIMITED,
                errors=(RATE_LIMITED_ERROR,),
            )

        result = self.validator_for(action_class)(raw_payload)
        if not result.is_valid:
            logger.info(
                f"Admission rejected: {len(result.errors)} validation error(s)",
                extra=get_log_context(
                    identity=identity,
                    action_class=action_class,
                    reason=AdmissionReason.VALIDATION_FAILED.value,
                ),
            )
            return AdmissionDecision(
                accepted=False,
                reason=AdmissionReason.VALIDATION_FAILED,
                errors=result.errors,
            )

        logger.debug(
            "Admission accepted",
            extra=get_log_context(
                identity=identity,
                action_class=action_class,
                reason=AdmissionReason.OK.value,
            ),
        )
        return AdmissionDecision(
            accepted=True,
            reason=AdmissionReason.OK,
            sanitized_payload=result.sanitized,
        )

    def retry_after_ms(self, action_class: str, identity: str) -> int:
        """Milliseconds until ``identity`` may retry ``action_class``."""
        return self.registry.get(action_class).retry_after_ms(identity)
