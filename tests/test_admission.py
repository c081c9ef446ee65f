"""Tests for the admission gate."""

from dataclasses import FrozenInstanceError
from unittest.mock import Mock

import pytest

from attendee.app.core.config import Settings
from attendee.app.middleware.rate_limit import RateLimiterRegistry, SlidingWindowRateLimiter
from attendee.app.security.models import AdmissionDecision, AdmissionReason, ValidationResult
from attendee.app.services.admission import AdmissionGate

QUESTION = {"text": "Will the presentations be recorded?"}
INVALID = {"text": "hi", "session": "a"}


def make_gate(clock, questions=(1, 60000), votes=(2, 60000), general=(5, 60000), **kwargs):
    registry = RateLimiterRegistry({
        "questions": SlidingWindowRateLimiter(*questions, clock=clock),
        "votes": SlidingWindowRateLimiter(*votes, clock=clock),
        "general": SlidingWindowRateLimiter(*general, clock=clock),
    })
    return AdmissionGate(registry, **kwargs)


class TestAdmissionGate:
    """Test the rate-then-validate admission flow."""

    def test_end_to_end_scenario(self, clock):
        gate = make_gate(clock)

        first = gate.check("questions", "u1", QUESTION)
        assert first.accepted is True
        assert first.reason is AdmissionReason.OK
        assert dict(first.sanitized_payload) == {
            "text": "Will the presentations be recorded?",
            "anonymous": False,
        }
        assert first.errors == ()

        second = gate.check("questions", "u1", QUESTION)
        assert second.accepted is False
        assert second.reason is AdmissionReason.RATE_LIMITED
        assert second.sanitized_payload is None
        assert second.errors == ("rate limit exceeded",)

    def test_validation_failure_reports_all_errors(self, clock):
        decision = make_gate(clock).check("questions", "u1", INVALID)

        assert decision.accepted is False
        assert decision.reason is AdmissionReason.VALIDATION_FAILED
        assert decision.sanitized_payload is None
        assert decision.errors == (
            "Question must be at least 10 characters long",
            "Session ID must be at least 3 characters",
        )

    def test_rate_limit_is_checked_before_validation(self, clock):
        gate = make_gate(clock)
        gate.check("questions", "u1", QUESTION)

        decision = gate.check("questions", "u1", INVALID)
        assert decision.reason is AdmissionReason.RATE_LIMITED

    def test_validator_not_invoked_when_rate_limited(self, clock):
        validator = Mock(return_value=ValidationResult(is_valid=True, sanitized={"ok": True}))
        gate = make_gate(clock, default_validator=validator)

        gate.check("questions", "u1", QUESTION)
        gate.check("questions", "u1", QUESTION)

        validator.assert_called_once_with(QUESTION)

    def test_invalid_submissions_consume_quota(self, clock):
        gate = make_gate(clock, questions=(2, 60000))

        for _ in range(2):
            assert gate.check("questions", "u1", INVALID).reason is AdmissionReason.VALIDATION_FAILED

        assert gate.registry.get("questions").remaining("u1") == 0
        assert gate.check("questions", "u1", QUESTION).reason is AdmissionReason.RATE_LIMITED

    def test_quota_recovers_after_window(self, clock):
        gate = make_gate(clock)
        gate.check("questions", "u1", QUESTION)

        clock.advance(60000)
        assert gate.check("questions", "u1", QUESTION).accepted is True

    def test_identities_are_isolated(self, clock):
        gate = make_gate(clock)
        gate.check("questions", "u1", QUESTION)

        assert gate.check("questions", "u1", QUESTION).accepted is False
        assert gate.check("questions", "u2", QUESTION).accepted is True

    def test_action_classes_are_isolated(self, clock):
        gate = make_gate(clock)
        for _ in range(2):
            gate.check("votes", "x", QUESTION)
        assert gate.check("votes", "x", QUESTION).reason is AdmissionReason.RATE_LIMITED

        assert gate.check("questions", "x", QUESTION).accepted is True

    def test_unknown_action_class_uses_general_limiter(self, clock):
        gate = make_gate(clock, general=(1, 60000))

        assert gate.check("feedback", "u1", QUESTION).accepted is True
        assert gate.check("announcements", "u1", QUESTION).reason is AdmissionReason.RATE_LIMITED

    def test_per_action_validator(self, clock):
        def validate_vote(payload):
            if payload.get("question_id"):
                return ValidationResult(is_valid=True, sanitized={"question_id": payload["question_id"]})
            return ValidationResult(is_valid=False, errors=["question_id is required"])

        gate = make_gate(clock, validators={"votes": validate_vote})

        assert gate.check("votes", "u1", {}).errors == ("question_id is required",)
        accepted = gate.check("votes", "u1", {"question_id": "q1"})
        assert dict(accepted.sanitized_payload) == {"question_id": "q1"}
        assert gate.validator_for("questions") is not validate_vote

    def test_retry_after_ms(self, clock):
        gate = make_gate(clock)
        gate.check("questions", "u1", QUESTION)
        clock.advance(15000)

        assert gate.retry_after_ms("questions", "u1") == 45000
        assert gate.retry_after_ms("questions", "u2") == 0

    def test_from_settings_uses_configured_limits(self, clock):
        settings = Settings(
            _env_file=None,
            rate_limit_questions_max_requests=1,
            question_min_length=3,
        )
        gate = AdmissionGate.from_settings(settings, clock=clock)

        assert gate.check("questions", "u1", {"text": "Why?"}).accepted is True
        assert gate.check("questions", "u1", {"text": "Why?"}).reason is AdmissionReason.RATE_LIMITED


class TestAdmissionDecision:
    """Test the decision value object."""

    def test_to_response(self):
        decision = AdmissionDecision(
            accepted=True,
            reason=AdmissionReason.OK,
            sanitized_payload={"text": "hello there", "anonymous": True},
        )
        assert decision.to_response() == {
            "accepted": True,
            "reason": "OK",
            "sanitized_payload": {"text": "hello there", "anonymous": True},
            "errors": [],
        }

    def test_rejected_to_response(self):
        decision = AdmissionDecision(
            accepted=False,
            reason=AdmissionReason.RATE_LIMITED,
            errors=["rate limit exceeded"],
        )
        assert decision.to_response()["sanitized_payload"] is None
        assert decision.errors == ("rate limit exceeded",)

    def test_immutable(self):
        payload = {"text": "hello there"}
        decision = AdmissionDecision(True, AdmissionReason.OK, payload)

        payload["text"] = "mutated later"
        assert decision.sanitized_payload["text"] == "hello there"
        with pytest.raises(FrozenInstanceError):
            decision.accepted = False
        with pytest.raises(TypeError):
            decision.sanitized_payload["text"] = "x"
