"""Q&A question submission endpoint."""

import hashlib
import math
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from attendee.app.core.logging import get_logger
from attendee.app.exceptions import RateLimitExceededError, SubmissionValidationError
from attendee.app.security.models import AdmissionReason
from attendee.app.services.admission import AdmissionGate

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["questions"])

IDENTITY_HEADER = "X-Attendee-Id"
MAX_IDENTITY_LENGTH = 256


def get_admission_gate(request: Request) -> AdmissionGate:
    """Return the gate created by the application lifespan."""
    return request.app.state.admission_gate


def get_identity(request: Request) -> str:
    """Get the rate limit identity for the request.

    Uses the attendee id header set by the session layer if present,
    otherwise falls back to a hash of the client IP address.

    Args:
        request: FastAPI request object

    Returns:
        Identity key string (IP addresses are hashed, never stored raw)
    """
    attendee_id = request.headers.get(IDENTITY_HEADER, "").strip()
    if attendee_id:
        # Prevent DoS via extremely long keys
        if len(attendee_id) > MAX_IDENTITY_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"{IDENTITY_HEADER} too long (max {MAX_IDENTITY_LENGTH} characters)",
            )
        return f"attendee:{attendee_id}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"

    ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
    return f"ip:{ip_hash}"


@router.post("/questions", status_code=status.HTTP_201_CREATED)
async def submit_question(
    payload: dict[str, Any] = Body(...),
    identity: str = Depends(get_identity),
    gate: AdmissionGate = Depends(get_admission_gate),
) -> dict[str, Any]:
    """Admit a question for the Q&A board.

    Returns the cleaned question that would be persisted.

    Raises:
        RateLimitExceededError: The identity used up its question quota
        SubmissionValidationError: The question failed validation
    """
    decision = gate.check("questions", identity, payload)

    if decision.reason is AdmissionReason.RATE_LIMITED:
        retry_after_ms = gate.retry_after_ms("questions", identity)
        raise RateLimitExceededError(
            action_class="questions",
            retry_after=max(1, math.ceil(retry_after_ms / 1000)),
        )
    if decision.reason is AdmissionReason.VALIDATION_FAILED:
        raise SubmissionValidationError(decision.errors)

    return {"question": dict(decision.sanitized_payload)}
