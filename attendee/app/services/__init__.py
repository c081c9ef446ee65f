"""Services package for the attendee application.

This package provides the admission gate that combines per-action-class
rate limiting with submission validation.
"""

from attendee.app.services.admission import AdmissionGate

__all__ = [
    "AdmissionGate",
]
