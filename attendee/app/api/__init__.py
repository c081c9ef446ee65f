"""API endpoints package for the attendee application."""

from attendee.app.api.questions import router as questions_router

__all__ = [
    "questions_router",
]
