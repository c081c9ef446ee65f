"""Attendee application package."""
