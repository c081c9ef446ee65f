"""Attendee conference application: input admission layer and Q&A API."""
