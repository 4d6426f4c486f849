"""Conversation session storage package."""

from till_ledger.session.store import InMemorySessionStore, SessionStore

__all__ = ["InMemorySessionStore", "SessionStore"]
