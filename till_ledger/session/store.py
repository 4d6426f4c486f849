"""
Session Storage

DESIGN DECISION: Conversation state sits behind a small key-value
interface keyed by chat id, so the in-memory dict can be replaced
by a persistent backend without touching the engine.

Sessions are handed out as copies. A handler that fails half-way
simply never saves, and the stored session stays as it was.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from till_ledger.models.conversation import Session


class SessionStore(ABC):
    """Abstract per-chat session storage."""

    @abstractmethod
    async def get(self, chat_id: int) -> Session:
        """Return the chat's session, or a fresh idle one."""
        pass

    @abstractmethod
    async def save(self, session: Session) -> None:
        pass

    @abstractmethod
    async def delete(self, chat_id: int) -> None:
        pass


class InMemorySessionStore(SessionStore):
    """Sessions held in a dict; lost on restart."""

    def __init__(self):
        self._sessions: dict[int, Session] = {}

    async def get(self, chat_id: int) -> Session:
        session = self._sessions.get(chat_id)
        if session is None:
            return Session(chat_id=chat_id)
        return session.model_copy(deep=True)

    async def save(self, session: Session) -> None:
        session.updated_at = datetime.utcnow()
        self._sessions[session.chat_id] = session.model_copy(deep=True)

    async def delete(self, chat_id: int) -> None:
        self._sessions.pop(chat_id, None)
