"""
Anti-duplicate-action guard.

Operators double-tap buttons. While a chat's action is running,
further button presses for that chat are dropped; messages wait
their turn. State is per process and in memory only, and a chat's
lock is forgotten once nothing holds or awaits it.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class ChatActionGuard:
    """One lock per active chat."""

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def is_busy(self, chat_id: int) -> bool:
        lock = self._locks.get(chat_id)
        return lock is not None and lock.locked()

    @property
    def active_chats(self) -> int:
        """Chats with a running or queued action."""
        return len(self._locks)

    async def run(
        self,
        chat_id: int,
        handler: Callable[[], Awaitable[T]],
        *,
        drop_if_busy: bool = False,
    ) -> Optional[T]:
        """
        Run handler while holding the chat's lock.

        Returns None without running anything when drop_if_busy is set
        and the chat is already busy. The lock is released even if the
        handler raises.
        """
        if drop_if_busy and self.is_busy(chat_id):
            return None

        lock = self._locks.setdefault(chat_id, asyncio.Lock())
        self._users[chat_id] = self._users.get(chat_id, 0) + 1
        try:
            async with lock:
                return await handler()
        finally:
            self._users[chat_id] -= 1
            if not self._users[chat_id]:
                del self._users[chat_id]
                del self._locks[chat_id]
