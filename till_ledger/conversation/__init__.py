"""Chat conversation package: state machine, texts and action guard."""

from till_ledger.conversation.engine import ConversationEngine
from till_ledger.conversation.guard import ChatActionGuard

__all__ = ["ChatActionGuard", "ConversationEngine"]
