"""
Conversation Models for Till Ledger

Inbound events, outbound replies and per-chat session state.

DESIGN DECISION: These models are transport-agnostic. The Telegram adapter
converts updates into events and replies into messages; the conversation
engine never touches a Telegram object. This keeps the state machine
testable without a bot.
"""

from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from till_ledger.models.ledger import LedgerRecord, ValidationIssue


# =============================================================================
# STATES
# =============================================================================

class ConversationState(str, Enum):
    """
    Where a chat currently is in the entry flow.

    Exactly one state per chat. Every state except IDLE and the
    input-collecting states only accepts button presses.
    """
    IDLE = "idle"
    COLLECTING_INPUT = "collecting_input"
    AWAITING_WARNING_ACK = "awaiting_warning_ack"
    AWAITING_DATE_CONFIRMATION = "awaiting_date_confirmation"
    AWAITING_DATE_FIX = "awaiting_date_fix"
    REVIEWING = "reviewing"
    MODIFYING = "modifying"
    MODIFYING_PAST = "modifying_past"
    AWAITING_OVERWRITE_DECISION = "awaiting_overwrite_decision"


class EntryOrigin(str, Enum):
    """Whether the in-progress record is fresh or was loaded from the ledger."""
    NEW = "new"
    PAST = "past"


class AfterWarnings(str, Enum):
    """Where acknowledging warnings leads."""
    DATE_CHECK = "date_check"
    REVIEW = "review"


# =============================================================================
# ACTIONS (buttons and commands)
# =============================================================================

class Action(str, Enum):
    """Every button and command the bot understands."""
    START = "start"
    MAIN_MENU = "main_menu"
    HELP = "help"

    NEW_ENTRY = "new_entry"
    MONTH_RECAP = "month_recap"
    CUMULATIVE = "cumulative"
    REPORT_MENU = "report_menu"
    REPORT = "report"
    MODIFY_PAST = "modify_past"
    MODIFY_DAY = "modify_day"
    DELETE_PAST = "delete_past"
    DELETE_DAY = "delete_day"
    CONFIRM_DELETE = "confirm_delete"

    CONTINUE_ANYWAY = "continue_anyway"
    EDIT_AMOUNTS = "edit_amounts"
    EDIT_DATE = "edit_date"
    BACK_TO_REVIEW = "back_to_review"
    DATE_OK = "date_ok"
    DATE_TODAY = "date_today"
    DATE_FIX = "date_fix"
    SEND = "send"
    REPLACE = "replace"
    CANCEL_OVERWRITE = "cancel_overwrite"

    # Callback data that no longer maps to anything
    UNKNOWN = "unknown"


CALLBACK_SEPARATOR = ":"


def encode_callback(action: Action, argument: Optional[str] = None) -> str:
    """Telegram callback data: 'action' or 'action:argument'."""
    if argument is None:
        return action.value
    return f"{action.value}{CALLBACK_SEPARATOR}{argument}"


# =============================================================================
# INBOUND EVENTS
# =============================================================================

class ButtonPress(BaseModel):
    """A button press or a command such as /start."""

    chat_id: int
    action: Action
    argument: Optional[str] = None

    @classmethod
    def from_callback_data(cls, chat_id: int, data: str) -> "ButtonPress":
        name, _, argument = (data or "").partition(CALLBACK_SEPARATOR)
        try:
            action = Action(name)
        except ValueError:
            return cls(chat_id=chat_id, action=Action.UNKNOWN, argument=data or None)
        return cls(chat_id=chat_id, action=action, argument=argument or None)


class TextMessage(BaseModel):
    """Free text typed by the operator."""

    chat_id: int
    text: str
    first_name: Optional[str] = None


class MediaKind(str, Enum):
    PHOTO = "photo"
    DOCUMENT = "document"
    VOICE = "voice"
    AUDIO = "audio"

    @property
    def is_audio(self) -> bool:
        return self in (MediaKind.VOICE, MediaKind.AUDIO)


class MediaMessage(BaseModel):
    """
    A photo, document or voice message.

    The payload is fetched lazily through `fetch` so that oversized
    files are rejected before anything is downloaded.
    """

    chat_id: int
    kind: MediaKind
    mime_type: str = "application/octet-stream"
    file_size: Optional[int] = None
    duration: Optional[int] = Field(
        default=None,
        description="Audio duration in seconds"
    )
    caption: Optional[str] = None
    content: bytes = b""
    fetch: Optional[Callable[[], Awaitable[bytes]]] = Field(default=None, exclude=True)

    async def read(self) -> bytes:
        if self.fetch is not None:
            return await self.fetch()
        return self.content


InboundEvent = Union[ButtonPress, TextMessage, MediaMessage]


# =============================================================================
# OUTBOUND REPLIES
# =============================================================================

class Button(BaseModel):
    """One inline keyboard button."""

    label: str
    action: Action
    argument: Optional[str] = None

    @property
    def callback_data(self) -> str:
        return encode_callback(self.action, self.argument)


class ReplyDocument(BaseModel):
    """A file sent back to the chat (monthly PDF)."""

    filename: str
    content: bytes
    mime_type: str = "application/pdf"


class Reply(BaseModel):
    """One outbound message: Markdown text, optional keyboard, optional file."""

    text: str = ""
    keyboard: list[list[Button]] = Field(default_factory=list)
    document: Optional[ReplyDocument] = None


# =============================================================================
# SESSION
# =============================================================================

class Session(BaseModel):
    """
    Per-chat conversation state.

    Holds at most one in-progress record. `conflicting` is only set while
    waiting for an overwrite decision.
    """

    chat_id: int
    state: ConversationState = ConversationState.IDLE
    record: Optional[LedgerRecord] = None
    conflicting: Optional[LedgerRecord] = None
    origin: EntryOrigin = EntryOrigin.NEW

    pending_warnings: list[ValidationIssue] = Field(default_factory=list)
    after_warnings: AfterWarnings = AfterWarnings.DATE_CHECK
    relative_label: Optional[str] = Field(
        default=None,
        description="Relative phrase being confirmed (e.g. 'hier')"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the audit events of one entry"
    )
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def reset(self) -> None:
        """Back to idle, discarding any in-progress record."""
        self.state = ConversationState.IDLE
        self.record = None
        self.conflicting = None
        self.origin = EntryOrigin.NEW
        self.pending_warnings = []
        self.after_warnings = AfterWarnings.DATE_CHECK
        self.relative_label = None
        self.correlation_id = None
