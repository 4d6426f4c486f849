"""
Conversation Engine

The chat state machine: one state per chat, driven by button presses,
typed text and media.

FLOW:
1. Nouvelle recette → collect figures (text, photo, voice)
2. Reconcile against the in-progress record → validate
3. Warnings need acknowledgment, a day other than today needs confirmation
4. Review → send → overwrite check → commit

DESIGN DECISION: Nothing reaches the ledger without an explicit "send"
(and an explicit "replace" when the day already holds figures).
Every collaborator failure becomes a French reply; `handle` never raises.
"""

from datetime import date
from typing import Optional

import structlog

from till_ledger.audit import AuditLogger, create_correlation_id
from till_ledger.clock import Clock
from till_ledger.config import LedgerSettings, get_settings
from till_ledger.conversation import messages
from till_ledger.conversation.guard import ChatActionGuard
from till_ledger.dates import recent_days, resolve_relative_date, shift_month
from till_ledger.formatting import format_amount, month_label
from till_ledger.models.conversation import (
    Action,
    AfterWarnings,
    ButtonPress,
    ConversationState,
    EntryOrigin,
    InboundEvent,
    MediaKind,
    MediaMessage,
    Reply,
    Session,
    TextMessage,
)
from till_ledger.models.ledger import LedgerRecord, PartialRecord, ValidationIssue
from till_ledger.parsing import KeywordModificationParser, ModificationParser
from till_ledger.queries import RecapService
from till_ledger.reconcile import reconcile
from till_ledger.services.extraction import (
    AudioInput,
    ExtractionError,
    ExtractionService,
    ExtractionSource,
    ImageInput,
    TextInput,
    source_name,
)
from till_ledger.services.storage import (
    ConflictDetected,
    LedgerStoreInterface,
    StorageError,
)
from till_ledger.session import SessionStore
from till_ledger.validation import RecordValidator


logger = structlog.get_logger(__name__)


INPUT_STATES = {
    ConversationState.COLLECTING_INPUT,
    ConversationState.MODIFYING,
    ConversationState.MODIFYING_PAST,
}

# Buttons only valid in some states; everything else is global.
ALLOWED_STATES = {
    Action.CONTINUE_ANYWAY: {ConversationState.AWAITING_WARNING_ACK},
    Action.EDIT_AMOUNTS: {
        ConversationState.AWAITING_WARNING_ACK,
        ConversationState.REVIEWING,
    },
    Action.EDIT_DATE: {ConversationState.REVIEWING},
    Action.BACK_TO_REVIEW: {
        ConversationState.MODIFYING,
        ConversationState.MODIFYING_PAST,
        ConversationState.AWAITING_DATE_FIX,
    },
    Action.DATE_OK: {ConversationState.AWAITING_DATE_CONFIRMATION},
    Action.DATE_FIX: {ConversationState.AWAITING_DATE_CONFIRMATION},
    Action.DATE_TODAY: {
        ConversationState.AWAITING_DATE_CONFIRMATION,
        ConversationState.AWAITING_DATE_FIX,
    },
    Action.SEND: {ConversationState.REVIEWING},
    Action.REPLACE: {ConversationState.AWAITING_OVERWRITE_DECISION},
    Action.CANCEL_OVERWRITE: {ConversationState.AWAITING_OVERWRITE_DECISION},
}

IMAGE_MIME_PREFIX = "image/"
PDF_MIME = "application/pdf"


def _parse_iso(argument: Optional[str]) -> Optional[date]:
    if not argument:
        return None
    try:
        return date.fromisoformat(argument)
    except ValueError:
        return None


def _month_offset(argument: Optional[str]) -> int:
    """Recap and report buttons only ever ask for this month or the last."""
    try:
        offset = int(argument or 0)
    except ValueError:
        return 0
    return -1 if offset < 0 else 0


def _figures(record: LedgerRecord) -> dict[str, str]:
    return {
        "card_actual": str(record.card_actual),
        "cash_actual": str(record.cash_actual),
        "meal_voucher_actual": str(record.meal_voucher_actual),
        "expense_actual": str(record.expense_actual),
        "total_actual": str(record.total_actual),
        "total_declared": str(record.total_declared),
        "undeclared_amount": str(record.undeclared_amount),
    }


class ConversationEngine:
    """
    Routes chat events through the entry state machine.

    Collaborators are injected so the whole flow runs in tests with an
    in-memory store, a fixed clock and a scripted extractor.
    """

    def __init__(
        self,
        session_store: SessionStore,
        ledger_store: LedgerStoreInterface,
        extractor: Optional[ExtractionService],
        recap_service: RecapService,
        clock: Clock,
        validator: Optional[RecordValidator] = None,
        parser: Optional[ModificationParser] = None,
        guard: Optional[ChatActionGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._sessions = session_store
        self._store = ledger_store
        self._extractor = extractor
        self._recaps = recap_service
        self._clock = clock
        self._validator = validator or RecordValidator(self._settings)
        self._parser = parser or KeywordModificationParser()
        self._guard = guard or ChatActionGuard()
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def dispatch(self, event: InboundEvent) -> list[Reply]:
        """
        Handle an event under the chat's action guard.

        A button pressed while the chat is busy is dropped. Messages wait.
        """
        replies = await self._guard.run(
            event.chat_id,
            lambda: self.handle(event),
            drop_if_busy=isinstance(event, ButtonPress),
        )
        if replies is None:
            return [Reply(text=messages.BUSY)]
        return replies

    async def handle(self, event: InboundEvent) -> list[Reply]:
        """
        Apply one event to its chat's session.

        The session is only saved when the handler completes, so an
        unexpected failure leaves the previous state untouched.
        """
        session = await self._sessions.get(event.chat_id)
        try:
            if isinstance(event, ButtonPress):
                replies = await self._on_button(session, event)
            elif isinstance(event, TextMessage):
                replies = await self._on_text(session, event)
            else:
                replies = await self._on_media(session, event)
        except Exception as e:
            logger.exception(
                "conversation_handler_failed",
                chat_id=event.chat_id,
                state=session.state.value,
            )
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"chat_id": event.chat_id, "state": session.state.value},
                correlation_id=session.correlation_id,
            )
            return [messages.main_menu(messages.UNEXPECTED_ERROR)]

        await self._sessions.save(session)
        return replies

    # =========================================================================
    # BUTTONS
    # =========================================================================

    async def _on_button(self, session: Session, press: ButtonPress) -> list[Reply]:
        action = press.action

        allowed = ALLOWED_STATES.get(action)
        if action is Action.UNKNOWN or (allowed is not None and session.state not in allowed):
            return [messages.stale_action()]
        if allowed is not None and session.record is None:
            session.reset()
            return [messages.stale_action()]

        if action in (Action.START, Action.MAIN_MENU):
            await self._reset(session)
            if action is Action.START:
                return [messages.welcome()]
            return [messages.main_menu()]
        if action is Action.HELP:
            return [messages.help_reply()]
        if action is Action.NEW_ENTRY:
            return await self._start_entry(session, _parse_iso(press.argument))
        if action is Action.MODIFY_PAST:
            await self._reset(session)
            return [messages.day_picker(
                recent_days(self._clock.today(), self._settings.recent_days),
                Action.MODIFY_DAY,
                "✏️ Quel jour veux-tu modifier ?",
            )]
        if action is Action.DELETE_PAST:
            await self._reset(session)
            return [messages.day_picker(
                recent_days(self._clock.today(), self._settings.recent_days),
                Action.DELETE_DAY,
                "🗑️ Quel jour veux-tu supprimer ?",
            )]
        if action is Action.MODIFY_DAY:
            return await self._load_past_day(session, _parse_iso(press.argument))
        if action is Action.DELETE_DAY:
            return await self._confirm_delete(session, _parse_iso(press.argument))
        if action is Action.CONFIRM_DELETE:
            return await self._delete_day(session, _parse_iso(press.argument))
        if action is Action.MONTH_RECAP:
            return await self._month_recap(_month_offset(press.argument))
        if action is Action.CUMULATIVE:
            return await self._cumulative()
        if action is Action.REPORT_MENU:
            today = self._clock.today()
            previous = shift_month(today.year, today.month, -1)
            return [messages.report_menu(
                month_label(today.year, today.month),
                month_label(*previous),
            )]
        if action is Action.REPORT:
            return await self._report(session, _month_offset(press.argument))

        # State-bound actions below; session.record is set.
        if action is Action.CONTINUE_ANYWAY:
            return await self._continue_after_warnings(session)
        if action is Action.EDIT_AMOUNTS:
            session.state = (
                ConversationState.MODIFYING_PAST
                if session.origin is EntryOrigin.PAST
                else ConversationState.MODIFYING
            )
            session.pending_warnings = []
            return [messages.modify_prompt(session.record)]
        if action in (Action.EDIT_DATE, Action.DATE_FIX):
            session.state = ConversationState.AWAITING_DATE_FIX
            session.relative_label = None
            return [messages.date_fix_prompt(can_go_back=True)]
        if action is Action.BACK_TO_REVIEW:
            return [self._date_settled(session)]
        if action is Action.DATE_OK:
            await self._audit.log_date_confirmed(
                chat_id=session.chat_id,
                entry_date=session.record.entry_date,
                correlation_id=session.correlation_id,
            )
            return [self._date_settled(session)]
        if action is Action.DATE_TODAY:
            self._move_to_date(session, self._clock.today())
            await self._audit.log_date_confirmed(
                chat_id=session.chat_id,
                entry_date=session.record.entry_date,
                correlation_id=session.correlation_id,
            )
            return [self._date_settled(session)]
        if action is Action.SEND:
            return await self._send(session)
        if action is Action.REPLACE:
            await self._audit.log_overwrite_decided(
                chat_id=session.chat_id,
                entry_date=session.record.entry_date,
                confirmed=True,
                correlation_id=session.correlation_id,
            )
            return await self._commit(session, retry_action=Action.REPLACE)
        if action is Action.CANCEL_OVERWRITE:
            await self._audit.log_overwrite_decided(
                chat_id=session.chat_id,
                entry_date=session.record.entry_date,
                confirmed=False,
                correlation_id=session.correlation_id,
            )
            session.reset()
            return [messages.overwrite_cancelled()]

        return [messages.stale_action()]

    async def _reset(self, session: Session) -> None:
        if session.record is not None:
            await self._audit.log_session_reset(
                chat_id=session.chat_id,
                previous_state=session.state.value,
                correlation_id=session.correlation_id,
            )
        session.reset()

    async def _start_entry(self, session: Session, entry_date: Optional[date]) -> list[Reply]:
        await self._reset(session)
        entry_date = entry_date or self._clock.today()

        session.record = LedgerRecord.empty(entry_date)
        session.origin = EntryOrigin.NEW
        session.state = ConversationState.COLLECTING_INPUT
        session.correlation_id = create_correlation_id()

        await self._audit.log_entry_started(
            chat_id=session.chat_id,
            entry_date=entry_date,
            origin=EntryOrigin.NEW.value,
            correlation_id=session.correlation_id,
        )
        return [messages.collect_prompt(entry_date)]

    # =========================================================================
    # PAST DAYS
    # =========================================================================

    async def _load_past_day(self, session: Session, day: Optional[date]) -> list[Reply]:
        if day is None:
            return [messages.stale_action()]
        await self._reset(session)

        try:
            stored = await self._store.read_day(day)
        except StorageError as e:
            return await self._store_unavailable(e, session)

        if stored is None:
            return [messages.no_record_for_day(day)]

        session.record = stored
        session.origin = EntryOrigin.PAST
        session.state = ConversationState.MODIFYING_PAST
        session.correlation_id = create_correlation_id()

        await self._audit.log_entry_started(
            chat_id=session.chat_id,
            entry_date=day,
            origin=EntryOrigin.PAST.value,
            correlation_id=session.correlation_id,
        )
        return [messages.modify_prompt(stored)]

    async def _confirm_delete(self, session: Session, day: Optional[date]) -> list[Reply]:
        if day is None:
            return [messages.stale_action()]
        await self._reset(session)

        try:
            stored = await self._store.read_day(day)
        except StorageError as e:
            return await self._store_unavailable(e, session)

        if stored is None:
            return [messages.no_record_for_day(day)]
        return [messages.delete_confirmation(stored)]

    async def _delete_day(self, session: Session, day: Optional[date]) -> list[Reply]:
        if day is None:
            return [messages.stale_action()]

        try:
            existed = await self._store.delete_day(day)
        except StorageError as e:
            return await self._store_unavailable(e, session)

        if not existed:
            return [messages.no_record_for_day(day)]

        await self._audit.log_record_deleted(chat_id=session.chat_id, entry_date=day)
        return [messages.deleted(day)]

    # =========================================================================
    # RECAPS
    # =========================================================================

    async def _month_recap(self, offset: int) -> list[Reply]:
        today = self._clock.today()
        year, month = shift_month(today.year, today.month, offset)
        try:
            recap = await self._recaps.month_recap(year, month)
        except StorageError as e:
            return await self._store_unavailable(e)
        return [messages.month_recap(recap)]

    async def _cumulative(self) -> list[Reply]:
        today = self._clock.today()
        try:
            amount = await self._recaps.undeclared_total(today.year, today.month)
        except StorageError as e:
            return await self._store_unavailable(e)
        return [messages.cumulative(today.year, today.month, amount)]

    async def _report(self, session: Session, offset: int) -> list[Reply]:
        today = self._clock.today()
        year, month = shift_month(today.year, today.month, offset)
        try:
            recap, document = await self._recaps.build_report(year, month)
        except StorageError as e:
            return await self._store_unavailable(e)

        if document is None:
            return [messages.no_report_data(year, month)]

        await self._audit.log_report_generated(
            chat_id=session.chat_id,
            year=year,
            month=month,
            days_filled=recap.days_filled,
        )
        return [messages.report_document(document, recap)]

    async def _store_unavailable(
        self,
        error: StorageError,
        session: Optional[Session] = None,
    ) -> list[Reply]:
        logger.warning("ledger_store_unavailable", error=str(error))
        await self._audit.log_external_service_error(
            service="ledger_store",
            error_message=str(error),
            correlation_id=session.correlation_id if session else None,
        )
        return [messages.main_menu(messages.STORE_UNAVAILABLE)]

    # =========================================================================
    # TEXT AND MEDIA
    # =========================================================================

    async def _on_text(self, session: Session, message: TextMessage) -> list[Reply]:
        state = session.state

        if state is ConversationState.IDLE:
            return [messages.main_menu()]
        if state is ConversationState.AWAITING_DATE_FIX:
            return await self._on_date_text(session, message.text)
        if state not in INPUT_STATES:
            return [self._current_prompt(session)]

        # The grammar only answers alone when it used every word.
        candidate, unused = self._parser.scan(message.text)
        if candidate.is_empty or unused:
            if self._extractor is None:
                return [Reply(text=messages.NOTHING_UNDERSTOOD, keyboard=[[messages.menu_button()]])]
            candidate = await self._extract(session, TextInput(text=message.text))
            if candidate is None:
                return [Reply(text=messages.EXTRACTION_FAILED, keyboard=[[messages.menu_button()]])]

        return await self._apply_candidate(session, candidate)

    async def _on_media(self, session: Session, media: MediaMessage) -> list[Reply]:
        if session.state is ConversationState.IDLE:
            return [messages.main_menu(messages.MEDIA_NOT_EXPECTED)]
        if session.state not in INPUT_STATES:
            return [self._current_prompt(session)]

        if media.file_size is not None and media.file_size > self._settings.max_upload_size_bytes:
            return [Reply(
                text=messages.MEDIA_TOO_LARGE.format(limit=self._settings.max_upload_size_mb),
                keyboard=[[messages.menu_button()]],
            )]
        if (
            media.kind.is_audio
            and media.duration is not None
            and media.duration > self._settings.max_audio_seconds
        ):
            return [Reply(
                text=messages.AUDIO_TOO_LONG.format(limit=self._settings.max_audio_seconds),
                keyboard=[[messages.menu_button()]],
            )]

        source = await self._media_source(media)
        if source is None:
            return [Reply(text=messages.MEDIA_UNSUPPORTED, keyboard=[[messages.menu_button()]])]
        if self._extractor is None:
            return [Reply(text=messages.EXTRACTION_FAILED, keyboard=[[messages.menu_button()]])]

        candidate = await self._extract(session, source)
        if candidate is None:
            return [Reply(text=messages.EXTRACTION_FAILED, keyboard=[[messages.menu_button()]])]
        return await self._apply_candidate(session, candidate)

    async def _media_source(self, media: MediaMessage) -> Optional[ExtractionSource]:
        """Build the extractor input, downloading only accepted media."""
        if media.kind is MediaKind.PHOTO:
            mime_type = media.mime_type
            if not mime_type.startswith(IMAGE_MIME_PREFIX):
                mime_type = "image/jpeg"
            return ImageInput(content=await media.read(), mime_type=mime_type, caption=media.caption)

        if media.kind is MediaKind.DOCUMENT:
            if media.mime_type.startswith(IMAGE_MIME_PREFIX) or media.mime_type == PDF_MIME:
                return ImageInput(
                    content=await media.read(),
                    mime_type=media.mime_type,
                    caption=media.caption,
                )
            return None

        if media.kind.is_audio:
            mime_type = media.mime_type
            if not mime_type.startswith("audio/"):
                mime_type = "audio/ogg"
            return AudioInput(
                content=await media.read(),
                mime_type=mime_type,
                duration_seconds=media.duration,
            )

        return None

    async def _extract(
        self,
        session: Session,
        source: ExtractionSource,
    ) -> Optional[PartialRecord]:
        """Run the extractor; None when it could not read the input."""
        existing = session.record if session.record and session.record.has_activity else None
        try:
            candidate = await self._extractor.extract(source, existing)
        except ExtractionError as e:
            logger.info("extraction_failed", chat_id=session.chat_id, error=str(e))
            await self._audit.log_extraction_failed(
                chat_id=session.chat_id,
                source=source_name(source),
                error_message=str(e),
                correlation_id=session.correlation_id,
            )
            return None

        await self._audit.log_extraction_completed(
            chat_id=session.chat_id,
            source=source_name(source),
            fields=sorted(candidate.provided_fields()),
            correlation_id=session.correlation_id,
        )
        return candidate

    # =========================================================================
    # RECONCILE AND VALIDATE
    # =========================================================================

    async def _apply_candidate(self, session: Session, candidate: PartialRecord) -> list[Reply]:
        if candidate.is_empty:
            return [Reply(text=messages.NOTHING_UNDERSTOOD, keyboard=[[messages.menu_button()]])]

        today = self._clock.today()
        date_issues: list[ValidationIssue] = []
        relative_label = None

        if candidate.date_text:
            relative = resolve_relative_date(candidate.date_text, today)
            if relative is not None:
                date_issues = self._validator.check_date(relative.value)
                if not date_issues:
                    candidate = candidate.model_copy(update={"entry_date": relative.value})
                    relative_label = relative.label
            else:
                parsed, date_issues = self._validator.check_date_text(candidate.date_text, today)
                if parsed is not None:
                    candidate = candidate.model_copy(update={"entry_date": parsed})
        candidate = candidate.model_copy(update={"date_text": None})

        previous = session.record
        record = reconcile(candidate, previous, today=today)
        result = self._validator.validate(record)

        if result.has_errors:
            await self._audit.log_validation_failed(
                chat_id=session.chat_id,
                issues=[issue.model_dump() for issue in result.errors],
                correlation_id=session.correlation_id,
            )
            summary = self._validator.get_user_friendly_summary(result)
            return [messages.validation_errors(summary)]

        date_changed = previous is None or record.entry_date != previous.entry_date
        session.record = record
        if date_changed and session.origin is EntryOrigin.PAST:
            session.origin = EntryOrigin.NEW

        if date_issues:
            # Warnings wait until the date is settled.
            session.state = ConversationState.AWAITING_DATE_FIX
            session.relative_label = None
            session.pending_warnings = result.warnings
            session.after_warnings = AfterWarnings.REVIEW
            return [messages.date_fix_prompt(can_go_back=True, issues=date_issues)]

        if session.state is ConversationState.COLLECTING_INPUT or date_changed:
            then = AfterWarnings.DATE_CHECK
        else:
            then = AfterWarnings.REVIEW
        session.relative_label = relative_label

        if result.has_warnings:
            session.state = ConversationState.AWAITING_WARNING_ACK
            session.pending_warnings = result.warnings
            session.after_warnings = then
            return [messages.warnings_prompt(result.warnings)]

        if then is AfterWarnings.DATE_CHECK:
            return [self._date_check(session)]
        return [self._enter_review(session)]

    async def _continue_after_warnings(self, session: Session) -> list[Reply]:
        await self._audit.log_warnings_acknowledged(
            chat_id=session.chat_id,
            warnings=[issue.issue_type for issue in session.pending_warnings],
            correlation_id=session.correlation_id,
        )
        session.pending_warnings = []
        if session.after_warnings is AfterWarnings.DATE_CHECK:
            return [self._date_check(session)]
        return [self._enter_review(session)]

    # =========================================================================
    # DATES
    # =========================================================================

    def _date_check(self, session: Session) -> Reply:
        """Any day other than today needs an explicit confirmation."""
        today = self._clock.today()
        if session.record.entry_date == today and not session.relative_label:
            return self._enter_review(session)

        session.state = ConversationState.AWAITING_DATE_CONFIRMATION
        return messages.date_confirmation(
            session.record.entry_date,
            today,
            session.relative_label,
        )

    def _move_to_date(self, session: Session, entry_date: date) -> None:
        if entry_date == session.record.entry_date:
            return
        session.record = session.record.with_date(entry_date)
        if session.origin is EntryOrigin.PAST:
            session.origin = EntryOrigin.NEW

    async def _on_date_text(self, session: Session, text: str) -> list[Reply]:
        today = self._clock.today()

        relative = resolve_relative_date(text, today)
        if relative is not None:
            issues = self._validator.check_date(relative.value)
            if issues:
                return [messages.date_fix_prompt(can_go_back=True, issues=issues)]
            self._move_to_date(session, relative.value)
            session.relative_label = relative.label
            session.state = ConversationState.AWAITING_DATE_CONFIRMATION
            return [messages.date_confirmation(relative.value, today, relative.label)]

        parsed, issues = self._validator.check_date_text(text, today)
        if parsed is None:
            return [messages.date_fix_prompt(can_go_back=True, issues=issues)]

        self._move_to_date(session, parsed)
        await self._audit.log_date_confirmed(
            chat_id=session.chat_id,
            entry_date=parsed,
            correlation_id=session.correlation_id,
        )
        return [self._date_settled(session)]

    def _date_settled(self, session: Session) -> Reply:
        """Review, unless warnings from the last edit still need acknowledgment."""
        if session.pending_warnings:
            session.state = ConversationState.AWAITING_WARNING_ACK
            session.relative_label = None
            session.after_warnings = AfterWarnings.REVIEW
            return messages.warnings_prompt(session.pending_warnings)
        return self._enter_review(session)

    # =========================================================================
    # REVIEW, SEND, COMMIT
    # =========================================================================

    def _enter_review(self, session: Session) -> Reply:
        session.state = ConversationState.REVIEWING
        session.relative_label = None
        session.pending_warnings = []
        warnings = self._validator.validate(session.record).warnings
        return messages.review(session.record, warnings)

    def _current_prompt(self, session: Session) -> Reply:
        """Re-show what the chat is waiting for."""
        state = session.state
        if session.record is None:
            session.reset()
            return messages.main_menu()
        if state is ConversationState.REVIEWING:
            return messages.review(session.record, self._validator.validate(session.record).warnings)
        if state is ConversationState.AWAITING_WARNING_ACK:
            return messages.warnings_prompt(session.pending_warnings)
        if state is ConversationState.AWAITING_DATE_CONFIRMATION:
            return messages.date_confirmation(
                session.record.entry_date,
                self._clock.today(),
                session.relative_label,
            )
        if state is ConversationState.AWAITING_OVERWRITE_DECISION and session.conflicting:
            return messages.overwrite_prompt(session.conflicting, session.record)
        return messages.modify_prompt(session.record)

    async def _check_overwrite(self, record: LedgerRecord) -> None:
        """
        Raises:
            ConflictDetected: If the day already holds figures
            StorageError: If the day cannot be read
        """
        stored = await self._store.read_day(record.entry_date)
        if stored is not None and stored.has_activity:
            raise ConflictDetected(stored)

    async def _send(self, session: Session) -> list[Reply]:
        if session.origin is EntryOrigin.PAST:
            return await self._commit(session, retry_action=Action.SEND)

        try:
            await self._check_overwrite(session.record)
        except ConflictDetected as conflict:
            session.conflicting = conflict.existing
            session.state = ConversationState.AWAITING_OVERWRITE_DECISION
            await self._audit.log_conflict_detected(
                chat_id=session.chat_id,
                entry_date=session.record.entry_date,
                existing_total=str(conflict.existing.total_declared),
                new_total=str(session.record.total_declared),
                correlation_id=session.correlation_id,
            )
            return [messages.overwrite_prompt(conflict.existing, session.record)]
        except StorageError as e:
            logger.warning("overwrite_check_failed", chat_id=session.chat_id, error=str(e))
            await self._audit.log_external_service_error(
                service="ledger_store",
                error_message=str(e),
                correlation_id=session.correlation_id,
            )
            return [messages.send_failed(Action.SEND)]

        return await self._commit(session, retry_action=Action.SEND)

    async def _commit(self, session: Session, retry_action: Action) -> list[Reply]:
        record = session.record
        try:
            await self._store.write_day(record.entry_date, record)
        except StorageError as e:
            logger.warning(
                "ledger_write_failed",
                chat_id=session.chat_id,
                entry_date=record.entry_date.isoformat(),
                error=str(e),
            )
            await self._audit.log_save_failed(
                chat_id=session.chat_id,
                entry_date=record.entry_date,
                error_message=str(e),
                correlation_id=session.correlation_id,
            )
            return [messages.send_failed(retry_action)]

        await self._audit.log_record_saved(
            chat_id=session.chat_id,
            entry_date=record.entry_date,
            figures=_figures(record),
            correlation_id=session.correlation_id,
        )
        logger.info(
            "ledger_day_saved",
            chat_id=session.chat_id,
            entry_date=record.entry_date.isoformat(),
            total_declared=format_amount(record.total_declared),
        )
        session.reset()
        return [messages.saved(record)]
