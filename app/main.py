"""
Telegram Frontend for Till Ledger

This is the chat interface restaurant owners use every evening to
enter the day's till figures.

DESIGN PRINCIPLES:
1. Buttons for every decision, free text only for figures and dates
2. Explicit confirmation before anything is sent to the ledger
3. Clear error messages in simple French
4. Thin adapter: Telegram updates become engine events, engine replies
   become Telegram messages. No business logic lives here.

Run with:
    python -m app.main
"""

import logging
from typing import Optional

import structlog
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from till_ledger.config import get_settings
from till_ledger.conversation import ConversationEngine
from till_ledger.models.conversation import (
    Action,
    Button,
    ButtonPress,
    InboundEvent,
    MediaKind,
    MediaMessage,
    Reply,
    TextMessage,
)
from till_ledger.orchestrator import create_app_components


logger = structlog.get_logger(__name__)

ENGINE_KEY = "engine"


def _engine(context: ContextTypes.DEFAULT_TYPE) -> ConversationEngine:
    return context.application.bot_data[ENGINE_KEY]


def _keyboard(rows: list[list[Button]]) -> Optional[InlineKeyboardMarkup]:
    if not rows:
        return None
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(button.label, callback_data=button.callback_data) for button in row]
        for row in rows
    ])


def _file_fetcher(context: ContextTypes.DEFAULT_TYPE, file_id: str):
    """Download only when the engine asks for the bytes."""
    async def fetch() -> bytes:
        file = await context.bot.get_file(file_id)
        return bytes(await file.download_as_bytearray())
    return fetch


async def _send_replies(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    replies: list[Reply],
) -> None:
    chat_id = update.effective_chat.id
    for reply in replies:
        markup = _keyboard(reply.keyboard)
        if reply.document is not None:
            await context.bot.send_document(
                chat_id=chat_id,
                document=reply.document.content,
                filename=reply.document.filename,
                caption=reply.text or None,
                reply_markup=markup,
            )
            continue
        await context.bot.send_message(
            chat_id=chat_id,
            text=reply.text,
            reply_markup=markup,
            parse_mode=ParseMode.MARKDOWN,
        )


async def _dispatch(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    event: InboundEvent,
) -> None:
    replies = await _engine(context).dispatch(event)
    await _send_replies(update, context, replies)


# =============================================================================
# HANDLERS
# =============================================================================

async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _dispatch(update, context, ButtonPress(chat_id=update.effective_chat.id, action=Action.START))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _dispatch(update, context, ButtonPress(chat_id=update.effective_chat.id, action=Action.HELP))


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()
    event = ButtonPress.from_callback_data(update.effective_chat.id, query.data)
    await _dispatch(update, context, event)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    event = TextMessage(
        chat_id=update.effective_chat.id,
        text=message.text or "",
        first_name=user.first_name if user else None,
    )
    await _dispatch(update, context, event)


async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    photo = message.photo[-1]  # largest size
    event = MediaMessage(
        chat_id=update.effective_chat.id,
        kind=MediaKind.PHOTO,
        mime_type="image/jpeg",
        file_size=photo.file_size,
        caption=message.caption,
        fetch=_file_fetcher(context, photo.file_id),
    )
    await _dispatch(update, context, event)


async def handle_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    document = message.document
    event = MediaMessage(
        chat_id=update.effective_chat.id,
        kind=MediaKind.DOCUMENT,
        mime_type=document.mime_type or "application/octet-stream",
        file_size=document.file_size,
        caption=message.caption,
        fetch=_file_fetcher(context, document.file_id),
    )
    await _dispatch(update, context, event)


async def handle_audio(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message.voice is not None:
        kind, media = MediaKind.VOICE, message.voice
    else:
        kind, media = MediaKind.AUDIO, message.audio
    event = MediaMessage(
        chat_id=update.effective_chat.id,
        kind=kind,
        mime_type=media.mime_type or "audio/ogg",
        file_size=media.file_size,
        duration=media.duration,
        fetch=_file_fetcher(context, media.file_id),
    )
    await _dispatch(update, context, event)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("telegram_update_failed", error=str(context.error), exc_info=context.error)


# =============================================================================
# APPLICATION
# =============================================================================

def build_application(engine: Optional[ConversationEngine] = None) -> Application:
    """Create the Telegram application with every handler registered."""
    settings = get_settings()
    if engine is None:
        engine, _ = create_app_components(use_storage=True)

    # Updates run concurrently; ChatActionGuard serializes each chat.
    application = (
        ApplicationBuilder()
        .token(settings.telegram.bot_token)
        .concurrent_updates(True)
        .build()
    )
    application.bot_data[ENGINE_KEY] = engine

    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CallbackQueryHandler(handle_callback))
    application.add_handler(MessageHandler(filters.PHOTO, handle_photo))
    application.add_handler(MessageHandler(filters.VOICE | filters.AUDIO, handle_audio))
    application.add_handler(MessageHandler(filters.Document.ALL, handle_document))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    application.add_error_handler(handle_error)
    return application


def main():
    """Main application entry point."""
    debug = get_settings().app.debug_mode
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format="%(message)s")
    application = build_application()
    logger.info("bot_starting")
    application.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
