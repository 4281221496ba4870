from __future__ import annotations

import logging
from typing import Any

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest

from config import MAX_TELEGRAM_CHUNK

LOGGER = logging.getLogger(__name__)


def clip_message(text: str, *, limit: int = MAX_TELEGRAM_CHUNK) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def code_block(text: str) -> str:
    # A stray fence inside the body would end the block early.
    body = text.replace("```", "'''")
    return f"```\n{body}\n```"


async def _send_once(
    bot: Bot,
    *,
    chat_id: int,
    text: str,
    markdown: bool = True,
) -> int | None:
    kwargs: dict[str, Any] = {
        "chat_id": chat_id,
        "text": text,
    }
    if markdown:
        kwargs["parse_mode"] = ParseMode.MARKDOWN

    sent = await bot.send_message(**kwargs)
    message_id = getattr(sent, "message_id", None)
    if isinstance(message_id, int):
        return message_id
    return None


async def send_message(
    bot: Bot,
    text: str,
    *,
    chat_id: int,
    prefer_markdown: bool = True,
) -> int | None:
    """Send one reply; failures are logged and never raised."""
    body = clip_message(text.strip())
    if not body:
        return None

    try:
        try:
            return await _send_once(bot, chat_id=chat_id, text=body, markdown=prefer_markdown)
        except BadRequest:
            if not prefer_markdown:
                raise
            LOGGER.debug("markdown rejected for chat %s; resending as plain text", chat_id)
            return await _send_once(bot, chat_id=chat_id, text=body, markdown=False)
    except Exception as exc:
        LOGGER.warning("failed to send telegram message to chat %s: %s", chat_id, exc)
        return None
