from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, assert_never

from telegram import Bot, Update
from telegram.error import TelegramError

from assistant import build_assistant, build_prompt
from commands import (
    Append,
    Bare,
    Edit,
    Help,
    List,
    Read,
    Unknown,
    WorkspaceCommand,
    Write,
    is_workspace_text,
    parse_command,
)
from config import (
    AUTHORIZED_USER,
    DROP_PENDING_UPDATES,
    EDIT_PREVIEW_CHARS,
    HEALTH_HOST,
    HEALTH_PORT,
    PENDING_DRAIN_LIMIT,
    POLL_RETRY_DELAY_S,
    POLL_TIMEOUT_S,
    READ_PREVIEW_CHARS,
    TELEGRAM_BOT_TOKEN,
)
from errors import AuthorizationError, WorkspaceError
from health import start_health_server
from state import BotState
from telegram_utils import code_block, send_message
from workspace import Listing

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)
# Avoid leaking bot token in HTTP URL logs from lower-level clients.
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

ALLOWED_UPDATES = [Update.MESSAGE]

STOP_TEXT = "stop"
START_TEXT = "start"
STOP_ACK = '⏹️ Stopped. Send "start" to resume.'
START_ACK = "▶️ Started! How can I help you?\n\n🔧 Try :h help for workspace commands."
BARE_PROMPT = "📚 What would you like to work on? Use :h help for commands."
NO_ASSISTANT_HINT = (
    "I can help you explore the workspace.\n\n"
    "Try :h help for workspace commands, or :h ls to see your project files."
)
APOLOGY = "⚠️ Sorry, I'm having trouble with that request. Wait a sec and try again, or ask me something else."


@dataclass(frozen=True, slots=True)
class InboundUpdate:
    update_id: int
    message_id: int
    chat_id: int
    user_id: int | None
    username: str
    is_bot: bool
    text: str


def inbound_from_update(update: Any) -> InboundUpdate | None:
    message = getattr(update, "message", None)
    if message is None or not message.text:
        return None

    sender = getattr(message, "from_user", None)
    return InboundUpdate(
        update_id=int(update.update_id),
        message_id=int(message.message_id),
        chat_id=int(message.chat.id),
        user_id=getattr(sender, "id", None),
        username=getattr(sender, "username", None) or "unknown",
        is_bot=bool(getattr(sender, "is_bot", False)),
        text=message.text,
    )


# Auth

def is_authorized(username: str, authorized_user: str) -> bool:
    if not authorized_user:
        return False
    return username.lower() == authorized_user.lower()


def authorize(inbound: InboundUpdate, state: BotState) -> None:
    if is_authorized(inbound.username, state.authorized_user):
        return
    LOGGER.warning(
        "unauthorized workspace command from @%s in chat %s (expected @%s)",
        inbound.username,
        inbound.chat_id,
        state.authorized_user,
    )
    raise AuthorizationError(
        f"⛔ Sorry @{inbound.username}, workspace commands are only available "
        f"to @{state.authorized_user}."
    )


# Formatting

def build_help_text() -> str:
    lines = [
        "📚 *Workspace Commands:*",
        ":h ls [dir] - List files",
        ":h cat <file> - Read file contents",
        ":h read <file> - Same as cat",
        ":h write <file> <content> - Create/overwrite file",
        ":h append <file> <content> - Add to end of file",
        ":h edit <file> <old> -> <new> - Replace text in file",
        ":h help - This help message",
        "",
        "Examples:",
        ":h write test.md Hello World",
        ":h append test.md More content",
        ":h edit test.md Hello -> Hi",
        "",
        'Say "stop" to pause all messages.',
    ]
    return "\n".join(lines)


def preview(text: str, *, max_chars: int, marker: str = "... (truncated)") -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}\n\n{marker}"


def format_listing(listing: Listing) -> str:
    names = [f"{entry.name}/" if entry.is_dir else entry.name for entry in listing.entries]
    body = "\n".join(names) if names else "(empty)"
    if listing.remaining:
        body += f"\n... and {listing.remaining} more files"
    return f"📂 *Files in {listing.path or 'workspace'}:*\n{code_block(body)}"


# Command execution

def execute_command(state: BotState, command: WorkspaceCommand) -> str:
    workspace = state.workspace
    LOGGER.info("workspace command: %s", command)

    if isinstance(command, List):
        return format_listing(workspace.list(command.dir))

    if isinstance(command, Read):
        content = workspace.read(command.filename)
        body = preview(content, max_chars=READ_PREVIEW_CHARS)
        return f"📄 *{command.filename}:*\n{code_block(body)}"

    if isinstance(command, Write):
        workspace.write(command.filename, command.content)
        return (
            f"✅ File written successfully: {command.filename}\n\n"
            f"Content:\n{code_block(command.content)}"
        )

    if isinstance(command, Append):
        workspace.append(command.filename, command.content)
        return f"✅ Appended to file: {command.filename}\n\nAdded:\n{code_block(command.content)}"

    if isinstance(command, Edit):
        updated = workspace.edit(command.filename, command.old_text, command.new_text)
        body = preview(
            updated,
            max_chars=EDIT_PREVIEW_CHARS,
            marker=f"... (showing first {EDIT_PREVIEW_CHARS} chars)",
        )
        return (
            f"✅ File edited successfully: {command.filename}\n\n"
            f'Changed:\n"{command.old_text}"\n→\n"{command.new_text}"\n\n'
            f"New content:\n{code_block(body)}"
        )

    if isinstance(command, Help):
        return build_help_text()

    if isinstance(command, Unknown):
        return f"❓ Unknown command: {command.raw}. Try :h help"

    if isinstance(command, Bare):
        return BARE_PROMPT

    assert_never(command)


async def general_reply(state: BotState, inbound: InboundUpdate) -> str:
    if state.assistant is None:
        return NO_ASSISTANT_HINT
    return await state.assistant.send(build_prompt(inbound.username, inbound.text))


# Update processing

async def process_update(bot: Bot, state: BotState, inbound: InboundUpdate) -> None:
    if not state.dedup.admit(inbound.update_id):
        LOGGER.debug("already processed update %s", inbound.update_id)
        return

    if inbound.is_bot:
        LOGGER.info("ignoring bot message %s", inbound.message_id)
        return

    chat_id = inbound.chat_id
    LOGGER.info("message %s from @%s (%s)", inbound.message_id, inbound.username, chat_id)

    keyword = inbound.text.strip().lower()
    if keyword == STOP_TEXT:
        state.sessions.stop(chat_id)
        await send_message(bot, STOP_ACK, chat_id=chat_id)
        return
    if keyword == START_TEXT:
        state.sessions.start(chat_id)
        await send_message(bot, START_ACK, chat_id=chat_id)
        return

    if state.sessions.is_stopped(chat_id):
        LOGGER.info("chat %s is stopped; ignoring message %s", chat_id, inbound.message_id)
        return

    try:
        if is_workspace_text(inbound.text):
            authorize(inbound, state)
            command = parse_command(inbound.text)
            if command is None:
                return
            reply = execute_command(state, command)
        else:
            reply = await general_reply(state, inbound)
    except WorkspaceError as exc:
        reply = exc.message
    except Exception:
        LOGGER.exception("failed to handle update %s", inbound.update_id)
        reply = APOLOGY

    await send_message(bot, reply, chat_id=chat_id)


# Polling

def commit_offset(state: BotState, next_offset: int) -> None:
    if next_offset > state.offset:
        state.offset = next_offset


async def poll_batches(
    bot: Bot,
    state: BotState,
    *,
    timeout: int = POLL_TIMEOUT_S,
    retry_delay_s: float = POLL_RETRY_DELAY_S,
) -> AsyncIterator[list[InboundUpdate]]:
    """Yield text-message batches forever, oldest first.

    The cursor moves past a batch only when the consumer asks for the next
    one, so a batch interrupted mid-way is fetched again on restart.
    """
    while True:
        try:
            updates: Sequence[Update] = await bot.get_updates(
                offset=state.offset,
                timeout=timeout,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramError as exc:
            LOGGER.warning("polling failed: %s; retrying in %ss", exc, retry_delay_s)
            await asyncio.sleep(retry_delay_s)
            continue

        if not updates:
            continue

        ordered = sorted(updates, key=lambda update: update.update_id)
        batch = [
            inbound
            for inbound in (inbound_from_update(update) for update in ordered)
            if inbound is not None
        ]
        if batch:
            yield batch
        commit_offset(state, ordered[-1].update_id + 1)


async def skip_pending_updates(
    bot: Bot,
    state: BotState,
    *,
    limit: int = PENDING_DRAIN_LIMIT,
) -> int:
    skipped = 0
    while skipped < limit:
        try:
            updates = await bot.get_updates(
                offset=state.offset,
                timeout=0,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramError as exc:
            LOGGER.warning("failed to drain pending updates: %s", exc)
            break
        if not updates:
            break
        for update in updates:
            state.dedup.admit(update.update_id)
        commit_offset(state, max(update.update_id for update in updates) + 1)
        skipped += len(updates)

    LOGGER.info("skipped %s pending updates; starting from offset %s", skipped, state.offset)
    return skipped


UpdateHandler = Callable[[Bot, BotState, InboundUpdate], Awaitable[None]]


async def run_polling(
    bot: Bot,
    state: BotState,
    handler: UpdateHandler = process_update,
) -> None:
    async for batch in poll_batches(bot, state):
        for inbound in batch:
            await handler(bot, state, inbound)


# Entrypoint

async def run(token: str, state: BotState) -> None:
    health_runner = None
    if HEALTH_PORT:
        health_runner = await start_health_server(state, host=HEALTH_HOST, port=HEALTH_PORT)

    try:
        async with Bot(token) as bot:
            LOGGER.info("connected as @%s; authorized user @%s", bot.username, state.authorized_user)
            if DROP_PENDING_UPDATES:
                await skip_pending_updates(bot, state)
            await run_polling(bot, state)
    finally:
        if health_runner is not None:
            await health_runner.cleanup()


def main() -> None:
    if not TELEGRAM_BOT_TOKEN:
        raise SystemExit("Missing TELEGRAM_BOT_TOKEN in .env")
    if not AUTHORIZED_USER:
        LOGGER.warning("AUTHORIZED_USER is not set; workspace commands are disabled")

    state = BotState(assistant=build_assistant())
    LOGGER.info("workspace root: %s", state.workspace.root)
    try:
        asyncio.run(run(TELEGRAM_BOT_TOKEN, state))
    except KeyboardInterrupt:
        LOGGER.info("shutting down")


if __name__ == "__main__":
    main()
