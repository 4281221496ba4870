from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
AUTHORIZED_USER = (os.getenv("AUTHORIZED_USER") or "").strip().lstrip("@")


def resolve_workspace_path() -> str:
    configured = (os.getenv("WORKSPACE_PATH") or "").strip()
    launch_dir = os.path.abspath(os.getcwd())
    if not configured:
        return launch_dir

    candidate = os.path.abspath(os.path.expanduser(configured))
    if os.path.isdir(candidate):
        return candidate

    LOGGER.warning(
        "WORKSPACE_PATH is not a valid directory (%s); using launch directory (%s)",
        candidate,
        launch_dir,
    )
    return launch_dir


WORKSPACE_PATH = resolve_workspace_path()

DROP_PENDING_UPDATES = os.getenv("DROP_PENDING_UPDATES", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
AI_MODEL = (os.getenv("AI_MODEL") or "").strip() or (
    "openai/gpt-4o-mini" if OPENROUTER_API_KEY else "gpt-4o-mini"
)

HEALTH_HOST = os.getenv("HEALTH_HOST", "0.0.0.0")
try:
    HEALTH_PORT = int(os.getenv("HEALTH_PORT", "4040"))
except ValueError:
    LOGGER.warning("HEALTH_PORT is not an integer; health endpoint disabled")
    HEALTH_PORT = 0

# Server-side long-poll wait; Telegram holds the request open this long.
POLL_TIMEOUT_S = 30
POLL_RETRY_DELAY_S = 5.0
PENDING_DRAIN_LIMIT = 1000

DEDUP_CAPACITY = 1000
DEDUP_EVICT_FRACTION = 0.1

MAX_TELEGRAM_CHUNK = 4096
LIST_LIMIT = 20
# Keeps file previews well under the Telegram limit once wrapped in a code block.
READ_PREVIEW_CHARS = 2000
EDIT_PREVIEW_CHARS = 500

COMMAND_SENTINEL = ":h"
PROTECTED_FILES = frozenset({".env", "package.json", "tsconfig.json", ".gitignore"})

SYSTEM_HINT = (
    "You are Hermes, a Telegram assistant attached to a project workspace. "
    "Answer directly and concisely. "
    "Workspace files are managed with `:h` commands: "
    ":h ls, :h cat <file>, :h write <file> <content>, "
    ":h append <file> <content>, :h edit <file> <old> -> <new>. "
    "Suggest the matching command when the user asks for a file operation."
)
