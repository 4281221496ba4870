from __future__ import annotations

import logging
from datetime import datetime, timezone

from aiohttp import web

from state import BotState

LOGGER = logging.getLogger(__name__)

SERVICE_NAME = "hermes-workspace-bot"
STATE_KEY = web.AppKey("state", BotState)


def health_payload(state: BotState) -> dict[str, object]:
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "processed_messages": len(state.dedup),
        "authorized_user": state.authorized_user,
        "workspace": state.workspace.root,
    }


async def health_handler(request: web.Request) -> web.Response:
    return web.json_response(health_payload(request.app[STATE_KEY]))


def build_health_app(state: BotState) -> web.Application:
    app = web.Application()
    app[STATE_KEY] = state
    app.router.add_get("/health", health_handler)
    return app


async def start_health_server(state: BotState, *, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(build_health_app(state), access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    LOGGER.info("health endpoint listening on %s:%s", host, port)
    return runner
