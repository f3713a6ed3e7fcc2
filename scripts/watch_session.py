"""Follow a live session and log every sync event.

Usage:
    python scripts/watch_session.py <session_id> [--player <player_id>] [--seconds 60]

Reads PICTIONARY_* settings from the environment (see `pictionary_sync.settings`).
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from pictionary_sync.api.client import HttpSessionApi
from pictionary_sync.core.events import SyncEventType
from pictionary_sync.fsm import format_clock, round_almost_over
from pictionary_sync.session_context import GameSessionContext
from pictionary_sync.settings import settings_from_env

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def watch(session_id: str, player_id: str, seconds: float) -> None:
    settings = settings_from_env()
    api = HttpSessionApi(base_url=settings.api_base_url, token=settings.api_token, timeout=settings.http_timeout_sec)
    try:
        async with GameSessionContext(api=api, player_id=player_id, settings=settings) as ctx:
            sub = ctx.engine.subscribe()
            ctx.engine.start_polling(session_id)

            async def _log_events() -> None:
                async for event in sub:
                    logger.info("%s %s %s", event.ts.isoformat(), event.type, event.payload)
                    if event.is_a(SyncEventType.session_changed, SyncEventType.phase_changed):
                        left = ctx.time_left()
                        logger.info(
                            "clock %s%s role=%s my_turn=%s",
                            format_clock(left),
                            " (almost over)" if round_almost_over(left) else "",
                            ctx.my_role.value,
                            ctx.is_my_turn,
                        )

            printer = asyncio.create_task(_log_events())
            await asyncio.sleep(seconds)
            await ctx.close()
            await printer
            logger.info("final stage=%s scores=%s", ctx.state_machine.stage.value, ctx.scores.scores)
    finally:
        await api.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("session_id")
    parser.add_argument("--player", default="watcher")
    parser.add_argument("--seconds", type=float, default=60.0)
    args = parser.parse_args()
    asyncio.run(watch(args.session_id, args.player, args.seconds))


if __name__ == "__main__":
    main()
