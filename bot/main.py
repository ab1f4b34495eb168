from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import uvicorn

from core.api import create_keepalive_app
from core.bot import TicketBot
from core.config import AppConfig, ConfigError, load_config
from core.logging import configure_logging

LOGGER = logging.getLogger("ticket_bot")


def _keepalive_server(bot: TicketBot, config: AppConfig) -> uvicorn.Server:
    return uvicorn.Server(
        uvicorn.Config(
            app=create_keepalive_app(bot),
            host=config.keepalive.host,
            port=config.keepalive.port,
            log_level=config.logging.level.lower(),
            access_log=False,
        )
    )


async def _run(config: AppConfig) -> None:
    bot = TicketBot(config=config)
    async with bot:
        keepalive: asyncio.Task[None] | None = None
        if config.keepalive.enabled:
            LOGGER.info("Keep-alive listening on %s:%s", config.keepalive.host, config.keepalive.port)
            keepalive = asyncio.create_task(_keepalive_server(bot, config).serve())
        try:
            await bot.start(config.discord.token)
        finally:
            if keepalive is not None:
                keepalive.cancel()


def main() -> None:
    root = Path(__file__).resolve().parent
    try:
        config = load_config(root / "config" / "config.yaml")
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc
    configure_logging(config.logging)
    asyncio.run(_run(config))


if __name__ == "__main__":
    main()
