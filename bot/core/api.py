from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from core.bot import TicketBot


def create_keepalive_app(bot: TicketBot) -> FastAPI:
    app = FastAPI(title="Ticket Bot keep-alive", version="1.0.0")
    liveness_text = bot.config.keepalive.liveness_text

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return liveness_text

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "ready": bot.is_ready(),
            "guilds": len(bot.guilds),
        }

    return app
