from __future__ import annotations

from datetime import UTC, datetime

import discord

from core.models import WelcomeContent

PANEL_COLOR = discord.Color(0x2F3136)
WELCOME_COLOR = discord.Color.blurple()


def panel_embed() -> discord.Embed:
    return discord.Embed(
        title="🎫 Support Tickets",
        description="Need help? Click the button below to open a support ticket.",
        color=PANEL_COLOR,
    )


def welcome_embed(welcome: WelcomeContent, footer: str | None = None) -> discord.Embed:
    embed = discord.Embed(title=welcome.title, description=welcome.description, color=WELCOME_COLOR)
    if footer:
        embed.set_footer(text=footer)
    return embed


def _notice(title: str, message: str, color: discord.Color) -> discord.Embed:
    return discord.Embed(title=title, description=message, color=color, timestamp=datetime.now(UTC))


def success_embed(message: str) -> discord.Embed:
    return _notice("Success", message, discord.Color.green())


def error_embed(message: str) -> discord.Embed:
    return _notice("Error", message, discord.Color.red())
