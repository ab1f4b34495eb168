from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import TicketBot
from core.errors import ValidationError
from utils.decorators import guild_admin_only
from utils.embeds import panel_embed
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)


class TicketsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @app_commands.command(name="setup-tickets", description="Post the ticket panel in this channel (Admin only)")
    @app_commands.guild_only()
    @guild_admin_only()
    async def setup_tickets(self, interaction: discord.Interaction[TicketBot]) -> None:
        channel = interaction.channel
        if not isinstance(channel, discord.abc.Messageable):
            raise ValidationError("The panel can only be posted in a text channel.")
        await channel.send(embed=panel_embed(), view=TicketPanelView())
        LOGGER.info(
            "Ticket panel posted in channel %s of guild %s by %s",
            getattr(channel, "id", None),
            getattr(interaction.guild, "id", None),
            interaction.user.id,
        )
        await interaction.response.send_message("✅ Ticket panel created!", ephemeral=True)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
