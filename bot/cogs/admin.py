from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import TicketBot
from core.errors import ValidationError
from utils.decorators import guild_admin_only
from utils.embeds import success_embed, welcome_embed


class AdminCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @app_commands.command(name="set-welcome", description="Customize the message shown in new tickets (Admin only)")
    @app_commands.describe(
        description="Welcome text; {user} is replaced by the ticket owner's mention",
        title="Optional embed title",
    )
    @app_commands.guild_only()
    @guild_admin_only()
    async def set_welcome(
        self,
        interaction: discord.Interaction[TicketBot],
        description: str,
        title: str | None = None,
    ) -> None:
        guild = interaction.guild
        if guild is None:
            raise ValidationError("This command can only be used inside a server.")
        if len(description) > 4000 or (title is not None and len(title) > 256):
            raise ValidationError("Titles are limited to 256 characters and descriptions to 4000.")
        record = self.bot.guild_config.set(guild.id, description=description, title=title)
        await interaction.response.send_message(
            embed=success_embed(
                f"Welcome message updated.\n**Title:** {record.welcome_title or self.bot.config.tickets.default_welcome_title}"
            ),
            ephemeral=True,
        )

    @app_commands.command(name="show-welcome", description="Show the welcome message used for new tickets (Admin only)")
    @app_commands.guild_only()
    @guild_admin_only()
    async def show_welcome(self, interaction: discord.Interaction[TicketBot]) -> None:
        guild = interaction.guild
        if guild is None:
            raise ValidationError("This command can only be used inside a server.")
        custom = self.bot.guild_config.get(guild.id) is not None
        welcome = self.bot.ticket_service.render_welcome(guild.id, interaction.user)
        embed = welcome_embed(welcome, footer="Custom welcome" if custom else "Default welcome")
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(AdminCog(bot))
