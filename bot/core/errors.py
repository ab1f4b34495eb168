from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from utils.embeds import error_embed

LOGGER = logging.getLogger(__name__)


class BotError(RuntimeError):
    """Failure that is reported back to the user who triggered it."""

    user_message: str = "An unexpected error occurred."

    def __init__(self, user_message: str | None = None) -> None:
        if user_message is not None:
            self.user_message = user_message
        super().__init__(self.user_message)


class PermissionDeniedError(BotError, app_commands.CheckFailure):
    user_message = "❌ Only admins can run this command."


class AlreadyOpenError(BotError):
    user_message = "⚠️ You already have an open ticket!"


class AlreadyClosingError(BotError):
    user_message = "This ticket is already closing."


class NotATicketChannelError(BotError):
    user_message = "❌ This isn't a ticket channel."


class ProvisioningFailureError(BotError):
    user_message = "Could not create your ticket. Please contact a staff member."


class ArchiveFailureError(BotError):
    user_message = "The transcript could not be archived."


class ConfigIOFailureError(BotError):
    user_message = "Guild settings could not be saved to disk."


class ValidationError(BotError):
    user_message = "The provided input is not valid."


# Short aliases used by cogs and views.
PermissionDenied = PermissionDeniedError
AlreadyOpen = AlreadyOpenError
NotATicketChannel = NotATicketChannelError


async def send_error_response(interaction: discord.Interaction[commands.Bot], message: str) -> None:
    embed = error_embed(message)
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)


def humanize_error(error: Exception) -> str:
    if isinstance(error, app_commands.CommandInvokeError):
        error = error.original
    if isinstance(error, BotError):
        return error.user_message
    if isinstance(error, app_commands.CommandOnCooldown):
        return f"Cooldown active. Retry in {error.retry_after:.1f} seconds."
    if isinstance(error, app_commands.MissingPermissions):
        return "You are missing required Discord permissions."
    if isinstance(error, app_commands.CheckFailure):
        return "You are not authorized for this command."
    return "An unexpected slash-command error occurred."


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    message = humanize_error(error)
    original = error.original if isinstance(error, app_commands.CommandInvokeError) else error
    if isinstance(original, BotError):
        LOGGER.info(
            "Slash command rejected. command=%s guild=%s user=%s reason=%s",
            getattr(interaction.command, "qualified_name", None),
            getattr(interaction.guild, "id", None),
            interaction.user.id if interaction.user else None,
            type(original).__name__,
        )
    else:
        LOGGER.exception(
            "Slash command failed. command=%s guild=%s user=%s",
            getattr(interaction.command, "qualified_name", None),
            getattr(interaction.guild, "id", None),
            interaction.user.id if interaction.user else None,
            exc_info=original,
        )
    await send_error_response(interaction, message)
