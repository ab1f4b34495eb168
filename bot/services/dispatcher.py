from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import discord

from core.errors import BotError, ValidationError, send_error_response
from services.ticket_service import TicketService
from utils.constants import CLOSE_TICKET_ID, CREATE_TICKET_ID, InteractionKind

LOGGER = logging.getLogger(__name__)

Handler = Callable[[discord.Interaction], Awaitable[str | None]]


@dataclass(slots=True)
class DispatchResult:
    handled: bool
    message: str | None = None
    error: BotError | None = None

    @property
    def ok(self) -> bool:
        return self.handled and self.error is None


class InteractionDispatcher:
    """Routes component interactions to ticket operations by (kind, custom id).

    Every handled interaction produces a :class:`DispatchResult`; user-facing
    failures are answered with an ephemeral error and returned, not raised.
    """

    def __init__(self, tickets: TicketService) -> None:
        self.tickets = tickets
        self._routes: dict[tuple[InteractionKind, str], Handler] = {}
        self.register(InteractionKind.BUTTON, CREATE_TICKET_ID, self.handle_create)
        self.register(InteractionKind.BUTTON, CLOSE_TICKET_ID, self.handle_close)

    def register(self, kind: InteractionKind, identifier: str, handler: Handler) -> None:
        self._routes[(kind, identifier)] = handler

    def routes(self) -> list[tuple[InteractionKind, str]]:
        return list(self._routes)

    async def dispatch(
        self, kind: InteractionKind, identifier: str, interaction: discord.Interaction
    ) -> DispatchResult:
        handler = self._routes.get((kind, identifier))
        if handler is None:
            LOGGER.debug("No route for %s:%s", kind.value, identifier)
            return DispatchResult(handled=False)

        try:
            message = await handler(interaction)
        except BotError as exc:
            LOGGER.info(
                "Interaction %s:%s rejected for user %s: %s",
                kind.value,
                identifier,
                interaction.user.id,
                type(exc).__name__,
            )
            await self._report(interaction, exc.user_message)
            return DispatchResult(handled=True, error=exc)
        except Exception:
            LOGGER.exception("Interaction %s:%s failed for user %s", kind.value, identifier, interaction.user.id)
            error = BotError()
            await self._report(interaction, error.user_message)
            return DispatchResult(handled=True, error=error)
        return DispatchResult(handled=True, message=message)

    @staticmethod
    async def _report(interaction: discord.Interaction, message: str) -> None:
        try:
            await send_error_response(interaction, message)
        except discord.HTTPException:
            LOGGER.warning("Could not report error to user %s", interaction.user.id, exc_info=True)

    async def handle_create(self, interaction: discord.Interaction) -> str:
        guild = interaction.guild
        member = interaction.user
        if guild is None or not isinstance(member, discord.Member):
            raise ValidationError("Tickets can only be opened inside a server.")

        await interaction.response.defer(ephemeral=True, thinking=True)
        record = await self.tickets.create_ticket(guild, member)
        message = f"✅ Ticket created: <#{record.channel_id}>"
        await interaction.followup.send(message, ephemeral=True)
        return message

    async def handle_close(self, interaction: discord.Interaction) -> str:
        channel = interaction.channel
        if not isinstance(channel, discord.TextChannel):
            raise ValidationError("Tickets can only be closed inside a ticket channel.")

        async def acknowledge(text: str) -> None:
            await interaction.response.send_message(text)

        result = await self.tickets.close_ticket(channel, interaction.user, acknowledge=acknowledge)
        if result.archive is not None and result.archive.path is not None:
            return f"Archived to {result.archive.path.name}"
        return "Closed without transcript"
