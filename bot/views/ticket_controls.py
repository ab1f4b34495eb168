from __future__ import annotations

from typing import TYPE_CHECKING, cast

import discord

from utils.constants import CLOSE_BUTTON_LABEL, CLOSE_TICKET_ID, InteractionKind

if TYPE_CHECKING:
    from core.bot import TicketBot


class CloseTicketButton(discord.ui.Button["TicketCloseView"]):
    def __init__(self) -> None:
        super().__init__(
            label=CLOSE_BUTTON_LABEL,
            style=discord.ButtonStyle.danger,
            custom_id=CLOSE_TICKET_ID,
        )

    async def callback(self, interaction: discord.Interaction) -> None:
        bot = cast("TicketBot", interaction.client)
        await bot.dispatcher.dispatch(InteractionKind.BUTTON, CLOSE_TICKET_ID, interaction)


class TicketCloseView(discord.ui.View):
    """Attached to every ticket welcome message; persistent across restarts."""

    def __init__(self) -> None:
        super().__init__(timeout=None)
        self.add_item(CloseTicketButton())
