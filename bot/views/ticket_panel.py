from __future__ import annotations

from typing import TYPE_CHECKING, cast

import discord

from utils.constants import CREATE_TICKET_ID, PANEL_BUTTON_LABEL, InteractionKind

if TYPE_CHECKING:
    from core.bot import TicketBot


class TicketCreateButton(discord.ui.Button["TicketPanelView"]):
    def __init__(self) -> None:
        super().__init__(
            label=PANEL_BUTTON_LABEL,
            style=discord.ButtonStyle.primary,
            custom_id=CREATE_TICKET_ID,
        )

    async def callback(self, interaction: discord.Interaction) -> None:
        bot = cast("TicketBot", interaction.client)
        await bot.dispatcher.dispatch(InteractionKind.BUTTON, CREATE_TICKET_ID, interaction)


class TicketPanelView(discord.ui.View):
    def __init__(self) -> None:
        super().__init__(timeout=None)
        self.add_item(TicketCreateButton())
