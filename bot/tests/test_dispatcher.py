from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.errors import AlreadyClosingError, AlreadyOpenError, BotError, NotATicketChannelError, ValidationError
from fakes import FakeGuild, build_service
from services.dispatcher import InteractionDispatcher
from utils.constants import CLOSE_TICKET_ID, CREATE_TICKET_ID, InteractionKind


def _member(name: str, user_id: int) -> MagicMock:
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.name = name
    member.mention = f"<@{user_id}>"
    return member


def _interaction(guild: FakeGuild | None, user: object, *, responded: bool = False) -> MagicMock:
    interaction = MagicMock()
    interaction.guild = guild
    interaction.user = user
    interaction.response.is_done = MagicMock(return_value=responded)
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


def test_default_routes_are_registered(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))
    assert (InteractionKind.BUTTON, CREATE_TICKET_ID) in dispatcher.routes()
    assert (InteractionKind.BUTTON, CLOSE_TICKET_ID) in dispatcher.routes()


@pytest.mark.asyncio
async def test_unknown_route_is_not_handled(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))
    interaction = _interaction(FakeGuild(), _member("alice", 1))

    result = await dispatcher.dispatch(InteractionKind.BUTTON, "something_else", interaction)

    assert result.handled is False
    interaction.response.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_button_confirms_with_channel_link(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))
    guild = FakeGuild()
    interaction = _interaction(guild, _member("alice", 11))

    result = await dispatcher.dispatch(InteractionKind.BUTTON, CREATE_TICKET_ID, interaction)

    assert result.ok
    channel = guild.text_channels[0]
    interaction.response.defer.assert_awaited_once_with(ephemeral=True, thinking=True)
    interaction.followup.send.assert_awaited_once_with(f"✅ Ticket created: <#{channel.id}>", ephemeral=True)


@pytest.mark.asyncio
async def test_second_create_reports_already_open(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))
    guild = FakeGuild()
    member = _member("bob", 12)
    await dispatcher.dispatch(InteractionKind.BUTTON, CREATE_TICKET_ID, _interaction(guild, member))

    interaction = _interaction(guild, member, responded=True)
    result = await dispatcher.dispatch(InteractionKind.BUTTON, CREATE_TICKET_ID, interaction)

    assert isinstance(result.error, AlreadyOpenError)
    assert len(guild.text_channels) == 1
    kwargs = interaction.followup.send.await_args.kwargs
    assert kwargs["ephemeral"] is True
    assert kwargs["embed"].description == "⚠️ You already have an open ticket!"


@pytest.mark.asyncio
async def test_create_outside_guild_is_rejected(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))
    interaction = _interaction(None, MagicMock(spec=discord.User))

    result = await dispatcher.dispatch(InteractionKind.BUTTON, CREATE_TICKET_ID, interaction)

    assert isinstance(result.error, ValidationError)
    interaction.response.defer.assert_not_awaited()
    interaction.response.send_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_in_regular_channel_is_rejected(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = 55
    channel.name = "general"
    channel.delete = AsyncMock()
    interaction = _interaction(FakeGuild(), _member("mod", 13))
    interaction.channel = channel

    result = await dispatcher.dispatch(InteractionKind.BUTTON, CLOSE_TICKET_ID, interaction)

    assert isinstance(result.error, NotATicketChannelError)
    channel.delete.assert_not_awaited()
    kwargs = interaction.response.send_message.await_args.kwargs
    assert kwargs["ephemeral"] is True
    assert kwargs["embed"].description == "❌ This isn't a ticket channel."


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_generic_error(tmp_path: Path) -> None:
    dispatcher = InteractionDispatcher(build_service(tmp_path))

    async def explode(interaction: discord.Interaction) -> str:
        raise RuntimeError("boom")

    dispatcher.register(InteractionKind.BUTTON, "explode", explode)
    interaction = _interaction(FakeGuild(), _member("carol", 14))

    result = await dispatcher.dispatch(InteractionKind.BUTTON, "explode", interaction)

    assert result.handled is True
    assert result.ok is False
    assert type(result.error) is BotError
    kwargs = interaction.response.send_message.await_args.kwargs
    assert kwargs["ephemeral"] is True
    assert kwargs["embed"].description == BotError.user_message


@pytest.mark.asyncio
async def test_close_button_acknowledges_then_rejects_repeat(tmp_path: Path) -> None:
    service = build_service(tmp_path, close_delay_seconds=1)
    dispatcher = InteractionDispatcher(service)
    guild = FakeGuild()
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = 77
    channel.name = "ticket-dan"
    channel.guild = guild
    channel.delete = AsyncMock()
    service.deps.recorder.start(channel.id)
    closer = _member("dan", 15)

    first = _interaction(guild, closer)
    first.channel = channel
    result = await dispatcher.dispatch(InteractionKind.BUTTON, CLOSE_TICKET_ID, first)

    assert result.ok
    first.response.send_message.assert_awaited_once_with("🗑️ Closing this ticket in 1 seconds...")

    second = _interaction(guild, closer)
    second.channel = channel
    repeat = await dispatcher.dispatch(InteractionKind.BUTTON, CLOSE_TICKET_ID, second)

    assert isinstance(repeat.error, AlreadyClosingError)
    kwargs = second.response.send_message.await_args.kwargs
    assert kwargs["ephemeral"] is True
    assert kwargs["embed"].description == AlreadyClosingError.user_message

    deletion = service.pending_deletion(channel.id)
    assert deletion is not None
    await deletion
    channel.delete.assert_awaited_once()
