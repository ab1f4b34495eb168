from __future__ import annotations

import asyncio
from pathlib import Path

import discord
import pytest

from core.errors import AlreadyClosingError, AlreadyOpenError, NotATicketChannelError, ProvisioningFailureError
from fakes import FakeGuild, FakeUser, build_service

DEFAULT_DESCRIPTION = "Hello {user}, a support team member will be with you shortly!"


def test_channel_name_is_deterministic(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    assert service.channel_name_for("Alice") == "ticket-alice"
    assert service.channel_name_for("Alice") == service.channel_name_for("alice")
    assert service.channel_name_for("john.doe") == "ticket-john-doe"
    assert service.channel_name_for("!!!") == "ticket-user"


@pytest.mark.asyncio
async def test_create_ticket_provisions_one_channel(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    staff = guild.add_role("Support")
    member = FakeUser("Alice")

    record = await service.create_ticket(guild, member)

    assert len(guild.text_channels) == 1
    channel = guild.text_channels[0]
    assert channel.name == "ticket-alice"
    assert record.channel_id == channel.id
    assert record.owner_id == member.id
    assert len(guild.categories) == 1
    assert channel.category is guild.categories[0]
    assert guild.categories[0].name == "Tickets"

    assert channel.overwrites[guild.default_role].view_channel is False
    assert channel.overwrites[member].view_channel is True
    assert channel.overwrites[member].send_messages is True
    assert channel.overwrites[staff].send_messages is True
    assert guild.me in channel.overwrites

    assert service.deps.recorder.has_log(channel.id)


@pytest.mark.asyncio
async def test_create_ticket_renders_default_welcome_verbatim(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    member = FakeUser("bob")

    await service.create_ticket(guild, member)

    sent = guild.text_channels[0].sent
    assert len(sent) == 1
    assert sent[0]["content"] == member.mention
    embed: discord.Embed = sent[0]["embed"]
    assert embed.title == "🎫 Support Ticket"
    assert embed.description == DEFAULT_DESCRIPTION.replace("{user}", member.mention)
    assert sent[0]["view"] is not None


@pytest.mark.asyncio
async def test_description_only_config_uses_default_title(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    service.deps.store.set(guild.id, description="Describe your problem, {user}.")
    member = FakeUser("carol")

    await service.create_ticket(guild, member)

    embed: discord.Embed = guild.text_channels[0].sent[0]["embed"]
    assert embed.title == "🎫 Support Ticket"
    assert embed.description == f"Describe your problem, {member.mention}."


@pytest.mark.asyncio
async def test_second_create_for_same_user_is_rejected(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    member = FakeUser("Dave")

    await service.create_ticket(guild, member)
    with pytest.raises(AlreadyOpenError):
        await service.create_ticket(guild, member)

    assert len(guild.text_channels) == 1


@pytest.mark.asyncio
async def test_concurrent_request_is_rejected_by_guard(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    member = FakeUser("erin")

    # Simulates a second click that passed the name scan while the first is in flight.
    await service.deps.guard.acquire(guild.id, member.id)
    with pytest.raises(AlreadyOpenError):
        await service.create_ticket(guild, member)
    assert guild.text_channels == []


@pytest.mark.asyncio
async def test_existing_category_is_reused(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    await guild.create_category("Tickets")

    await service.create_ticket(guild, FakeUser("frank"))
    await service.create_ticket(guild, FakeUser("grace"))

    assert guild.created_categories == 1
    assert len(guild.text_channels) == 2


@pytest.mark.asyncio
async def test_provisioning_failure_releases_guard(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    member = FakeUser("heidi")

    async def broken_create(*args: object, **kwargs: object) -> None:
        raise discord.HTTPException(_FakeResponse(), "nope")

    guild.create_text_channel = broken_create  # type: ignore[method-assign]
    with pytest.raises(ProvisioningFailureError):
        await service.create_ticket(guild, member)

    # The category survives the failed channel create; no rollback.
    assert len(guild.categories) == 1
    guard = await service.deps.guard.acquire(guild.id, member.id)
    assert guard.acquired is True


@pytest.mark.asyncio
async def test_close_outside_ticket_channel_is_rejected(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    channel = guild.add_text_channel("general")

    with pytest.raises(NotATicketChannelError):
        await service.close_ticket(channel, FakeUser("mod"))

    assert channel.delete_calls == 0
    assert not service.is_closing(channel.id)


@pytest.mark.asyncio
async def test_archive_channel_is_not_a_ticket(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    archive = guild.add_text_channel("ticket-transcripts")

    with pytest.raises(NotATicketChannelError):
        await service.close_ticket(archive, FakeUser("mod"))


@pytest.mark.asyncio
async def test_close_archives_and_deletes_once(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild("Help Desk")
    member = FakeUser("ivan")
    closer = FakeUser("staffer")
    await service.create_ticket(guild, member)
    channel = guild.text_channels[0]
    channel.add_message(member, "first")
    channel.add_message(closer, "second")
    # No raw log: force history replay.
    service.deps.recorder.discard(channel.id)

    acknowledgements: list[str] = []

    async def acknowledge(text: str) -> None:
        acknowledgements.append(text)

    result = await service.close_ticket(channel, closer, acknowledge=acknowledge)
    with pytest.raises(AlreadyClosingError):
        await service.close_ticket(channel, closer)
    await result.deletion

    assert acknowledgements == ["🗑️ Closing this ticket in 0 seconds..."]
    assert channel.delete_calls == 1
    assert not service.is_closing(channel.id)

    assert result.archive is not None
    text = result.archive.path.read_text(encoding="utf-8")
    header, body = text.split("=" * 48 + "\n")
    assert f"#ticket-ivan ({channel.id})" in header
    assert f"Help Desk ({guild.id})" in header
    assert f"staffer ({closer.id})" in header
    assert "Closed at: " in header
    assert body.splitlines() == [
        "[2025-01-01T12:00:00+00:00] ivan: first",
        "[2025-01-01T12:00:01+00:00] staffer: second",
    ]


@pytest.mark.asyncio
async def test_close_uses_raw_log_and_removes_it(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    member = FakeUser("judy")
    await service.create_ticket(guild, member)
    channel = guild.text_channels[0]
    message = channel.add_message(member, "logged live", attachments=["https://cdn.example/a.png"])
    service.deps.recorder.record(message)

    result = await service.close_ticket(channel, member)
    await result.deletion

    assert result.archive is not None
    assert result.archive.transcript.from_raw_log is True
    assert result.archive.transcript.lines == (
        "[2025-01-01T12:00:00+00:00] judy: logged live https://cdn.example/a.png",
    )
    assert channel.history_calls == []
    assert not service.deps.recorder.has_log(channel.id)


@pytest.mark.asyncio
async def test_archive_failure_does_not_block_deletion(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    guild = FakeGuild()
    member = FakeUser("ken")
    await service.create_ticket(guild, member)
    channel = guild.text_channels[0]
    archive_channel = guild.add_text_channel("ticket-transcripts")

    async def failing_send(*args: object, **kwargs: object) -> None:
        raise discord.HTTPException(_FakeResponse(), "upload rejected")

    archive_channel.send = failing_send  # type: ignore[method-assign]

    result = await service.close_ticket(channel, member)
    await result.deletion

    assert result.archive is None
    assert channel.delete_calls == 1


@pytest.mark.asyncio
async def test_owner_can_reopen_once_channel_is_deleted(tmp_path: Path) -> None:
    service = build_service(tmp_path, creation_guard_seconds=60)
    guild = FakeGuild()
    member = FakeUser("alice")
    await service.create_ticket(guild, member)
    channel = guild.text_channels[0]

    result = await service.close_ticket(channel, member)
    await result.deletion
    guild.channels.remove(channel)

    record = await service.create_ticket(guild, member)

    assert record.channel_name == "ticket-alice"
    assert len(guild.text_channels) == 1


@pytest.mark.asyncio
async def test_deletion_waits_for_grace_delay(tmp_path: Path) -> None:
    service = build_service(tmp_path, close_delay_seconds=1)
    guild = FakeGuild()
    member = FakeUser("mallory")
    await service.create_ticket(guild, member)
    channel = guild.text_channels[0]
    acknowledgements: list[str] = []

    async def acknowledge(text: str) -> None:
        acknowledgements.append(text)

    result = await service.close_ticket(channel, member, acknowledge=acknowledge)
    await asyncio.sleep(0.1)

    assert acknowledgements == ["🗑️ Closing this ticket in 1 seconds..."]
    assert channel.delete_calls == 0
    assert service.pending_deletion(channel.id) is result.deletion

    await result.deletion

    assert channel.delete_calls == 1
    assert service.pending_deletion(channel.id) is None


class _FakeResponse:
    status = 500
    reason = "Internal Server Error"
