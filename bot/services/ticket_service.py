from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import discord

from core.config import TicketConfig
from core.errors import (
    AlreadyClosingError,
    AlreadyOpen,
    ArchiveFailureError,
    NotATicketChannel,
    ProvisioningFailureError,
)
from core.models import TicketRecord, WelcomeContent
from services.guild_config import GuildConfigStore
from services.transcript_recorder import TranscriptRecorder
from services.transcript_service import ArchiveOutcome, TranscriptService
from utils.guards import CreationGuard
from utils.embeds import welcome_embed
from utils.time import utc_now
from views.ticket_controls import TicketCloseView

LOGGER = logging.getLogger(__name__)

Acknowledge = Callable[[str], Awaitable[None]]

_ACCESS = discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True)


@dataclass(slots=True)
class TicketServiceDeps:
    store: GuildConfigStore
    recorder: TranscriptRecorder
    transcripts: TranscriptService
    guard: CreationGuard


@dataclass(slots=True)
class CloseResult:
    channel_id: int
    archive: ArchiveOutcome | None
    deletion: asyncio.Task[None]


class TicketService:
    """Creates ticket channels and tears them down.

    A ticket is not stored anywhere: it exists while a channel named
    ``<prefix><handle>`` exists in the guild. Duplicate detection is a scan
    of the guild's cached channels plus a short per-user creation guard, so
    it is best effort rather than a hard uniqueness constraint.
    """

    def __init__(self, config: TicketConfig, deps: TicketServiceDeps) -> None:
        self.config = config
        self.deps = deps
        self._pending_deletions: dict[int, asyncio.Task[None]] = {}
        self._closing: set[int] = set()
        # channel id -> owner id, for releasing the creation guard on delete.
        self._owners: dict[int, int] = {}

    # Naming

    @staticmethod
    def sanitize_channel_fragment(name: str) -> str:
        name = name.strip().lower()
        name = re.sub(r"[^a-z0-9_-]+", "-", name)
        name = re.sub(r"-{2,}", "-", name).strip("-")
        return name or "user"

    def channel_name_for(self, handle: str) -> str:
        return f"{self.config.channel_prefix}{self.sanitize_channel_fragment(handle)}"[:100]

    def is_ticket_channel(self, channel: discord.abc.GuildChannel) -> bool:
        if channel.name == self.config.archive_channel_name:
            return False
        return channel.name.startswith(self.config.channel_prefix)

    def find_open_ticket(self, guild: discord.Guild, user: discord.abc.User) -> discord.abc.GuildChannel | None:
        expected = self.channel_name_for(user.name)
        for channel in guild.channels:
            if channel.name == expected and not isinstance(channel, discord.CategoryChannel):
                return channel
        return None

    # Welcome content

    def render_welcome(self, guild_id: int, user: discord.abc.User) -> WelcomeContent:
        record = self.deps.store.get(guild_id)
        title = self.config.default_welcome_title
        description = self.config.default_welcome_description
        if record is not None:
            title = record.welcome_title or title
            description = record.welcome_description or description
        return WelcomeContent(
            content=user.mention,
            title=title,
            description=description.replace("{user}", user.mention),
        )

    # Provisioning

    async def resolve_category(self, guild: discord.Guild) -> discord.CategoryChannel:
        category = discord.utils.get(guild.categories, name=self.config.category_name)
        if category is not None:
            return category
        LOGGER.info("Creating ticket category %r in guild %s", self.config.category_name, guild.id)
        return await guild.create_category(self.config.category_name, reason="Ticket category")

    def staff_roles(self, guild: discord.Guild) -> list[discord.Role]:
        wanted = set(self.config.staff_role_names)
        return [role for role in guild.roles if role.name in wanted]

    def build_overwrites(
        self, guild: discord.Guild, member: discord.Member
    ) -> dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
        overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            member: _ACCESS,
        }
        if guild.me is not None:
            overwrites[guild.me] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
            )
        for role in self.staff_roles(guild):
            overwrites[role] = _ACCESS
        return overwrites

    async def create_ticket(self, guild: discord.Guild, member: discord.Member) -> TicketRecord:
        if self.find_open_ticket(guild, member) is not None:
            raise AlreadyOpen()

        guard = await self.deps.guard.acquire(guild.id, member.id)
        if not guard.acquired:
            LOGGER.info("Concurrent ticket request for user %s in guild %s rejected", member.id, guild.id)
            raise AlreadyOpen()

        try:
            record = await self._provision(guild, member)
        except Exception:
            await self.deps.guard.release(guild.id, member.id)
            raise
        self._owners[record.channel_id] = member.id
        LOGGER.info(
            "Ticket #%s opened by %s (%s) in guild %s",
            record.channel_name,
            member,
            member.id,
            guild.id,
            extra={"guild_id": guild.id, "channel_id": record.channel_id, "user_id": member.id},
        )
        return record

    async def _provision(self, guild: discord.Guild, member: discord.Member) -> TicketRecord:
        # No rollback: a category created here stays even if a later call fails.
        try:
            category = await self.resolve_category(guild)
            channel = await guild.create_text_channel(
                name=self.channel_name_for(member.name),
                category=category,
                overwrites=self.build_overwrites(guild, member),
                reason=f"Ticket created by {member} ({member.id})",
            )
        except discord.HTTPException as exc:
            LOGGER.exception("Ticket provisioning failed for user %s in guild %s", member.id, guild.id)
            raise ProvisioningFailureError() from exc

        self.deps.recorder.start(channel.id)

        welcome = self.render_welcome(guild.id, member)
        try:
            await channel.send(
                content=welcome.content,
                embed=welcome_embed(welcome),
                view=TicketCloseView(),
            )
        except discord.HTTPException as exc:
            LOGGER.exception("Failed to post welcome message in channel %s", channel.id)
            raise ProvisioningFailureError() from exc

        return TicketRecord(
            guild_id=guild.id,
            owner_id=member.id,
            owner_handle=member.name,
            channel_id=channel.id,
            channel_name=channel.name,
            category_id=category.id,
            created_at=channel.created_at,
        )

    # Teardown

    def is_closing(self, channel_id: int) -> bool:
        return channel_id in self._closing

    def pending_deletion(self, channel_id: int) -> asyncio.Task[None] | None:
        return self._pending_deletions.get(channel_id)

    async def close_ticket(
        self,
        channel: discord.TextChannel,
        closer: discord.abc.User,
        acknowledge: Acknowledge | None = None,
    ) -> CloseResult:
        if not self.is_ticket_channel(channel):
            raise NotATicketChannel()
        if self.is_closing(channel.id):
            raise AlreadyClosingError()
        # Marked before the first await so a second close is rejected.
        self._closing.add(channel.id)

        if acknowledge is not None:
            try:
                await acknowledge(f"🗑️ Closing this ticket in {self.config.close_delay_seconds} seconds...")
            except discord.HTTPException:
                LOGGER.warning("Could not acknowledge close of channel %s", channel.id, exc_info=True)

        archive: ArchiveOutcome | None = None
        try:
            archive = await self.deps.transcripts.archive(channel, closer, utc_now())
        except ArchiveFailureError:
            LOGGER.exception("Transcript archive failed for channel %s; deleting anyway", channel.id)
        except discord.HTTPException:
            LOGGER.exception("Could not read history of channel %s; deleting anyway", channel.id)
        finally:
            deletion = self.schedule_deletion(channel, closer)

        LOGGER.info(
            "Ticket #%s (%s) closed by %s (%s)",
            channel.name,
            channel.id,
            closer,
            closer.id,
            extra={"guild_id": channel.guild.id, "channel_id": channel.id, "user_id": closer.id},
        )
        return CloseResult(channel_id=channel.id, archive=archive, deletion=deletion)

    def schedule_deletion(self, channel: discord.TextChannel, closer: discord.abc.User) -> asyncio.Task[None]:
        """Fire-and-forget one-shot deletion after the grace delay; not cancellable."""
        existing = self._pending_deletions.get(channel.id)
        if existing is not None:
            return existing
        self._closing.add(channel.id)
        task = asyncio.create_task(
            self._delete_later(channel, closer), name=f"ticket-delete-{channel.id}"
        )
        self._pending_deletions[channel.id] = task
        return task

    async def _delete_later(self, channel: discord.TextChannel, closer: discord.abc.User) -> None:
        try:
            await asyncio.sleep(self.config.close_delay_seconds)
            await channel.delete(reason=f"Ticket closed by {closer} ({closer.id})")
        except discord.NotFound:
            LOGGER.debug("Ticket channel %s was already gone", channel.id)
        except discord.HTTPException:
            LOGGER.warning("Failed to delete ticket channel %s", channel.id, exc_info=True)
        finally:
            self._pending_deletions.pop(channel.id, None)
            self._closing.discard(channel.id)
            owner_id = self._owners.pop(channel.id, None)
            if owner_id is not None:
                await self.deps.guard.release(channel.guild.id, owner_id)
