from __future__ import annotations

import logging
from pathlib import Path

import discord
from discord.ext import commands

from core.config import AppConfig
from core.errors import handle_app_command_error
from services.cache import CacheBackend, build_cache
from services.dispatcher import InteractionDispatcher
from services.guild_config import GuildConfigStore
from services.ticket_service import TicketService, TicketServiceDeps
from services.transcript_recorder import TranscriptRecorder
from services.transcript_service import TranscriptService
from utils.guards import CreationGuard
from views.ticket_controls import TicketCloseView
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)


class TicketBot(commands.Bot):
    def __init__(self, config: AppConfig) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = config.discord.message_content_intent

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=config.discord.application_id,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
            help_command=None,
        )
        self.config = config
        self.root_dir = Path(__file__).resolve().parent.parent
        self.cache: CacheBackend = build_cache(config.redis)

        transcripts_dir = self._resolve(config.storage.transcripts_directory)
        self.guild_config = GuildConfigStore(self._resolve(config.storage.guild_config_path))
        self.transcript_recorder = TranscriptRecorder(transcripts_dir)
        self.transcript_service = TranscriptService(config.tickets, transcripts_dir, self.transcript_recorder)
        self.ticket_service = TicketService(
            config.tickets,
            TicketServiceDeps(
                store=self.guild_config,
                recorder=self.transcript_recorder,
                transcripts=self.transcript_service,
                guard=CreationGuard(self.cache, config.tickets.creation_guard_seconds),
            ),
        )
        self.dispatcher = InteractionDispatcher(self.ticket_service)

    def _resolve(self, value: str) -> Path:
        path = Path(value)
        return path if path.is_absolute() else self.root_dir / path

    async def setup_hook(self) -> None:
        self.guild_config.load()

        # Persistent views: buttons on panels posted before a restart keep working.
        self.add_view(TicketPanelView())
        self.add_view(TicketCloseView())

        for ext in self.config.enabled_extensions:
            try:
                await self.load_extension(ext)
                LOGGER.info("Loaded extension: %s", ext)
            except commands.ExtensionError:
                LOGGER.exception("Failed to load extension: %s", ext)

        self.tree.on_error = handle_app_command_error  # type: ignore[assignment]

        if self.config.discord.sync_commands_on_start:
            try:
                synced = await self.tree.sync()
                LOGGER.info("Synced %s application commands", len(synced))
            except discord.HTTPException:
                LOGGER.exception("Slash command registration failed")

    async def on_ready(self) -> None:
        LOGGER.info("Logged in as %s (%s)", self.user, self.user.id if self.user else "n/a")
        await self.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.watching, name=self.config.discord.status_text),
        )

    async def close(self) -> None:
        await super().close()
        await self.cache.close()
