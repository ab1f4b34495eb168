from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import discord

from core.config import TicketConfig
from core.errors import ArchiveFailureError
from core.models import ArchivedTranscript, TranscriptEntry
from services.transcript_recorder import TranscriptRecorder, entry_from_message, render_entry
from utils.time import file_stamp, to_iso

LOGGER = logging.getLogger(__name__)

HEADER_RULE = "=" * 48


@dataclass(slots=True)
class ArchiveOutcome:
    transcript: ArchivedTranscript
    path: Path | None
    uploaded: bool


def safe_file_fragment(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "channel"


class TranscriptService:
    def __init__(self, config: TicketConfig, base_dir: Path, recorder: TranscriptRecorder) -> None:
        self.config = config
        self.base_dir = base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.recorder = recorder

    async def fetch_history(self, channel: discord.TextChannel) -> list[TranscriptEntry]:
        """Replay the full channel history, oldest message first.

        Pages are requested newest-first and walk backwards from the oldest
        message seen so far until a page comes back short.
        """
        page_size = self.config.history_page_size
        before: discord.Message | None = None
        collected: list[discord.Message] = []
        while True:
            page = [message async for message in channel.history(limit=page_size, before=before)]
            collected.extend(page)
            if len(page) < page_size:
                break
            before = page[-1]
        collected.reverse()
        return [entry_from_message(message) for message in collected]

    async def assemble_body(self, channel: discord.TextChannel) -> tuple[list[str], bool]:
        raw = self.recorder.read(channel.id)
        if raw is not None:
            return raw.splitlines(), True
        entries = await self.fetch_history(channel)
        return [render_entry(entry) for entry in entries], False

    @staticmethod
    def build_document(
        channel: discord.TextChannel,
        closer: discord.abc.User,
        closed_at: datetime,
        lines: list[str],
        from_raw_log: bool,
    ) -> ArchivedTranscript:
        return ArchivedTranscript(
            channel_name=channel.name,
            channel_id=channel.id,
            guild_name=channel.guild.name,
            guild_id=channel.guild.id,
            closed_by=str(closer),
            closed_by_id=closer.id,
            closed_at=closed_at,
            lines=tuple(lines),
            from_raw_log=from_raw_log,
        )

    @staticmethod
    def render(transcript: ArchivedTranscript) -> str:
        header = [
            f"Transcript of #{transcript.channel_name} ({transcript.channel_id})",
            f"Guild: {transcript.guild_name} ({transcript.guild_id})",
            f"Closed by: {transcript.closed_by} ({transcript.closed_by_id})",
            f"Closed at: {to_iso(transcript.closed_at)}",
            HEADER_RULE,
        ]
        return "\n".join([*header, *transcript.lines]) + "\n"

    def path_for(self, transcript: ArchivedTranscript) -> Path:
        name = (
            f"transcript_{safe_file_fragment(transcript.channel_name)}_"
            f"{transcript.channel_id}_{file_stamp(transcript.closed_at)}.txt"
        )
        return self.base_dir / name

    def write(self, transcript: ArchivedTranscript) -> Path:
        path = self.path_for(transcript)
        try:
            path.write_text(self.render(transcript), encoding="utf-8")
        except OSError as exc:
            raise ArchiveFailureError(f"Could not write transcript {path}") from exc
        LOGGER.info("Wrote transcript %s (%s lines)", path, len(transcript.lines))
        return path

    def find_archive_channel(self, guild: discord.Guild) -> discord.TextChannel | None:
        return discord.utils.get(guild.text_channels, name=self.config.archive_channel_name)

    async def upload(
        self, guild: discord.Guild, transcript: ArchivedTranscript, path: Path, closer: discord.abc.User
    ) -> bool:
        archive_channel = self.find_archive_channel(guild)
        if archive_channel is None:
            LOGGER.debug("No #%s channel in guild %s; skipping upload", self.config.archive_channel_name, guild.id)
            return False
        try:
            await archive_channel.send(
                content=f"📄 Transcript for **#{transcript.channel_name}** closed by {closer.mention}",
                file=discord.File(path, filename=path.name),
            )
        except (discord.HTTPException, OSError) as exc:
            raise ArchiveFailureError(f"Could not upload transcript to #{archive_channel.name}") from exc
        return True

    async def archive(
        self, channel: discord.TextChannel, closer: discord.abc.User, closed_at: datetime
    ) -> ArchiveOutcome:
        lines, from_raw_log = await self.assemble_body(channel)
        transcript = self.build_document(channel, closer, closed_at, lines, from_raw_log)
        path = self.write(transcript)
        uploaded = await self.upload(channel.guild, transcript, path, closer)
        if from_raw_log:
            self.recorder.discard(channel.id)
        return ArchiveOutcome(transcript=transcript, path=path, uploaded=uploaded)
