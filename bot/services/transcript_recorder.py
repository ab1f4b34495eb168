from __future__ import annotations

import logging
from pathlib import Path

import discord

from core.models import TranscriptEntry

LOGGER = logging.getLogger(__name__)


def entry_from_message(message: discord.Message) -> TranscriptEntry:
    return TranscriptEntry(
        timestamp=message.created_at,
        author=str(message.author),
        author_id=message.author.id,
        content=message.content or "",
        attachments=[attachment.url for attachment in message.attachments],
    )


def render_entry(entry: TranscriptEntry) -> str:
    line = f"[{entry.timestamp.isoformat()}] {entry.author}: {entry.content}"
    if entry.attachments:
        line += " " + " ".join(entry.attachments)
    return line


class TranscriptRecorder:
    """Append-only per-channel message logs under ``<base>/raw/<channel_id>``.

    A log only grows while it exists; messages in channels without a log are
    ignored, and the close path falls back to replaying channel history.
    """

    def __init__(self, base_dir: Path) -> None:
        self.raw_dir = base_dir / "raw"
        self.raw_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, channel_id: int) -> Path:
        return self.raw_dir / str(channel_id)

    def has_log(self, channel_id: int) -> bool:
        return self.path_for(channel_id).exists()

    def start(self, channel_id: int) -> Path:
        path = self.path_for(channel_id)
        path.touch(exist_ok=True)
        LOGGER.debug("Started raw transcript log for channel %s", channel_id)
        return path

    def append(self, channel_id: int, entry: TranscriptEntry) -> bool:
        path = self.path_for(channel_id)
        if not path.exists():
            return False
        with path.open("a", encoding="utf-8") as handle:
            handle.write(render_entry(entry) + "\n")
        return True

    def record(self, message: discord.Message) -> bool:
        try:
            return self.append(message.channel.id, entry_from_message(message))
        except OSError:
            LOGGER.exception("Failed to append message %s to raw log", message.id)
            return False

    def read(self, channel_id: int) -> str | None:
        path = self.path_for(channel_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def discard(self, channel_id: int) -> None:
        path = self.path_for(channel_id)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            LOGGER.warning("Could not remove raw transcript log %s", path)
