from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class GuildConfig:
    guild_id: int
    welcome_description: str
    welcome_title: str | None = None


@dataclass(slots=True)
class WelcomeContent:
    content: str
    title: str
    description: str


@dataclass(slots=True)
class TicketRecord:
    guild_id: int
    owner_id: int
    owner_handle: str
    channel_id: int
    channel_name: str
    category_id: int | None
    created_at: datetime | None = None


@dataclass(slots=True)
class TranscriptEntry:
    timestamp: datetime
    author: str
    author_id: int
    content: str
    attachments: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ArchivedTranscript:
    channel_name: str
    channel_id: int
    guild_name: str
    guild_id: int
    closed_by: str
    closed_by_id: int
    closed_at: datetime
    lines: tuple[str, ...]
    from_raw_log: bool = False
