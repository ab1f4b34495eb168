from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from core.errors import ConfigIOFailureError, ValidationError
from core.models import GuildConfig

LOGGER = logging.getLogger(__name__)

# On-disk keys; kept camelCase so existing settings files stay readable.
TITLE_KEY = "welcomeTitle"
DESCRIPTION_KEY = "welcomeDescription"


class GuildConfigStore:
    """Per-guild welcome settings backed by a single JSON document.

    The whole file is read once by :meth:`load` and rewritten after every
    mutation. There is no locking or journaling: a crash between a mutation
    and the rewrite loses that mutation.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._records: dict[int, GuildConfig] = {}

    def load(self) -> None:
        try:
            self._records = self._read()
        except ConfigIOFailureError:
            LOGGER.exception("Falling back to empty guild configuration (%s)", self.path)
            self._records = {}
        LOGGER.info("Loaded welcome settings for %s guild(s)", len(self._records))

    def _read(self) -> dict[int, GuildConfig]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigIOFailureError(f"Could not read {self.path}") from exc
        if not isinstance(raw, dict):
            raise ConfigIOFailureError(f"{self.path} must contain a JSON object")

        records: dict[int, GuildConfig] = {}
        for key, row in raw.items():
            if not isinstance(row, dict):
                LOGGER.warning("Skipping malformed guild entry %r", key)
                continue
            try:
                guild_id = int(key)
            except ValueError:
                LOGGER.warning("Skipping guild entry with non-numeric id %r", key)
                continue
            title = row.get(TITLE_KEY)
            records[guild_id] = GuildConfig(
                guild_id=guild_id,
                welcome_title=str(title) if title is not None else None,
                welcome_description=str(row.get(DESCRIPTION_KEY) or ""),
            )
        return records

    def _serialize(self) -> dict[str, dict[str, Any]]:
        payload: dict[str, dict[str, Any]] = {}
        for guild_id, record in sorted(self._records.items()):
            row: dict[str, Any] = {DESCRIPTION_KEY: record.welcome_description}
            if record.welcome_title is not None:
                row[TITLE_KEY] = record.welcome_title
            payload[str(guild_id)] = row
        return payload

    def _write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                json.dump(self._serialize(), handle, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise ConfigIOFailureError(f"Could not write {self.path}") from exc

    def get(self, guild_id: int) -> GuildConfig | None:
        return self._records.get(guild_id)

    def all(self) -> dict[int, GuildConfig]:
        return dict(self._records)

    def set(self, guild_id: int, description: str, title: str | None = None) -> GuildConfig:
        # Values are stored exactly as given; only a blank description is refused.
        if not description.strip():
            raise ValidationError("A welcome description is required.")
        existing = self._records.get(guild_id)
        new_title = title
        if new_title is None and existing is not None:
            new_title = existing.welcome_title

        record = GuildConfig(guild_id=guild_id, welcome_title=new_title, welcome_description=description)
        self._records[guild_id] = record
        try:
            self._write()
        except ConfigIOFailureError:
            # The in-memory value still applies until restart.
            LOGGER.exception("Failed to persist welcome settings for guild %s", guild_id)
        else:
            LOGGER.info("Updated welcome settings for guild %s", guild_id)
        return record
