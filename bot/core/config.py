from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


class ConfigError(RuntimeError):
    pass


@dataclass(slots=True)
class DiscordConfig:
    token: str
    application_id: int | None = None
    message_content_intent: bool = True
    sync_commands_on_start: bool = True
    status_text: str = "Support tickets"


@dataclass(slots=True)
class TicketConfig:
    category_name: str = "Tickets"
    channel_prefix: str = "ticket-"
    staff_role_names: list[str] = field(default_factory=lambda: ["Support"])
    archive_channel_name: str = "ticket-transcripts"
    close_delay_seconds: int = 5
    history_page_size: int = 100
    creation_guard_seconds: int = 10
    default_welcome_title: str = "🎫 Support Ticket"
    default_welcome_description: str = "Hello {user}, a support team member will be with you shortly!"


@dataclass(slots=True)
class StorageConfig:
    guild_config_path: str = "data/guild_config.json"
    transcripts_directory: str = "transcripts"


@dataclass(slots=True)
class RedisConfig:
    enabled: bool = False
    url: str = "redis://localhost:6379/0"


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "bot.log"
    max_bytes: int = 5_000_000
    backup_count: int = 5
    json_console: bool = False


@dataclass(slots=True)
class KeepAliveConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    liveness_text: str = "Bot is alive!"


@dataclass(slots=True)
class AppConfig:
    discord: DiscordConfig
    tickets: TicketConfig = field(default_factory=TicketConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    keepalive: KeepAliveConfig = field(default_factory=KeepAliveConfig)
    enabled_extensions: list[str] = field(
        default_factory=lambda: ["cogs.events", "cogs.tickets", "cogs.admin"]
    )


def _get_env_str(*keys: str, fallback: Any = None) -> Any:
    for key in keys:
        value = os.getenv(key)
        if value is None:
            continue
        cleaned = value.strip()
        if cleaned:
            return cleaned
    return fallback


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Expected an integer, got {value!r}") from exc


def _as_str_list(value: Any, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


def _deep_get(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


def _load_yaml(path: Path) -> dict[str, Any]:
    # The YAML file is optional; a bare environment is enough to run.
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def load_config(config_path: Path) -> AppConfig:
    env_path = config_path.parent.parent / ".env"
    load_dotenv(env_path)
    raw = _load_yaml(config_path)

    token = _get_env_str("DISCORD_TOKEN", "TOKEN", fallback=_deep_get(raw, "discord", "token"))
    if not token or "${" in str(token):
        raise ConfigError("DISCORD_TOKEN is required")

    discord_cfg = DiscordConfig(
        token=str(token),
        application_id=_as_optional_int(
            _get_env_str(
                "DISCORD_APPLICATION_ID",
                "CLIENT_ID",
                fallback=_deep_get(raw, "discord", "application_id"),
            )
        ),
        message_content_intent=_as_bool(
            _get_env_str("MESSAGE_CONTENT_INTENT"),
            _as_bool(_deep_get(raw, "discord", "message_content_intent"), True),
        ),
        sync_commands_on_start=_as_bool(
            _get_env_str("SYNC_COMMANDS"),
            _as_bool(_deep_get(raw, "discord", "sync_commands_on_start"), True),
        ),
        status_text=str(_deep_get(raw, "discord", "status_text", default="Support tickets")),
    )

    defaults = TicketConfig()
    tickets_cfg = TicketConfig(
        category_name=str(_deep_get(raw, "tickets", "category_name", default=defaults.category_name)),
        channel_prefix=str(_deep_get(raw, "tickets", "channel_prefix", default=defaults.channel_prefix)),
        staff_role_names=_as_str_list(
            _get_env_str("STAFF_ROLE_NAMES", fallback=_deep_get(raw, "tickets", "staff_role_names")),
            defaults.staff_role_names,
        ),
        archive_channel_name=str(
            _deep_get(raw, "tickets", "archive_channel_name", default=defaults.archive_channel_name)
        ),
        close_delay_seconds=_as_int(
            _deep_get(raw, "tickets", "close_delay_seconds"), defaults.close_delay_seconds
        ),
        history_page_size=_as_int(_deep_get(raw, "tickets", "history_page_size"), defaults.history_page_size),
        creation_guard_seconds=_as_int(
            _deep_get(raw, "tickets", "creation_guard_seconds"), defaults.creation_guard_seconds
        ),
        default_welcome_title=str(
            _deep_get(raw, "tickets", "default_welcome_title", default=defaults.default_welcome_title)
        ),
        default_welcome_description=str(
            _deep_get(
                raw,
                "tickets",
                "default_welcome_description",
                default=defaults.default_welcome_description,
            )
        ),
    )

    storage_cfg = StorageConfig(
        guild_config_path=str(
            _get_env_str(
                "GUILD_CONFIG_PATH",
                fallback=_deep_get(raw, "storage", "guild_config_path", default="data/guild_config.json"),
            )
        ),
        transcripts_directory=str(
            _get_env_str(
                "TRANSCRIPTS_DIR",
                fallback=_deep_get(raw, "storage", "transcripts_directory", default="transcripts"),
            )
        ),
    )

    redis_cfg = RedisConfig(
        enabled=_as_bool(_get_env_str("REDIS_ENABLED"), _as_bool(_deep_get(raw, "redis", "enabled"), False)),
        url=str(_get_env_str("REDIS_URL", fallback=_deep_get(raw, "redis", "url", default="redis://localhost:6379/0"))),
    )

    logging_cfg = LoggingConfig(
        level=str(_get_env_str("LOG_LEVEL", fallback=_deep_get(raw, "logging", "level", default="INFO"))),
        directory=str(_deep_get(raw, "logging", "directory", default="logs")),
        file_name=str(_deep_get(raw, "logging", "file_name", default="bot.log")),
        max_bytes=_as_int(_deep_get(raw, "logging", "max_bytes"), 5_000_000),
        backup_count=_as_int(_deep_get(raw, "logging", "backup_count"), 5),
        json_console=_as_bool(_deep_get(raw, "logging", "json_console"), False),
    )

    keepalive_cfg = KeepAliveConfig(
        enabled=_as_bool(
            _get_env_str("KEEPALIVE_ENABLED"), _as_bool(_deep_get(raw, "keepalive", "enabled"), True)
        ),
        host=str(_deep_get(raw, "keepalive", "host", default="0.0.0.0")),
        port=_as_int(_get_env_str("PORT"), _as_int(_deep_get(raw, "keepalive", "port"), 3000)),
        liveness_text=str(_deep_get(raw, "keepalive", "liveness_text", default="Bot is alive!")),
    )

    enabled_extensions = [
        str(ext)
        for ext in list(
            _deep_get(
                raw,
                "enabled_extensions",
                default=["cogs.events", "cogs.tickets", "cogs.admin"],
            )
        )
    ]

    return AppConfig(
        discord=discord_cfg,
        tickets=tickets_cfg,
        storage=storage_cfg,
        redis=redis_cfg,
        logging=logging_cfg,
        keepalive=keepalive_cfg,
        enabled_extensions=enabled_extensions,
    )
