from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import discord
from discord import app_commands

from core.errors import PermissionDenied

F = TypeVar("F", bound=Callable[..., Any])


def is_guild_admin(member: discord.abc.User) -> bool:
    return isinstance(member, discord.Member) and member.guild_permissions.administrator


def guild_admin_only() -> Callable[[F], F]:
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None or not is_guild_admin(interaction.user):
            raise PermissionDenied()
        return True

    return app_commands.check(predicate)
