"""Slash commands and interactive components for server admins and members."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import List, Optional

import discord
from discord import app_commands

from gag_notifier.config import Settings
from gag_notifier.destinations import BotNameStore, DestinationStore
from gag_notifier.keys import normalize_key
from gag_notifier.lookups import BLURPLE, GREEN, Lookups
from gag_notifier.models import WebhookCredentials
from gag_notifier.role_panel import ITEMS_PER_PAGE, RolePanelSessions, page_count, page_items, plan_role_changes
from gag_notifier.scheduler import PollScheduler

LOGGER = logging.getLogger(__name__)

ROLE_OP_DELAY = 1.0
MAX_ROLE_RETRIES = 3

CHANNEL_COMMANDS = {
    "setseed": ("seed", "Set seed stock notification channel"),
    "setgear": ("gear", "Set gear stock notification channel"),
    "setcosmetic": ("cosmetic", "Set cosmetic stock notification channel"),
    "seteventstock": ("eventshop", "Set event stock notification channel"),
    "setegg": ("egg", "Set egg stock notification channel"),
    "setannounce": ("announcement", "Set announcement notification channel"),
    "setweather": ("weather", "Set weather notification channel"),
    "setmerchant": ("merchant", "Set traveling merchant notification channel"),
    "setcurrentevent": ("currentevent", "Set current event notification channel"),
}

CATEGORY_LABELS = {
    "seed": "Seed Stock",
    "gear": "Gear Stock",
    "cosmetic": "Cosmetic Stock",
    "eventshop": "Event Shop",
    "egg": "Egg Stock",
    "announcement": "Announcement",
    "weather": "Weather Change",
    "merchant": "Merchant Notification",
    "currentevent": "Current Event",
}

CATEGORY_CHOICES = [app_commands.Choice(name=label, value=key) for key, label in CATEGORY_LABELS.items()]
BOT_NAME_CHOICES = CATEGORY_CHOICES + [app_commands.Choice(name="Default", value="default")]
ROLE_TYPE_CHOICES = [
    app_commands.Choice(name="Notification Roles Only", value="notification"),
    app_commands.Choice(name="Item Roles Only", value="item"),
    app_commands.Choice(name="All Roles", value="all"),
]


@dataclass
class CommandContext:
    settings: Settings
    lookups: Lookups
    destinations: DestinationStore
    names: BotNameStore
    scheduler: PollScheduler
    panels: RolePanelSessions


def _is_admin(interaction: discord.Interaction) -> bool:
    perms = getattr(interaction.user, "guild_permissions", None)
    return bool(perms and perms.administrator)


def _is_owner(ctx: CommandContext, interaction: discord.Interaction) -> bool:
    return bool(ctx.settings.bot_owner_id) and interaction.user.id == ctx.settings.bot_owner_id


async def _deny(interaction: discord.Interaction) -> None:
    await interaction.response.send_message("🚫 Admin only.", ephemeral=True)


def _log_command(name: str, start: float) -> None:
    LOGGER.info("[slash] /%s responded in %dms", name, (time.monotonic() - start) * 1000)


def _summary(names: List[str], limit: int = 20) -> str:
    if len(names) > limit:
        return f"{', '.join(names[:limit])}... and {len(names) - limit} more"
    return ", ".join(names) or "None"


async def create_role_with_retry(guild: discord.Guild, name: str, color: int) -> Optional[discord.Role]:
    for attempt in range(1, MAX_ROLE_RETRIES + 1):
        await asyncio.sleep(ROLE_OP_DELAY * (random.random() + 0.5))
        try:
            return await guild.create_role(
                name=name, colour=discord.Colour(color), mentionable=True, reason="Setup",
            )
        except discord.HTTPException as e:
            LOGGER.warning("[slash] creating role %r failed (attempt %d): %s", name, attempt, e)
            if attempt < MAX_ROLE_RETRIES:
                await asyncio.sleep(2 ** attempt + random.random())
    return None


# -- role panel ----------------------------------------------------------------


def _select_options(ctx: CommandContext, names: List[str]) -> List[discord.SelectOption]:
    options = []
    for name in names:
        raw = ctx.lookups.emoji_for(name)
        options.append(discord.SelectOption(
            label=name[:100],
            value=normalize_key(name),
            emoji=discord.PartialEmoji.from_str(raw) if raw else None,
        ))
    return options


def _panel_embed(page: int, total: int) -> discord.Embed:
    return discord.Embed(
        title="🎨 Pick Item Roles",
        description=f"Page {page + 1} of {page_count(total)}",
        color=BLURPLE,
    )


class RolePageView(discord.ui.View):
    """One page of the ephemeral role picker."""

    def __init__(self, ctx: CommandContext, user_id: int, page: int) -> None:
        super().__init__(timeout=ctx.settings.role_panel_ttl_sec)
        self.ctx = ctx
        self.user_id = user_id
        self.page = page
        items = ctx.lookups.item_roles
        names = page_items(items, page)

        select = discord.ui.Select(
            custom_id="select_roles",
            placeholder="Choose your roles…",
            min_values=0,
            max_values=max(1, len(names)),
            options=_select_options(ctx, names),
        )
        select.callback = self._on_select
        self.add_item(select)

        prev_btn = discord.ui.Button(label="⬅️ Prev", style=discord.ButtonStyle.secondary, disabled=page == 0)
        prev_btn.callback = self._on_prev
        next_btn = discord.ui.Button(
            label="Next ➡️",
            style=discord.ButtonStyle.secondary,
            disabled=(page + 1) * ITEMS_PER_PAGE >= len(items),
        )
        next_btn.callback = self._on_next
        self.add_item(prev_btn)
        self.add_item(next_btn)
        self._select = select

    async def _turn(self, interaction: discord.Interaction, delta: int) -> None:
        total = len(self.ctx.lookups.item_roles)
        page = self.ctx.panels.move(self.user_id, delta, total)
        await interaction.response.edit_message(
            embed=_panel_embed(page, total),
            view=RolePageView(self.ctx, self.user_id, page),
        )

    async def _on_prev(self, interaction: discord.Interaction) -> None:
        await self._turn(interaction, -1)

    async def _on_next(self, interaction: discord.Interaction) -> None:
        await self._turn(interaction, 1)

    async def _on_select(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        member = interaction.user
        if guild is None or not isinstance(member, discord.Member):
            await interaction.response.send_message("💥 Must be in a guild.", ephemeral=True)
            return
        page = self.ctx.panels.get(self.user_id)
        if page is None:
            page = self.page
        names = page_items(self.ctx.lookups.item_roles, page)
        to_add, to_remove = plan_role_changes(
            names,
            set(self._select.values),
            {str(r.id) for r in member.roles},
            self.ctx.destinations.roles_for(str(guild.id)),
        )
        add_roles = [r for r in (guild.get_role(int(i)) for i in to_add) if r is not None]
        remove_roles = [r for r in (guild.get_role(int(i)) for i in to_remove) if r is not None]
        if add_roles:
            await member.add_roles(*add_roles, reason="Role panel")
        if remove_roles:
            await member.remove_roles(*remove_roles, reason="Role panel")
        await interaction.response.send_message(f"✅ Updated your roles for page {page + 1}.", ephemeral=True)


class RolePanelLauncher(discord.ui.View):
    """Persistent "Get Role" button posted by /rolepanel."""

    def __init__(self, ctx: CommandContext) -> None:
        super().__init__(timeout=None)
        self.ctx = ctx

    @discord.ui.button(label="Get Role", style=discord.ButtonStyle.primary, custom_id="open_role_panel")
    async def open_panel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        items = self.ctx.lookups.item_roles
        if not items:
            await interaction.response.send_message("⚠️ No item roles are configured.", ephemeral=True)
            return
        self.ctx.panels.set(interaction.user.id, 0)
        await interaction.response.send_message(
            embed=_panel_embed(0, len(items)),
            view=RolePageView(self.ctx, interaction.user.id, 0),
            ephemeral=True,
        )


# -- registration ----------------------------------------------------------------


def _channel_command(ctx: CommandContext, name: str, category: str, description: str) -> app_commands.Command:
    @app_commands.command(name=name, description=description)
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def set_channel(interaction: discord.Interaction) -> None:
        start = time.monotonic()
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        saved = ctx.scheduler.on_configuration_change(interaction.guild_id, category, interaction.channel_id)
        note = "" if saved else "\n⚠️ Saved in memory only, writing the config file failed."
        await interaction.response.send_message(f"✅ Channel set to <#{interaction.channel_id}>{note}", ephemeral=True)
        _log_command(name, start)
        await ctx.scheduler.run_cycle_now()

    return set_channel


def register_commands(tree: app_commands.CommandTree, ctx: CommandContext) -> None:
    for name, (category, description) in CHANNEL_COMMANDS.items():
        tree.add_command(_channel_command(ctx, name, category, description))

    @tree.command(name="guilds", description="Show bot/server stats")
    async def guilds_cmd(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            f"🤖 I'm in {len(interaction.client.guilds)} servers!", ephemeral=True,
        )

    @tree.command(name="setup-webhook", description="Create a webhook for a notification category")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def setup_webhook(
        interaction: discord.Interaction,
        category: app_commands.Choice[str],
        channel: discord.TextChannel,
    ) -> None:
        start = time.monotonic()
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        await interaction.response.defer(ephemeral=True)
        label = CATEGORY_LABELS.get(category.value, category.name)
        try:
            hook = await channel.create_webhook(name=label, reason="Via /setup-webhook")
        except discord.HTTPException as e:
            LOGGER.warning("[slash] webhook creation in %s failed: %s", channel.id, e)
            await interaction.followup.send("❌ Failed to create webhook. Check permissions.", ephemeral=True)
            return
        creds = WebhookCredentials(id=str(hook.id), token=hook.token, channel_id=str(channel.id))
        ctx.scheduler.on_configuration_change(interaction.guild_id, category.value, creds)
        await interaction.followup.send(f"✅ Webhook for **{label}** created in <#{channel.id}>.", ephemeral=True)
        _log_command("setup-webhook", start)
        await ctx.scheduler.run_cycle_now()

    @tree.command(name="remove-webhooks", description="Remove every webhook configured for this server")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def remove_webhooks(interaction: discord.Interaction) -> None:
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        gid = str(interaction.guild_id)
        removed = [CATEGORY_LABELS.get(c, c) for c in ctx.destinations.webhook_categories(gid)]
        if not removed:
            await interaction.response.send_message("ℹ️ No webhooks are configured here.", ephemeral=True)
            return
        ctx.destinations.remove_webhooks(gid)
        await interaction.response.send_message(
            f"🗑️ Webhook settings removed: {_summary(removed)}", ephemeral=True,
        )
        await ctx.scheduler.run_cycle_now()

    @tree.command(name="remove-channel", description="Stop notifications for a category in this server")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def remove_channel(interaction: discord.Interaction, category: app_commands.Choice[str]) -> None:
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        gid = str(interaction.guild_id)
        if ctx.destinations.channel_for(gid, category.value) is None:
            await interaction.response.send_message(f"ℹ️ **{category.name}** has no channel set.", ephemeral=True)
            return
        saved = ctx.destinations.clear_channel(gid, category.value)
        note = "" if saved else "\n⚠️ Removed in memory only, writing the config file failed."
        await interaction.response.send_message(f"🗑️ **{category.name}** notifications stopped.{note}", ephemeral=True)

    @tree.command(name="set-bot-name", description="Change bot display name for webhook messages")
    @app_commands.default_permissions(administrator=True)
    @app_commands.choices(category=BOT_NAME_CHOICES)
    async def set_bot_name(interaction: discord.Interaction, category: app_commands.Choice[str], name: str) -> None:
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        ctx.names.set_name(category.value, name)
        await interaction.response.send_message(
            f"✅ Bot name for **{category.name}** notifications set to: **{name}**", ephemeral=True,
        )

    @tree.command(name="setup-roles", description="Create notification + item roles")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def setup_roles(interaction: discord.Interaction) -> None:
        start = time.monotonic()
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        await interaction.response.defer(ephemeral=True)
        guild = interaction.guild
        gid = str(guild.id)
        created_n, existed_n, created_i, existed_i = [], [], [], []

        for key, name in ctx.lookups.role_config.items():
            if ctx.destinations.role_for(gid, key):
                existed_n.append(name)
                continue
            role = await create_role_with_retry(guild, name, BLURPLE)
            if role is not None:
                ctx.destinations.set_role(gid, key, role.id)
                created_n.append(name)

        for name in ctx.lookups.item_roles:
            key = normalize_key(name)
            if ctx.destinations.role_for(gid, key):
                existed_i.append(name)
                continue
            role = await create_role_with_retry(guild, name, GREEN)
            if role is not None:
                ctx.destinations.set_role(gid, key, role.id)
                created_i.append(name)

        em = discord.Embed(title="Setup Roles", color=GREEN)
        for title, names in (
            ("✅ Notification Roles Created", created_n),
            ("ℹ️ Notification Roles Already Existed", existed_n),
            ("✅ Item Roles Created", created_i),
            ("ℹ️ Item Roles Already Existed", existed_i),
        ):
            if names:
                em.add_field(name=title, value="\n".join(names)[:1024], inline=False)
        if not (created_n or existed_n or created_i or existed_i):
            em.description = "⚠️ No roles to create."
        await interaction.followup.send(embed=em, ephemeral=True)
        _log_command("setup-roles", start)

    @tree.command(name="remove-roles", description="Remove roles created by setup-roles command")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.rename(kind="type")
    @app_commands.choices(kind=ROLE_TYPE_CHOICES)
    async def remove_roles(interaction: discord.Interaction, kind: app_commands.Choice[str], confirm: bool) -> None:
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        if not confirm:
            await interaction.response.send_message(
                "❌ You must set `confirm:True` to proceed with role deletion.", ephemeral=True,
            )
            return
        await interaction.response.defer(ephemeral=True)
        guild = interaction.guild
        gid = str(guild.id)

        targets = []
        if kind.value in ("notification", "all"):
            targets.extend((key, name) for key, name in ctx.lookups.role_config.items())
        if kind.value in ("item", "all"):
            targets.extend((normalize_key(name), name) for name in ctx.lookups.item_roles)

        deleted, failed = [], []
        for key, name in targets:
            role_id = ctx.destinations.role_for(gid, key)
            if not role_id:
                continue
            role = guild.get_role(int(role_id))
            try:
                if role is not None:
                    await role.delete(reason="Removed via /remove-roles command")
                    deleted.append(name)
                ctx.destinations.remove_role(gid, key)
            except discord.HTTPException as e:
                LOGGER.warning("[slash] deleting role %s failed: %s", role_id, e)
                failed.append(name)
            await asyncio.sleep(ROLE_OP_DELAY / 2)

        embed = discord.Embed(title="🗑️ Role Removal Complete", color=GREEN if deleted else 0xED4245)
        if deleted:
            embed.add_field(name=f"✅ Successfully Deleted ({len(deleted)})", value=_summary(deleted), inline=False)
        if failed:
            embed.add_field(name=f"❌ Failed to Delete ({len(failed)})", value=_summary(failed), inline=False)
        if not deleted and not failed:
            embed.description = "ℹ️ No roles found to delete. They may have already been removed or never created."
        await interaction.followup.send(embed=embed, ephemeral=True)

    @tree.command(name="rolepanel", description="Post the self-assign role panel")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def rolepanel(interaction: discord.Interaction) -> None:
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        embed = discord.Embed(title="🎉 Role Panel", description='Click "Get Role"', color=BLURPLE)
        await interaction.response.send_message(embed=embed, view=RolePanelLauncher(ctx))

    @tree.command(name="ping-role", description="Ping a specific item role by name")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def ping_role(interaction: discord.Interaction, item: str, message: Optional[str] = None) -> None:
        if not _is_admin(interaction):
            await _deny(interaction)
            return
        key = normalize_key(item)
        items = ctx.lookups.item_roles
        if key not in ctx.lookups.item_keys():
            more = f", and {len(items) - 10} more..." if len(items) > 10 else ""
            await interaction.response.send_message(
                f'❌ Item "{item}" not found in the item roles list.\n\n'
                f"**Available items:** {', '.join(items[:10])}{more}",
                ephemeral=True,
            )
            return
        role_id = ctx.destinations.role_for(str(interaction.guild_id), key)
        role = interaction.guild.get_role(int(role_id)) if role_id else None
        if role is None:
            await interaction.response.send_message(
                f'❌ Role for "{item}" not found. Use `/setup-roles` first to create item roles.', ephemeral=True,
            )
            return
        content = f"{ctx.lookups.emoji_for(item)} {role.mention}".strip()
        if message:
            content += f"\n**Message:** {message}"
        await interaction.response.send_message(f"✅ Pinging {role.name} role...", ephemeral=True)
        await interaction.followup.send(content, allowed_mentions=discord.AllowedMentions(roles=True))

    @tree.command(name="list-items", description="Show all available items for role pinging")
    @app_commands.default_permissions(administrator=True)
    async def list_items(interaction: discord.Interaction) -> None:
        items = ctx.lookups.item_roles
        embed = discord.Embed(
            title="📋 All Available Items",
            color=BLURPLE,
            description=f"**Total: {len(items)} items**\n\nUse `/ping-role item:itemname` to ping any of these roles.",
        )
        chunks = [items[i:i + 20] for i in range(0, len(items), 20)]
        for n, chunk in enumerate(chunks[:3]):
            lines = [f"{ctx.lookups.emoji_for(name)} {name}".strip() for name in chunk]
            embed.add_field(
                name=f"Items {n * 20 + 1}-{n * 20 + len(chunk)}",
                value="\n".join(lines) or "None",
                inline=True,
            )
        if len(items) > 60:
            embed.add_field(name="\u200b", value=f"*...and {len(items) - 60} more items.*", inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @tree.command(name="snapshot", description="Download the last notified payload for a category")
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def snapshot_cmd(interaction: discord.Interaction, category: app_commands.Choice[str]) -> None:
        if not (_is_owner(ctx, interaction) or _is_admin(interaction)):
            await _deny(interaction)
            return
        payload = ctx.scheduler.get_current_snapshot(category.value)
        if payload is None:
            await interaction.response.send_message("No snapshot captured yet.", ephemeral=True)
            return
        data = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
        file = discord.File(fp=io.BytesIO(data), filename=f"{category.value}.json")
        await interaction.response.send_message(content=f"Latest **{category.name}** snapshot:", file=file, ephemeral=True)

    @tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        LOGGER.error("[slash] /%s failed", getattr(interaction.command, "name", "?"), exc_info=error)
        if interaction.response.is_done():
            await interaction.followup.send("💥 Something went wrong.", ephemeral=True)
        else:
            await interaction.response.send_message("💥 Something went wrong.", ephemeral=True)
