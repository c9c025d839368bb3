"""Discord delivery: embeds, channel posts and webhook posts."""

from __future__ import annotations

import logging
from typing import Optional

import discord
from aiohttp import ClientSession

from gag_notifier.errors import DeliveryError
from gag_notifier.models import Recipient, RenderedMessage, WebhookPost

LOGGER = logging.getLogger(__name__)

ROLE_PINGS_ONLY = discord.AllowedMentions(everyone=False, users=False, roles=True)


def to_embed(message: RenderedMessage) -> discord.Embed:
    embed = discord.Embed(
        title=message.title or None,
        description=message.description or None,
        color=message.color,
    )
    if message.thumbnail:
        embed.set_thumbnail(url=message.thumbnail)
    for f in message.fields:
        embed.add_field(name=f.name, value=f.value, inline=f.inline)
    if message.image:
        embed.set_image(url=message.image)
    return embed


def invite_view(invite_url: Optional[str]) -> Optional[discord.ui.View]:
    if not invite_url:
        return None
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(label="Invite Bot", url=invite_url, style=discord.ButtonStyle.link))
    return view


class DiscordTransport:
    """Implements the dispatcher's transport port on top of discord.py."""

    def __init__(
        self,
        client: discord.Client,
        session: ClientSession,
        avatar_url: Optional[str] = None,
        invite_url: Optional[str] = None,
    ) -> None:
        self._client = client
        self._session = session
        self._avatar_url = avatar_url
        self._invite_url = invite_url

    async def _resolve_channel(self, channel_id: str):
        cid = int(channel_id)
        ch = self._client.get_channel(cid)
        if ch is None:
            ch = await self._client.fetch_channel(cid)
        return ch

    async def deliver(self, recipient: Recipient, message: RenderedMessage, username: str) -> None:
        embed = to_embed(message)
        content = recipient.mention_content
        try:
            if isinstance(recipient.path, WebhookPost):
                creds = recipient.path.credentials
                hook = discord.Webhook.partial(int(creds.id), creds.token, session=self._session)
                await hook.send(
                    content=content,
                    embed=embed,
                    username=username,
                    avatar_url=self._avatar_url,
                    allowed_mentions=ROLE_PINGS_ONLY,
                )
                return

            ch = await self._resolve_channel(recipient.path.channel_id)
            if not isinstance(ch, discord.abc.Messageable):
                raise DeliveryError(f"channel {recipient.channel_id} cannot receive messages")
            kwargs = {}
            view = invite_view(self._invite_url)
            if view is not None:
                kwargs["view"] = view
            await ch.send(content=content, embed=embed, allowed_mentions=ROLE_PINGS_ONLY, **kwargs)
        except discord.DiscordException as e:
            raise DeliveryError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise DeliveryError(f"bad id in config: {e}") from e
