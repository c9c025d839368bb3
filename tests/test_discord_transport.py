from __future__ import annotations

import asyncio
from types import SimpleNamespace

import discord
import pytest

from gag_notifier.discord_transport import ROLE_PINGS_ONLY, DiscordTransport, to_embed
from gag_notifier.errors import DeliveryError
from gag_notifier.models import ChannelPost, EmbedField, Recipient, RenderedMessage, WebhookCredentials, WebhookPost

MESSAGE = RenderedMessage(
    title="Seed Stock",
    description="🥕 Carrot x3",
    color=0x2ECC71,
    thumbnail="https://img/seed.png",
    image="https://img/banner.png",
    fields=(EmbedField(name="\u200b", value="<t:1:R>"),),
)


class FakeChannel(discord.abc.Messageable):
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def _get_channel(self):
        return self

    async def send(self, **kwargs):
        self.sent.append(kwargs)


class FakeClient:
    def __init__(self, channel) -> None:
        self.channel = channel

    def get_channel(self, cid: int):
        return self.channel if cid == 11 else None

    async def fetch_channel(self, cid: int):
        raise discord.DiscordException("unknown channel")


def test_to_embed() -> None:
    embed = to_embed(MESSAGE)
    assert embed.title == "Seed Stock"
    assert embed.description == "🥕 Carrot x3"
    assert embed.colour.value == 0x2ECC71
    assert embed.thumbnail.url == "https://img/seed.png"
    assert embed.image.url == "https://img/banner.png"
    assert embed.fields[0].value == "<t:1:R>"


def test_channel_post_with_mentions() -> None:
    channel = FakeChannel()
    transport = DiscordTransport(FakeClient(channel), session=None)
    recipient = Recipient("g1", "11", ChannelPost("11"), ("5", "6"))

    asyncio.run(transport.deliver(recipient, MESSAGE, "GAG Bot"))

    (sent,) = channel.sent
    assert sent["content"] == "<@&5> <@&6>"
    assert sent["embed"].title == "Seed Stock"
    assert sent["allowed_mentions"] is ROLE_PINGS_ONLY


def test_unknown_channel_raises_delivery_error() -> None:
    transport = DiscordTransport(FakeClient(FakeChannel()), session=None)
    recipient = Recipient("g1", "12", ChannelPost("12"))
    with pytest.raises(DeliveryError):
        asyncio.run(transport.deliver(recipient, MESSAGE, "GAG Bot"))


def test_bad_channel_id_raises_delivery_error() -> None:
    transport = DiscordTransport(FakeClient(FakeChannel()), session=None)
    recipient = Recipient("g1", "abc", ChannelPost("abc"))
    with pytest.raises(DeliveryError):
        asyncio.run(transport.deliver(recipient, MESSAGE, "GAG Bot"))


class FakeWebhook:
    def __init__(self, error: Exception = None) -> None:
        self.error = error
        self.created = []
        self.sent = []

    def partial(self, id, token, *, session=None):
        self.created.append((id, token, session))
        return self

    async def send(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.sent.append(kwargs)


WEBHOOK_RECIPIENT = Recipient(
    "g1",
    "11",
    WebhookPost(WebhookCredentials(id="900", token="tok", channel_id="11")),
    ("5",),
)


def test_webhook_post_skips_the_channel(monkeypatch) -> None:
    hook = FakeWebhook()
    monkeypatch.setattr(discord.Webhook, "partial", hook.partial)
    channel = FakeChannel()
    session = object()
    transport = DiscordTransport(
        FakeClient(channel), session=session, avatar_url="https://img/avatar.png", invite_url="https://invite",
    )

    asyncio.run(transport.deliver(WEBHOOK_RECIPIENT, MESSAGE, "Seed Watcher"))

    assert hook.created == [(900, "tok", session)]
    (sent,) = hook.sent
    assert sent["username"] == "Seed Watcher"
    assert sent["avatar_url"] == "https://img/avatar.png"
    assert sent["content"] == "<@&5>"
    assert sent["allowed_mentions"] is ROLE_PINGS_ONLY
    assert sent["embed"].title == "Seed Stock"
    assert "view" not in sent
    assert channel.sent == []


def test_webhook_http_error_raises_delivery_error(monkeypatch) -> None:
    failure = discord.HTTPException(SimpleNamespace(status=404, reason="Not Found"), "Unknown Webhook")
    hook = FakeWebhook(error=failure)
    monkeypatch.setattr(discord.Webhook, "partial", hook.partial)
    channel = FakeChannel()
    transport = DiscordTransport(FakeClient(channel), session=None)

    with pytest.raises(DeliveryError):
        asyncio.run(transport.deliver(WEBHOOK_RECIPIENT, MESSAGE, "GAG Bot"))
    assert channel.sent == []
