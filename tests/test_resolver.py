from __future__ import annotations

from gag_notifier.destinations import DestinationStore
from gag_notifier.models import ChannelPost, WebhookCredentials, WebhookPost
from gag_notifier.resolver import resolve_recipients


def _store() -> DestinationStore:
    store = DestinationStore()
    store.set_channel("g1", "seed", 100)
    store.set_role("g1", "seed", "R0")
    store.set_role("g1", "x", "R1")
    store.set_role("g1", "y", "R2")
    return store


def test_category_role_first_then_payload_order() -> None:
    recipients = resolve_recipients("seed", ["seed", "y", "x"], _store())
    assert len(recipients) == 1
    assert recipients[0].mention_role_ids == ("R0", "R2", "R1")
    assert recipients[0].mention_content == "<@&R0> <@&R2> <@&R1>"


def test_server_without_channel_is_skipped() -> None:
    store = _store()
    store.set_role("g2", "seed", "R9")
    store.set_channel("g3", "gear", 300)

    recipients = resolve_recipients("seed", ["seed"], store)
    assert [r.destination_id for r in recipients] == ["g1"]


def test_unconfigured_roles_are_dropped() -> None:
    store = DestinationStore()
    store.set_channel("g1", "seed", 100)
    recipients = resolve_recipients("seed", ["seed", "carrot"], store)
    assert recipients[0].mention_role_ids == ()
    assert recipients[0].mention_content is None


def test_webhook_takes_precedence_over_channel() -> None:
    store = _store()
    store.set_webhook("g1", "seed", WebhookCredentials(id="1", token="t", channel_id="555"))

    (recipient,) = resolve_recipients("seed", ["seed"], store)
    assert isinstance(recipient.path, WebhookPost)
    assert recipient.path.credentials.token == "t"
    # the existing channel was not overwritten by the webhook's channel
    assert recipient.channel_id == "100"


def test_channel_post_when_no_webhook() -> None:
    (recipient,) = resolve_recipients("seed", [], _store())
    assert recipient.path == ChannelPost("100")


def test_webhook_for_other_category_does_not_apply() -> None:
    store = _store()
    store.set_webhook("g1", "gear", WebhookCredentials(id="1", token="t", channel_id="555"))
    (recipient,) = resolve_recipients("seed", ["seed"], store)
    assert isinstance(recipient.path, ChannelPost)


def test_cleared_channel_stops_delivery_even_with_webhook() -> None:
    store = _store()
    store.set_webhook("g1", "seed", WebhookCredentials(id="1", token="t", channel_id="100"))
    store.clear_channel("g1", "seed")

    assert resolve_recipients("seed", ["seed"], store) == []
