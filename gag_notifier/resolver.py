"""Works out who receives a category notification and which roles to ping."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from gag_notifier.destinations import DestinationStore
from gag_notifier.models import ChannelPost, Recipient, WebhookPost


def resolve_recipients(
    category_key: str,
    mention_keys: Sequence[str],
    store: DestinationStore,
    destinations: Optional[Iterable[str]] = None,
) -> List[Recipient]:
    """Build one :class:`Recipient` per server routed for ``category_key``.

    Servers without a channel for the category are skipped. Mentions are the
    role for each scope key in ``mention_keys`` order (category first, then
    item keys as they appear in the payload); keys without a role are
    dropped. A webhook for the category replaces direct channel posting.
    """

    recipients: List[Recipient] = []
    for destination_id in list(destinations if destinations is not None else store.destinations()):
        channel_id = store.channel_for(destination_id, category_key)
        if not channel_id:
            continue

        role_ids: List[str] = []
        for key in mention_keys:
            role_id = store.role_for(destination_id, key)
            if role_id and role_id not in role_ids:
                role_ids.append(role_id)

        webhook = store.webhook_for(destination_id, category_key)
        path = WebhookPost(webhook) if webhook is not None else ChannelPost(channel_id)
        recipients.append(Recipient(
            destination_id=destination_id,
            channel_id=channel_id,
            path=path,
            mention_role_ids=tuple(role_ids),
        ))
    return recipients
