"""Sends a rendered message to every resolved recipient."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol

from gag_notifier.destinations import BotNameStore
from gag_notifier.models import DeliveryOutcome, Recipient, RenderedMessage

LOGGER = logging.getLogger(__name__)


class Transport(Protocol):
    """Single send operation towards the chat platform."""

    async def deliver(self, recipient: Recipient, message: RenderedMessage, username: str) -> None:
        ...


class Dispatcher:
    """Delivers sequentially; one failed server never stops the rest."""

    def __init__(self, transport: Transport, names: Optional[BotNameStore] = None) -> None:
        self._transport = transport
        self._names = names or BotNameStore()

    async def dispatch(
        self,
        category_key: str,
        recipients: Iterable[Recipient],
        message: RenderedMessage,
    ) -> List[DeliveryOutcome]:
        username = self._names.name_for(category_key)
        outcomes: List[DeliveryOutcome] = []
        for recipient in recipients:
            try:
                await self._transport.deliver(recipient, message, username)
            except Exception as e:
                LOGGER.warning(
                    "[deliver] %s -> server %s failed: %s",
                    category_key, recipient.destination_id, e,
                )
                outcomes.append(DeliveryOutcome(recipient=recipient, ok=False, error=str(e)))
                continue
            outcomes.append(DeliveryOutcome(recipient=recipient, ok=True))
        return outcomes
