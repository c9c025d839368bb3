"""Drives the main poll cycle and the current-event countdown."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Protocol, Set, Union

from gag_notifier.composer import Composer, build_views, next_occurrence
from gag_notifier.destinations import DestinationStore
from gag_notifier.detector import ChangeDetector, Outcome, extract_payload
from gag_notifier.dispatcher import Dispatcher
from gag_notifier.models import (
    EVENT_CATEGORY,
    STOCK_SOURCE,
    WEATHER_SOURCE,
    Category,
    CycleReport,
    WebhookCredentials,
)
from gag_notifier.resolver import resolve_recipients
from gag_notifier.snapshots import SnapshotStore

LOGGER = logging.getLogger(__name__)


class Upstream(Protocol):
    async def fetch_stock(self) -> Any: ...

    async def fetch_weather(self) -> Any: ...

    async def fetch_info(self) -> Any: ...

    async def fetch_current_event(self) -> Any: ...


def _unwrap(name: str, result: Any) -> Any:
    if isinstance(result, BaseException):
        LOGGER.error("[poll] fetching %s raised: %r", name, result)
        return None
    return result


class PollScheduler:
    """Owns the snapshot/config stores for the lifetime of the bot.

    ``run_cycle`` is guarded so overlapping invocations (timer plus a manual
    ``run_cycle_now``) are dropped instead of queued.
    """

    def __init__(
        self,
        upstream: Upstream,
        snapshots: SnapshotStore,
        destinations: DestinationStore,
        composer: Composer,
        dispatcher: Dispatcher,
        categories: Iterable[Category],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._upstream = upstream
        self._snapshots = snapshots
        self._destinations = destinations
        self._composer = composer
        self._dispatcher = dispatcher
        self._categories = list(categories)
        self._detector = ChangeDetector(snapshots)
        self._clock = clock
        self._running = False
        self._ticking = False
        self._tasks: Set[asyncio.Task] = set()
        self.next_event_ts: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._running

    # -- administrative surface ---------------------------------------------

    def get_current_snapshot(self, category: str) -> Any:
        return self._snapshots.get_payload(category)

    def on_configuration_change(
        self,
        destination_id: Union[int, str],
        category: str,
        channel_or_webhook: Union[int, str, WebhookCredentials],
    ) -> bool:
        return self._destinations.on_configuration_change(destination_id, category, channel_or_webhook)

    async def run_cycle_now(self) -> Optional[CycleReport]:
        return await self.run_cycle()

    # -- main cycle -----------------------------------------------------------

    async def run_cycle(self) -> Optional[CycleReport]:
        if self._running:
            return None
        self._running = True
        report = CycleReport()
        try:
            stock, weather, info = await asyncio.gather(
                self._upstream.fetch_stock(),
                self._upstream.fetch_weather(),
                self._upstream.fetch_info(),
                return_exceptions=True,
            )
            sources = {
                STOCK_SOURCE: _unwrap("stock", stock),
                WEATHER_SOURCE: _unwrap("weather", weather),
            }
            info = _unwrap("info", info)
            now = int(self._clock())
            for category in self._categories:
                try:
                    await self._process(category, sources, info if isinstance(info, list) else [], now, report)
                except Exception:
                    LOGGER.exception("[poll] %s failed this cycle", category.key)
        except Exception:
            LOGGER.exception("[poll] cycle aborted")
        finally:
            report.saved = self._snapshots.save()
            self._running = False
        if report.changed or report.failures:
            LOGGER.info(
                "[poll] changed=%s expired=%s sent=%d failed=%d",
                report.changed, report.expired,
                len(report.outcomes) - len(report.failures), len(report.failures),
            )
        return report

    async def _process(self, category: Category, sources, info: List[Any], now: int, report: CycleReport) -> None:
        payload = extract_payload(category, sources)
        outcome = self._detector.evaluate(category, payload, now)
        if outcome is Outcome.UNCHANGED:
            return
        if outcome is Outcome.CHANGED_EXPIRED:
            report.expired.append(category.key)
            return

        report.changed.append(category.key)
        for view in build_views(category, payload, now, info):
            message = self._composer.compose(category.key, view, now)
            recipients = resolve_recipients(category.key, message.mention_keys, self._destinations)
            report.outcomes.extend(await self._dispatcher.dispatch(category.key, recipients, message))

    # -- current-event countdown ----------------------------------------------

    def _schedule_next(self, current: Any, now: int) -> Optional[int]:
        start = current.get("start") if isinstance(current, dict) else None
        if not isinstance(start, dict) or start.get("minute") is None:
            return None
        try:
            minute = int(start["minute"])
        except (TypeError, ValueError):
            return None
        local_now = datetime.fromtimestamp(now).astimezone()
        return int(next_occurrence(minute, local_now).timestamp())

    async def tick_event(self) -> int:
        """One countdown step; returns the number of successful deliveries."""

        if self._ticking:
            return 0
        self._ticking = True
        try:
            now = int(self._clock())
            if self.next_event_ts is None:
                ev = await self._upstream.fetch_current_event()
                current = ev.get("current") if isinstance(ev, dict) else None
                if current:
                    self.next_event_ts = self._schedule_next(current, now)
                    LOGGER.info("[event] next event at %s", self.next_event_ts)
                return 0

            if now < self.next_event_ts:
                return 0

            ev = await self._upstream.fetch_current_event()
            current = ev.get("current") if isinstance(ev, dict) else None
            if not current:
                return 0
            sent = 0
            for view in build_views(EVENT_CATEGORY, current, now):
                message = self._composer.compose(EVENT_CATEGORY.key, view, now)
                recipients = resolve_recipients(EVENT_CATEGORY.key, (), self._destinations)
                outcomes = await self._dispatcher.dispatch(EVENT_CATEGORY.key, recipients, message)
                sent += sum(1 for o in outcomes if o.ok)
            # schedule from the next second so a start at :00 does not fire twice
            self.next_event_ts = self._schedule_next(current, now + 1)
            LOGGER.info("[event] sent %d, next event at %s", sent, self.next_event_ts)
            return sent
        except Exception:
            LOGGER.exception("[event] countdown step failed")
            return 0
        finally:
            self._ticking = False

    # -- timers -----------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _every(self, interval: float, step: Callable[[], Awaitable[Any]], is_closed: Callable[[], bool]) -> None:
        while not is_closed():
            self._spawn(step())
            await asyncio.sleep(interval)

    async def run_forever(
        self,
        poll_interval: float,
        event_interval: float,
        is_closed: Callable[[], bool] = lambda: False,
    ) -> None:
        """Run both timers until ``is_closed()`` turns true."""

        LOGGER.info("[poll] polling every %ss, event countdown every %ss", poll_interval, event_interval)
        await asyncio.gather(
            self._every(poll_interval, self.run_cycle, is_closed),
            self._every(event_interval, self.tick_event, is_closed),
        )
