import asyncio
import logging
import sys
from typing import Optional

import discord
from discord import Intents, app_commands
from aiohttp import ClientSession, web

from gag_notifier.commands import CommandContext, RolePanelLauncher, register_commands
from gag_notifier.composer import Composer
from gag_notifier.config import Settings, load_settings
from gag_notifier.destinations import BotNameStore, DestinationStore
from gag_notifier.discord_transport import DiscordTransport
from gag_notifier.dispatcher import Dispatcher
from gag_notifier.lookups import load_lookups
from gag_notifier.models import load_categories
from gag_notifier.role_panel import RolePanelSessions
from gag_notifier.scheduler import PollScheduler
from gag_notifier.snapshots import SnapshotStore
from gag_notifier.storage import load_json
from gag_notifier.upstream import UpstreamClient

LOGGER = logging.getLogger("gag_notifier.bot")

LAST_STATE_FILE = "last_state.json"


class NotifierBot(discord.Client):
    def __init__(self, settings: Settings):
        super().__init__(intents=Intents.default())
        self.settings = settings
        self.tree = app_commands.CommandTree(self)
        self.http_session: Optional[ClientSession] = None
        self.scheduler: Optional[PollScheduler] = None
        self._poller: Optional[asyncio.Task] = None

    async def setup_hook(self):
        s = self.settings
        self.http_session = ClientSession()

        snapshots = SnapshotStore(s.data_path(LAST_STATE_FILE))
        snapshots.load()
        destinations = DestinationStore(s.data_dir)
        destinations.load()
        names = BotNameStore(s.data_dir)
        names.load()
        lookups = load_lookups(s)
        overrides = load_json(s.stock_category_file, {}) if s.stock_category_file else {}

        upstream = UpstreamClient(
            self.http_session,
            stock_url=s.stock_api_url,
            weather_url=s.weather_api_url,
            info_url=s.info_api_url,
            event_url=s.current_event_api_url,
            api_key=s.upstream_api_key,
            retries=s.fetch_retries,
            backoff=s.fetch_backoff_sec,
        )
        transport = DiscordTransport(self, self.http_session, avatar_url=s.webhook_avatar_url, invite_url=s.invite_url)
        self.scheduler = PollScheduler(
            upstream=upstream,
            snapshots=snapshots,
            destinations=destinations,
            composer=Composer(lookups, s.weather_image_api_url),
            dispatcher=Dispatcher(transport, names),
            categories=load_categories(overrides if isinstance(overrides, dict) else {}),
        )

        ctx = CommandContext(
            settings=s,
            lookups=lookups,
            destinations=destinations,
            names=names,
            scheduler=self.scheduler,
            panels=RolePanelSessions(ttl=s.role_panel_ttl_sec),
        )
        register_commands(self.tree, ctx)
        # keeps "Get Role" buttons on old panel messages working after a restart
        self.add_view(RolePanelLauncher(ctx))

    async def on_ready(self):
        LOGGER.info("Logged in as %s (ID: %s)", self.user, self.user.id)
        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name="Stocks & Weathers"),
        )
        try:
            await self.tree.sync()
            LOGGER.info("[slash] commands synced")
        except discord.HTTPException as e:
            LOGGER.error("[slash] sync failed: %s", e)
        if self._poller is None:
            self._poller = asyncio.create_task(self.scheduler.run_forever(
                self.settings.poll_interval_sec,
                self.settings.event_interval_sec,
                is_closed=self.is_closed,
            ))

    async def close(self):
        if self._poller is not None:
            self._poller.cancel()
        await super().close()
        if self.http_session is not None:
            await self.http_session.close()


def make_app(bot: NotifierBot):
    app = web.Application()
    async def root(_):
        return web.Response(text="ok")
    async def health(_):
        if bot.is_closed():
            return web.Response(text="closed", status=503)
        return web.Response(text="ok")
    app.router.add_get("/", root)
    app.router.add_get("/healthz", health)
    return app


async def run_http_and_bot(settings: Settings):
    bot = NotifierBot(settings)
    runner = web.AppRunner(make_app(bot))
    await runner.setup()
    site = web.TCPSite(runner, host="0.0.0.0", port=settings.port)
    await site.start()
    LOGGER.info("[http] listening on 0.0.0.0:%s", settings.port)
    try:
        async with bot:
            await bot.start(settings.discord_token)
    finally:
        await runner.cleanup()


def main():
    settings = load_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    discord.utils.setup_logging(level=level if isinstance(level, int) else logging.INFO)
    if not settings.discord_token:
        LOGGER.error("DISCORD_TOKEN not set")
        sys.exit(1)
    try:
        asyncio.run(run_http_and_bot(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
