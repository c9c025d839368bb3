"""Per-server routing tables: channels, webhooks and mention roles."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from gag_notifier.errors import PersistenceError
from gag_notifier.models import WebhookCredentials
from gag_notifier.storage import load_json, save_json

LOGGER = logging.getLogger(__name__)

CHANNELS_FILE = "channels.json"
WEBHOOKS_FILE = "webhooks.json"
ROLES_FILE = "roles.json"
BOT_NAMES_FILE = "bot_names.json"

DEFAULT_BOT_NAME = "GAG Bot"

Table = Dict[str, Dict[str, Any]]

LEGACY_CATEGORY_KEYS = {"current_event": "currentevent", "jandel": "merchant"}


def _category_key(raw: str) -> str:
    return LEGACY_CATEGORY_KEYS.get(raw, raw)


def _channel_key(raw: str) -> str:
    # older files stored "seed_channel_id" style keys
    key = raw[: -len("_channel_id")] if raw.endswith("_channel_id") else raw
    return _category_key(key)


def _load_table(path: Optional[Path]) -> Table:
    if path is None:
        return {}
    data = load_json(path, {})
    if not isinstance(data, dict):
        LOGGER.warning("[store] %s is not an object, starting empty", path)
        return {}
    return {str(k): dict(v) for k, v in data.items() if isinstance(v, dict)}


class DestinationStore:
    """Owns the channel, webhook and role tables for every server.

    Every mutating method writes its table to disk before returning.
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._dir = data_dir
        self._channels: Table = {}
        self._webhooks: Table = {}
        self._roles: Table = {}

    def _path(self, filename: str) -> Optional[Path]:
        return None if self._dir is None else self._dir / filename

    def load(self) -> None:
        channels = _load_table(self._path(CHANNELS_FILE))
        self._channels = {
            gid: {_channel_key(k): str(v) for k, v in chs.items() if v}
            for gid, chs in channels.items()
        }
        self._webhooks = {
            gid: {_category_key(k): v for k, v in hooks.items()}
            for gid, hooks in _load_table(self._path(WEBHOOKS_FILE)).items()
        }
        self._roles = {
            gid: {_category_key(k): str(v) for k, v in roles.items() if v}
            for gid, roles in _load_table(self._path(ROLES_FILE)).items()
        }
        LOGGER.info("[store] loaded config for %d server(s)", len(self.destinations()))

    def _save(self, filename: str, table: Table) -> bool:
        path = self._path(filename)
        if path is None:
            return True
        try:
            save_json(path, table)
        except PersistenceError as e:
            LOGGER.error("[store] %s", e)
            return False
        return True

    # -- reads -------------------------------------------------------------

    def destinations(self) -> List[str]:
        ids = list(self._channels)
        ids.extend(g for g in self._webhooks if g not in ids)
        ids.extend(g for g in self._roles if g not in ids)
        return ids

    def channel_for(self, destination_id: str, category: str) -> Optional[str]:
        return self._channels.get(destination_id, {}).get(category)

    def webhook_for(self, destination_id: str, category: str) -> Optional[WebhookCredentials]:
        return WebhookCredentials.from_raw(self._webhooks.get(destination_id, {}).get(category))

    def role_for(self, destination_id: str, scope_key: str) -> Optional[str]:
        return self._roles.get(destination_id, {}).get(scope_key)

    def roles_for(self, destination_id: str) -> Dict[str, str]:
        return dict(self._roles.get(destination_id, {}))

    def channels_for(self, destination_id: str) -> Dict[str, str]:
        return dict(self._channels.get(destination_id, {}))

    def webhook_categories(self, destination_id: str) -> List[str]:
        return list(self._webhooks.get(destination_id, {}))

    # -- writes ------------------------------------------------------------

    def set_channel(self, destination_id: str, category: str, channel_id: Union[int, str]) -> bool:
        self._channels.setdefault(str(destination_id), {})[category] = str(channel_id)
        return self._save(CHANNELS_FILE, self._channels)

    def clear_channel(self, destination_id: str, category: str) -> bool:
        chs = self._channels.get(str(destination_id))
        if not chs or chs.pop(category, None) is None:
            return True
        return self._save(CHANNELS_FILE, self._channels)

    def set_webhook(self, destination_id: str, category: str, credentials: WebhookCredentials) -> bool:
        gid = str(destination_id)
        self._webhooks.setdefault(gid, {})[category] = credentials.to_raw()
        ok = self._save(WEBHOOKS_FILE, self._webhooks)
        # a webhook alone is not routable: the category needs a channel too
        if credentials.channel_id and not self.channel_for(gid, category):
            ok = self.set_channel(gid, category, credentials.channel_id) and ok
        return ok

    def remove_webhooks(self, destination_id: str) -> bool:
        if self._webhooks.pop(str(destination_id), None) is None:
            return True
        return self._save(WEBHOOKS_FILE, self._webhooks)

    def set_role(self, destination_id: str, scope_key: str, role_id: Union[int, str]) -> bool:
        self._roles.setdefault(str(destination_id), {})[scope_key] = str(role_id)
        return self._save(ROLES_FILE, self._roles)

    def remove_role(self, destination_id: str, scope_key: str) -> bool:
        roles = self._roles.get(str(destination_id))
        if not roles or roles.pop(scope_key, None) is None:
            return True
        return self._save(ROLES_FILE, self._roles)

    def on_configuration_change(
        self,
        destination_id: Union[int, str],
        category: str,
        channel_or_webhook: Union[int, str, WebhookCredentials],
    ) -> bool:
        """Route ``category`` for a server to a channel id or a webhook."""

        if isinstance(channel_or_webhook, WebhookCredentials):
            return self.set_webhook(str(destination_id), category, channel_or_webhook)
        return self.set_channel(str(destination_id), category, channel_or_webhook)


class BotNameStore:
    """Display name used for webhook posts, per category with a default."""

    def __init__(self, data_dir: Optional[Path] = None, initial: Optional[Dict[str, str]] = None) -> None:
        self._path = None if data_dir is None else data_dir / BOT_NAMES_FILE
        self._names: Dict[str, str] = dict(initial or {})

    def load(self) -> None:
        if self._path is None:
            return
        data = load_json(self._path, {})
        if isinstance(data, dict):
            self._names.update({_category_key(str(k)): str(v) for k, v in data.items() if v})

    def name_for(self, category: str) -> str:
        return self._names.get(category) or self._names.get("default") or DEFAULT_BOT_NAME

    def set_name(self, category: str, name: str) -> bool:
        self._names[category] = name
        if self._path is None:
            return True
        try:
            save_json(self._path, self._names)
        except PersistenceError as e:
            LOGGER.error("[store] %s", e)
            return False
        return True
