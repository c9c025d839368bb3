"""Paging and role-diff logic behind the self-assignment panel."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Collection, Dict, List, Mapping, Optional, Sequence, Tuple

from gag_notifier.keys import normalize_key

ITEMS_PER_PAGE = 10


def page_count(total: int, per_page: int = ITEMS_PER_PAGE) -> int:
    return max(1, math.ceil(total / per_page))


def clamp_page(page: int, total: int, per_page: int = ITEMS_PER_PAGE) -> int:
    return min(max(page, 0), page_count(total, per_page) - 1)


def page_items(items: Sequence[str], page: int, per_page: int = ITEMS_PER_PAGE) -> List[str]:
    page = clamp_page(page, len(items), per_page)
    start = page * per_page
    return list(items[start:start + per_page])


@dataclass
class _Session:
    page: int
    touched: float


class RolePanelSessions:
    """Current page per user, dropped after ``ttl`` seconds of inactivity."""

    def __init__(self, ttl: float = 900, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._sessions: Dict[int, _Session] = {}

    def __len__(self) -> int:
        self.evict()
        return len(self._sessions)

    def evict(self) -> None:
        cutoff = self._clock() - self._ttl
        for user_id in [u for u, s in self._sessions.items() if s.touched < cutoff]:
            del self._sessions[user_id]

    def get(self, user_id: int) -> Optional[int]:
        self.evict()
        session = self._sessions.get(user_id)
        if session is None:
            return None
        session.touched = self._clock()
        return session.page

    def set(self, user_id: int, page: int) -> None:
        self.evict()
        self._sessions[user_id] = _Session(page=page, touched=self._clock())

    def move(self, user_id: int, delta: int, total: int) -> int:
        page = clamp_page((self.get(user_id) or 0) + delta, total)
        self.set(user_id, page)
        return page


def plan_role_changes(
    page_names: Sequence[str],
    selected: Collection[str],
    held_role_ids: Collection[str],
    role_table: Mapping[str, str],
) -> Tuple[List[str], List[str]]:
    """Return ``(to_add, to_remove)`` role ids for one panel page.

    ``selected`` holds normalized keys picked in the menu. Only roles listed
    on the page are touched; names without a configured role are skipped.
    """

    to_add: List[str] = []
    to_remove: List[str] = []
    for name in page_names:
        key = normalize_key(name)
        role_id = role_table.get(key)
        if not role_id:
            continue
        if key in selected:
            if role_id not in held_role_ids:
                to_add.append(role_id)
        elif role_id in held_role_ids:
            to_remove.append(role_id)
    return to_add, to_remove
