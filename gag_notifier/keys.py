"""Key normalization shared by emoji, role and color lookups."""

from __future__ import annotations

import re

_NON_KEY_CHARS = re.compile(r"[^a-z0-9]+")


def normalize_key(raw: str) -> str:
    """Return the lookup key for a display name.

    ``"Sugar Apple"`` and ``" sugar-apple "`` both map to ``"sugar_apple"``.
    """

    s = (raw or "").strip().lower()
    return _NON_KEY_CHARS.sub("_", s).strip("_")
