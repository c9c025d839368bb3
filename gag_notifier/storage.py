"""JSON file persistence for state and configuration tables."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Union

from gag_notifier.errors import PersistenceError

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_json(path: PathLike, default: Any) -> Any:
    """Read ``path`` as JSON, returning ``default`` when missing or unreadable."""

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except (OSError, ValueError) as e:
        LOGGER.warning("[store] failed to read %s: %s", path, e)
        return default


def save_json(path: PathLike, data: Any) -> None:
    """Atomically write ``data`` to ``path``.

    The file is written next to the target and moved into place, so a crash
    mid-write leaves the previous contents intact.
    """

    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
    except (OSError, TypeError, ValueError) as e:
        raise PersistenceError(f"cannot write {target}: {e}") from e
