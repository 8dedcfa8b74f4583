"""
Allowlist registry.

Content ids on the allowlist are force-published as ALLOW_FULL. Used for
original work (synthesis documents) that must stay public whatever its
declared category. add() and remove() are administrative; the evaluator
only ever reads.

Ids are stripped of surrounding whitespace on the way in, for every
operation, so " X " and "X" name the same entry.
"""

import threading
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Optional

import yaml

from corpusgate.core.exceptions import ConfigError, ValidationError
from corpusgate.core.logs import get_logger

log = get_logger(__name__)

ChangeHook = Callable[[str], None]


class AllowlistRegistry:
    """
    Set of always-public content ids.

    Membership is a frozenset replaced whole on every change, so a reader
    holding snapshot() never sees a half-applied update.

    add() and remove() accept a ``before_change`` hook, called with the
    normalized id under the lock before the new set is installed. If the
    hook raises, membership is unchanged.
    """

    def __init__(self, content_ids: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._members: FrozenSet[str] = frozenset(
            self._check_id(c) for c in (content_ids or ())
        )

    def add(self, content_id: str, before_change: Optional[ChangeHook] = None) -> bool:
        """Add an id. Returns False if it was already present."""
        content_id = self._check_id(content_id)
        with self._lock:
            if content_id in self._members:
                return False
            if before_change is not None:
                before_change(content_id)
            self._members = self._members | {content_id}
        log.info("allowlist_added", content_id=content_id)
        return True

    def remove(self, content_id: str, before_change: Optional[ChangeHook] = None) -> bool:
        """Remove an id. Returns False if it was not present."""
        content_id = self._check_id(content_id)
        with self._lock:
            if content_id not in self._members:
                return False
            if before_change is not None:
                before_change(content_id)
            self._members = self._members - {content_id}
        log.info("allowlist_removed", content_id=content_id)
        return True

    def contains(self, content_id: str) -> bool:
        if not isinstance(content_id, str):
            return False
        return content_id.strip() in self._members

    def snapshot(self) -> FrozenSet[str]:
        return self._members

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, content_id: str) -> bool:
        return self.contains(content_id)

    @classmethod
    def load(cls, path: Path) -> "AllowlistRegistry":
        """
        Load ids from a YAML file: either a plain list or a mapping with
        an ``allowlist`` list.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to load allowlist {path}: {exc}") from exc

        if data is None:
            data = []
        if isinstance(data, dict):
            data = data.get("allowlist", [])
        if not isinstance(data, list):
            raise ConfigError(f"Allowlist {path} must be a list of content ids")
        return cls(str(c) for c in data)

    @staticmethod
    def _check_id(content_id: str) -> str:
        if not isinstance(content_id, str) or not content_id.strip():
            raise ValidationError(
                "content_id must be a non-empty string",
                {"content_id": repr(content_id)},
            )
        return content_id.strip()
