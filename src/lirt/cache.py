"""Per-profile TTL cache for slow-changing reference data."""

from __future__ import annotations
import contextlib
import hashlib
import json
import logging
import re
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from .config import validate_profile_name
from .errors import ValidationError
from .files import PRIVATE_DIR_MODE, SECRET_FILE_MODE, atomic_write_text


logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_QUALIFIER_SEPARATOR = "--"

# Mutation name -> cache namespaces it makes stale. Mutating commands call
# ``invalidate_for`` with their name; nothing is invalidated implicitly.
INVALIDATIONS: dict[str, tuple[str, ...]] = {
    "issue.create": ("issues",),
    "issue.update": ("issues", "issue"),
    "issue.delete": ("issues", "issue"),
}


@dataclass(slots=True)
class CacheEntry:
    """Summary of one cached file, as listed by :meth:`CacheStore.entries`."""

    key: str
    fetched_at: datetime | None
    size: int


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def build_key(namespace: str, *parts: Any) -> str:
    """Return a cache key for ``namespace`` qualified by ``parts``.

    Unqualified keys are the bare namespace. Qualified keys append a short
    digest of the JSON-serialised parts so arbitrary filter values map to a
    safe file name.
    """
    if not _KEY_RE.match(namespace) or _QUALIFIER_SEPARATOR in namespace:
        raise ValidationError(f"Invalid cache namespace '{namespace}'")
    if not parts:
        return namespace
    serialized = json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:16]
    return f"{namespace}{_QUALIFIER_SEPARATOR}{digest}"


class CacheStore:
    """File-backed cache with one directory per profile and one file per key.

    Reads never raise for missing, unreadable or expired entries: they simply
    report a miss, so the cached path is never worse than bypassing the cache.
    """

    def __init__(
        self, root: Path, *, clock: Callable[[], datetime] = _utcnow
    ) -> None:
        """Create a cache rooted at ``root`` using ``clock`` for timestamps."""
        self.root = root
        self._clock = clock

    def profile_dir(self, profile: str) -> Path:
        """Return the directory holding ``profile``'s entries."""
        return self.root / validate_profile_name(profile)

    def _entry_path(self, profile: str, key: str) -> Path:
        if not _KEY_RE.match(key) or key in {".", ".."}:
            raise ValidationError(f"Invalid cache key '{key}'")
        return self.profile_dir(profile) / f"{key}.json"

    def get(self, profile: str, key: str, ttl: timedelta) -> tuple[Any, bool]:
        """Return ``(payload, True)`` for a fresh entry, else ``(None, False)``."""
        if ttl <= timedelta(0):
            return None, False
        path = self._entry_path(profile, key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None, False
        except OSError as exc:
            logger.debug("Cache read failed for %s: %s", path, exc)
            return None, False

        try:
            wrapper = json.loads(raw)
            fetched_at = datetime.fromisoformat(wrapper["fetched_at"])
            payload = wrapper["payload"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.debug("Ignoring corrupt cache entry %s: %s", path, exc)
            return None, False
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=UTC)

        if self._clock() - fetched_at > ttl:
            logger.debug("Cache entry %s/%s expired", profile, key)
            return None, False
        logger.debug("Cache hit for %s/%s", profile, key)
        return payload, True

    def set(self, profile: str, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` for ``profile``."""
        path = self._entry_path(profile, key)
        directory = path.parent
        directory.mkdir(parents=True, exist_ok=True, mode=PRIVATE_DIR_MODE)
        directory.chmod(PRIVATE_DIR_MODE)
        wrapper = {"fetched_at": self._clock().isoformat(), "payload": value}
        atomic_write_text(
            path, json.dumps(wrapper, ensure_ascii=False), mode=SECRET_FILE_MODE
        )

    def invalidate(self, profile: str, key: str) -> None:
        """Remove a single entry; missing entries are ignored."""
        with contextlib.suppress(FileNotFoundError):
            self._entry_path(profile, key).unlink()

    def invalidate_namespace(self, profile: str, namespace: str) -> int:
        """Remove the bare and every qualified key of ``namespace``."""
        build_key(namespace)
        directory = self.profile_dir(profile)
        if not directory.is_dir():
            return 0
        removed = 0
        targets = [directory / f"{namespace}.json"]
        targets.extend(directory.glob(f"{namespace}{_QUALIFIER_SEPARATOR}*.json"))
        for path in targets:
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
                removed += 1
        logger.debug("Invalidated %d entries in %s/%s", removed, profile, namespace)
        return removed

    def clear(self, profile: str) -> None:
        """Remove every entry belonging to ``profile``."""
        directory = self.profile_dir(profile)
        if directory.exists():
            shutil.rmtree(directory)

    def entries(self, profile: str) -> list[CacheEntry]:
        """List the entries stored for ``profile`` sorted by key."""
        directory = self.profile_dir(profile)
        if not directory.is_dir():
            return []
        result: list[CacheEntry] = []
        for path in sorted(directory.glob("*.json")):
            fetched_at: datetime | None = None
            try:
                wrapper = json.loads(path.read_text(encoding="utf-8"))
                fetched_at = datetime.fromisoformat(wrapper["fetched_at"])
            except (OSError, ValueError, KeyError, TypeError):
                fetched_at = None
            result.append(
                CacheEntry(
                    key=path.stem, fetched_at=fetched_at, size=path.stat().st_size
                )
            )
        return result


def invalidate_for(cache: CacheStore, profile: str, mutation: str) -> None:
    """Invalidate every namespace declared for ``mutation``."""
    try:
        namespaces: Iterable[str] = INVALIDATIONS[mutation]
    except KeyError as exc:
        raise KeyError(f"No cache invalidation declared for '{mutation}'") from exc
    for namespace in namespaces:
        cache.invalidate_namespace(profile, namespace)


__all__ = [
    "INVALIDATIONS",
    "CacheEntry",
    "CacheStore",
    "build_key",
    "invalidate_for",
]
