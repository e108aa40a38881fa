from __future__ import annotations

import logging
from datetime import tzinfo
from typing import List, Optional, Sequence, Set

from pydantic import TypeAdapter, ValidationError

from .models import TargetEntity
from .storage import BlobStore
from .window import as_aware, local_timezone

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
# The schema version is part of the key so a future layout change reads as "missing".
STORAGE_KEY = f"target-locker:v{SCHEMA_VERSION}:targets"

_TARGETS_ADAPTER = TypeAdapter(List[TargetEntity])


# PUBLIC_INTERFACE
class TargetRepository:
    """
    Load/save the whole target collection as one JSON array in a blob store.

    There is no caching and no merge: save overwrites, load reads back
    whatever was last saved.
    """

    def __init__(self, store: BlobStore, key: str = STORAGE_KEY, tz: Optional[tzinfo] = None) -> None:
        self._store = store
        self._key = key
        self._tz = tz

    def load(self) -> List[TargetEntity]:
        """
        Return the stored collection, or an empty list when the blob is
        missing, unreadable, not JSON, not an array, or holds invalid targets.
        Never raises.
        """
        try:
            blob = self._store.get(self._key)
        except Exception:
            logger.warning("Could not read %r from %s store; starting empty", self._key, self._store.name, exc_info=True)
            return []
        if not blob:
            return []

        try:
            targets = _TARGETS_ADAPTER.validate_json(blob)
        except ValidationError as e:
            logger.warning("Discarding unreadable targets under %r: %s", self._key, e.error_count())
            return []

        tz = self._tz or local_timezone()
        seen: Set[str] = set()
        result: List[TargetEntity] = []
        for t in targets:
            if t["id"] in seen:
                logger.warning("Dropping duplicate target id %s", t["id"])
                continue
            seen.add(t["id"])
            t["due_at"] = as_aware(t["due_at"], tz)
            t["created_at"] = as_aware(t["created_at"], tz)
            if t["completed_at"] is not None:
                t["completed_at"] = as_aware(t["completed_at"], tz)
            result.append(t)
        return result

    def save(self, targets: Sequence[TargetEntity]) -> None:
        """Overwrite the stored collection with targets."""
        blob = _TARGETS_ADAPTER.dump_json(list(targets)).decode("utf-8")
        self._store.set(self._key, blob)
        logger.debug("Saved %d targets to %s store", len(targets), self._store.name)
