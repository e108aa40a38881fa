"""
Target lifecycle engine.

States per target: draft -> locked -> completed, with unlock (locked -> draft)
allowed only before the target's due day begins, and delete allowed from
any state. Every operation either applies fully (mutate, save, notify observers)
or raises a TargetRejected subclass leaving the collection untouched.

Due times are validated against the window computed from the current time
at the moment of the write, not the window that was current at creation.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, time, timedelta
from typing import Callable, Iterable, List, Optional

from . import window
from .errors import InvalidTitle, TargetCompleted, TargetLocked, TargetNotFound, TargetRejected, TooLateToUnlock
from .models import TargetEntity, is_active
from .repositories import TargetRepository

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Target"

CollectionListener = Callable[[List[TargetEntity]], None]
CompletionListener = Callable[[TargetEntity], None]

_UNSET = object()


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    stripped = notes.strip()
    return stripped or None


# PUBLIC_INTERFACE
class TargetLifecycle:
    """
    Owns the target collection and funnels every change through one method
    per user intent. Returned targets are copies; mutating them has no effect.
    """

    def __init__(
        self,
        repository: TargetRepository,
        clock: window.Clock,
        targets: Optional[Iterable[TargetEntity]] = None,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._targets: List[TargetEntity] = list(targets) if targets is not None else repository.load()
        self._listeners: List[CollectionListener] = []
        self._completion_listeners: List[CompletionListener] = []

    # Observers

    def subscribe(self, listener: CollectionListener) -> None:
        """Call listener with the new collection after every accepted mutation."""
        self._listeners.append(listener)

    def on_completed(self, listener: CompletionListener) -> None:
        """Call listener with the target each time one is completed."""
        self._completion_listeners.append(listener)

    # Reads

    @property
    def targets(self) -> List[TargetEntity]:
        return [t.copy() for t in self._targets]

    def get(self, target_id: str) -> TargetEntity:
        return self._find(target_id).copy()

    def active(self, now: Optional[datetime] = None) -> List[TargetEntity]:
        now = now or self._clock.now()
        return [t.copy() for t in self._targets if is_active(t, now)]

    def now(self) -> datetime:
        return self._clock.now()

    # Intents

    def create(self, title: str, due_at: datetime, notes: Optional[str] = None) -> TargetEntity:
        """
        Insert a new draft target at the head of the collection.

        Raises:
            OutOfWindow: if due_at is not within tomorrow.
        """
        now = self._clock.now()
        due_at = window.as_aware(due_at, now.tzinfo)
        window.validate(due_at, now)

        existing = {t["id"] for t in self._targets}
        target_id = uuid.uuid4().hex
        while target_id in existing:
            target_id = uuid.uuid4().hex

        target: TargetEntity = {
            "id": target_id,
            "title": (title or "").strip() or DEFAULT_TITLE,
            "notes": _clean_notes(notes),
            "due_at": due_at,
            "locked": False,
            "completed_at": None,
            "created_at": now,
        }
        self._commit([target, *self._targets], "created", target)
        return target.copy()

    def edit(self, target_id: str, title=_UNSET, notes=_UNSET, due_at=_UNSET) -> TargetEntity:
        """
        Replace any of title, notes and due_at in one step. Every check runs
        before anything changes, so a rejected field leaves all fields as they were.
        With no fields the target must still be editable; nothing is saved.
        """
        current = self._editable(target_id)
        updated = current.copy()
        if title is not _UNSET:
            cleaned = (title or "").strip()
            if not cleaned:
                raise InvalidTitle(target_id=target_id)
            updated["title"] = cleaned
        if notes is not _UNSET:
            updated["notes"] = _clean_notes(notes)
        if due_at is not _UNSET:
            now = self._clock.now()
            due_at = window.as_aware(due_at, now.tzinfo)
            try:
                window.validate(due_at, now)
            except TargetRejected as e:
                e.target_id = target_id
                raise
            updated["due_at"] = due_at
        if updated == current:
            return updated
        return self._replace(updated, "edited")

    def update_title(self, target_id: str, title: str) -> TargetEntity:
        return self.edit(target_id, title=title)

    def update_notes(self, target_id: str, notes: Optional[str]) -> TargetEntity:
        return self.edit(target_id, notes=notes)

    def update_due_at(self, target_id: str, due_at: datetime) -> TargetEntity:
        return self.edit(target_id, due_at=due_at)

    def lock(self, target_id: str) -> TargetEntity:
        current = self._find(target_id)
        self._require_not_completed(current)
        return self._replace({**current, "locked": True}, "locked")

    def unlock(self, target_id: str) -> TargetEntity:
        """
        Unlock is only allowed strictly before the target's due day starts
        (the start of the window the target was set for), whatever the
        current lock state.

        Raises:
            TooLateToUnlock: if now is at or after midnight of the due day.
        """
        current = self._find(target_id)
        self._require_not_completed(current)
        # The due day is the target's own day, not the window that is current now.
        now = self._clock.now()
        due_at = current["due_at"].astimezone(now.tzinfo)
        due_day_start = datetime.combine(due_at.date(), time.min, tzinfo=now.tzinfo)
        if now >= due_day_start:
            raise TooLateToUnlock(target_id=target_id)
        return self._replace({**current, "locked": False}, "unlocked")

    def complete(self, target_id: str) -> TargetEntity:
        current = self._find(target_id)
        self._require_not_completed(current)
        completed = self._replace({**current, "completed_at": self._clock.now()}, "completed")
        for listener in list(self._completion_listeners):
            try:
                listener(completed.copy())
            except Exception:
                logger.exception("Completion listener failed for target %s", target_id)
        return completed

    def delete(self, target_id: str) -> bool:
        """Remove a target in any state. Unknown ids are a no-op returning False."""
        remaining = [t for t in self._targets if t["id"] != target_id]
        if len(remaining) == len(self._targets):
            logger.debug("Delete of unknown target %s ignored", target_id)
            return False
        self._commit(remaining, "deleted", None)
        logger.info("Target %s deleted", target_id)
        return True

    def snooze(self, target_id: str, minutes: int) -> TargetEntity:
        """
        Move due_at to now + minutes, clamped to the end of tomorrow, then
        behave exactly as update_due_at.
        """
        if minutes <= 0:
            raise ValueError("minutes must be positive")
        now = self._clock.now()
        candidate = now + timedelta(minutes=minutes)
        return self.update_due_at(target_id, window.clamp(candidate, now))

    # Internals

    def _find(self, target_id: str) -> TargetEntity:
        for t in self._targets:
            if t["id"] == target_id:
                return t
        logger.debug("Target %s not found", target_id)
        raise TargetNotFound(target_id=target_id)

    @staticmethod
    def _require_not_completed(target: TargetEntity) -> None:
        if target["completed_at"] is not None:
            raise TargetCompleted(target_id=target["id"])

    def _editable(self, target_id: str) -> TargetEntity:
        current = self._find(target_id)
        self._require_not_completed(current)
        if current["locked"]:
            raise TargetLocked(target_id=target_id)
        return current

    def _replace(self, updated: TargetEntity, action: str) -> TargetEntity:
        collection = [updated if t["id"] == updated["id"] else t for t in self._targets]
        self._commit(collection, action, updated)
        return updated.copy()

    def _commit(self, collection: List[TargetEntity], action: str, target: Optional[TargetEntity]) -> None:
        # Persist first: if the save fails, the in-memory collection is unchanged.
        self._repository.save(collection)
        self._targets = collection
        if target is not None:
            logger.info("Target %s %s", target["id"], action)
        snapshot = self.targets
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Collection listener failed after target %s", action)
