from datetime import datetime, timedelta

import pytest

from target_locker.errors import (
    InvalidTitle,
    OutOfWindow,
    TargetCompleted,
    TargetLocked,
    TargetNotFound,
    TooLateToUnlock,
)
from target_locker.lifecycle import DEFAULT_TITLE, TargetLifecycle
from target_locker.models import TargetState, state_of
from target_locker.repositories import TargetRepository

from conftest import UTC, tomorrow_at


class TestCreate:
    def test_create_draft_target(self, lifecycle, clock, repository):
        target = lifecycle.create("  Write report ", tomorrow_at(9), notes=" draft first ")
        assert target["title"] == "Write report"
        assert target["notes"] == "draft first"
        assert target["due_at"] == tomorrow_at(9)
        assert target["locked"] is False
        assert target["completed_at"] is None
        assert target["created_at"] == clock.now()
        assert state_of(target) == TargetState.DRAFT
        # written through to storage
        assert repository.load() == [target]

    def test_create_prepends_most_recent_first(self, lifecycle):
        first = lifecycle.create("First", tomorrow_at(9))
        second = lifecycle.create("Second", tomorrow_at(10))
        assert [t["id"] for t in lifecycle.targets] == [second["id"], first["id"]]
        assert first["id"] != second["id"]

    def test_blank_title_and_notes_fall_back(self, lifecycle):
        target = lifecycle.create("   ", tomorrow_at(9), notes="  ")
        assert target["title"] == DEFAULT_TITLE
        assert target["notes"] is None

    def test_naive_due_at_uses_clock_timezone(self, lifecycle):
        target = lifecycle.create("Naive", datetime(2026, 10, 19, 9, 0))
        assert target["due_at"] == tomorrow_at(9)

    @pytest.mark.parametrize(
        "due",
        [
            datetime(2026, 10, 18, 20, 0, tzinfo=UTC),
            datetime(2026, 10, 20, 0, 0, tzinfo=UTC),
            datetime(2026, 10, 22, 9, 0, tzinfo=UTC),
        ],
    )
    def test_create_outside_window_is_rejected(self, lifecycle, repository, due):
        with pytest.raises(OutOfWindow):
            lifecycle.create("Too early or late", due)
        assert lifecycle.targets == []
        assert repository.load() == []


class TestEdit:
    def test_update_fields_of_draft(self, lifecycle):
        t = lifecycle.create("Old", tomorrow_at(9))
        assert lifecycle.update_title(t["id"], "New")["title"] == "New"
        assert lifecycle.update_notes(t["id"], "some notes")["notes"] == "some notes"
        assert lifecycle.update_due_at(t["id"], tomorrow_at(11))["due_at"] == tomorrow_at(11)
        assert lifecycle.update_notes(t["id"], "")["notes"] is None

    def test_blank_title_update_is_rejected(self, lifecycle):
        t = lifecycle.create("Keep", tomorrow_at(9))
        with pytest.raises(InvalidTitle):
            lifecycle.update_title(t["id"], "   ")
        assert lifecycle.get(t["id"])["title"] == "Keep"

    def test_due_at_outside_window_is_rejected(self, lifecycle):
        t = lifecycle.create("Due", tomorrow_at(9))
        with pytest.raises(OutOfWindow) as info:
            lifecycle.update_due_at(t["id"], tomorrow_at(9) + timedelta(days=1))
        assert info.value.target_id == t["id"]
        assert lifecycle.get(t["id"])["due_at"] == tomorrow_at(9)

    def test_multi_field_edit_applies_all_or_nothing(self, lifecycle):
        t = lifecycle.create("Original", tomorrow_at(9), notes="n")
        with pytest.raises(OutOfWindow):
            lifecycle.edit(t["id"], title="Changed", notes="changed", due_at=tomorrow_at(9) + timedelta(days=2))
        current = lifecycle.get(t["id"])
        assert current["title"] == "Original"
        assert current["notes"] == "n"

        updated = lifecycle.edit(t["id"], title="Changed", due_at=tomorrow_at(12))
        assert updated["title"] == "Changed"
        assert updated["due_at"] == tomorrow_at(12)
        assert updated["notes"] == "n"

    def test_empty_edit_still_checks_state(self, lifecycle):
        seen = []
        lifecycle.subscribe(lambda targets: seen.append(targets))
        t = lifecycle.create("Same", tomorrow_at(9))
        assert lifecycle.edit(t["id"])["title"] == "Same"
        assert len(seen) == 1

        lifecycle.lock(t["id"])
        with pytest.raises(TargetLocked):
            lifecycle.edit(t["id"])
        with pytest.raises(TargetNotFound):
            lifecycle.edit("missing")

    def test_unknown_id_is_not_found(self, lifecycle):
        with pytest.raises(TargetNotFound):
            lifecycle.update_title("missing", "x")
        with pytest.raises(TargetNotFound):
            lifecycle.lock("missing")
        with pytest.raises(TargetNotFound):
            lifecycle.get("missing")

    def test_returned_targets_are_copies(self, lifecycle):
        t = lifecycle.create("Mine", tomorrow_at(9))
        t["title"] = "tampered"
        lifecycle.targets[0]["locked"] = True
        assert lifecycle.get(t["id"])["title"] == "Mine"
        assert lifecycle.get(t["id"])["locked"] is False


class TestLock:
    def test_locked_target_rejects_every_edit_until_unlocked(self, lifecycle):
        t = lifecycle.create("Commit", tomorrow_at(9))
        locked = lifecycle.lock(t["id"])
        assert locked["locked"] is True
        assert state_of(locked) == TargetState.LOCKED

        with pytest.raises(TargetLocked):
            lifecycle.update_title(t["id"], "x")
        with pytest.raises(TargetLocked):
            lifecycle.update_notes(t["id"], "x")
        with pytest.raises(TargetLocked):
            lifecycle.update_due_at(t["id"], tomorrow_at(10))
        with pytest.raises(TargetLocked):
            lifecycle.snooze(t["id"], 10)

        lifecycle.unlock(t["id"])
        assert lifecycle.update_title(t["id"], "x")["title"] == "x"

    def test_unlock_before_due_day_succeeds_after_fails(self, lifecycle, clock):
        t = lifecycle.create("Write report", tomorrow_at(9))
        lifecycle.lock(t["id"])

        clock.set(datetime(2026, 10, 18, 23, 0, tzinfo=UTC))
        assert lifecycle.unlock(t["id"])["locked"] is False

        lifecycle.lock(t["id"])
        clock.set(datetime(2026, 10, 19, 0, 1, tzinfo=UTC))
        with pytest.raises(TooLateToUnlock):
            lifecycle.unlock(t["id"])
        assert lifecycle.get(t["id"])["locked"] is True

    def test_unlock_at_exact_midnight_is_too_late(self, lifecycle, clock):
        t = lifecycle.create("Edge", tomorrow_at(9))
        lifecycle.lock(t["id"])
        clock.set(tomorrow_at(0))
        with pytest.raises(TooLateToUnlock):
            lifecycle.unlock(t["id"])

    def test_unlock_on_due_day_fails_even_when_not_locked(self, lifecycle, clock):
        t = lifecycle.create("Never locked", tomorrow_at(9))
        clock.set(tomorrow_at(8))
        with pytest.raises(TooLateToUnlock):
            lifecycle.unlock(t["id"])


class TestComplete:
    def test_completed_target_is_frozen_but_deletable(self, lifecycle, clock):
        t = lifecycle.create("Finish", tomorrow_at(9))
        clock.set(tomorrow_at(9, 30))
        done = lifecycle.complete(t["id"])
        assert done["completed_at"] == tomorrow_at(9, 30)
        assert state_of(done) == TargetState.COMPLETED

        for op in (
            lambda: lifecycle.update_title(t["id"], "x"),
            lambda: lifecycle.update_notes(t["id"], "x"),
            lambda: lifecycle.update_due_at(t["id"], tomorrow_at(10)),
            lambda: lifecycle.lock(t["id"]),
            lambda: lifecycle.unlock(t["id"]),
            lambda: lifecycle.complete(t["id"]),
            lambda: lifecycle.snooze(t["id"], 10),
        ):
            with pytest.raises(TargetCompleted):
                op()

        assert lifecycle.delete(t["id"]) is True
        assert lifecycle.targets == []

    def test_complete_locked_target(self, lifecycle):
        t = lifecycle.create("Locked then done", tomorrow_at(9))
        lifecycle.lock(t["id"])
        done = lifecycle.complete(t["id"])
        assert done["locked"] is True
        assert state_of(done) == TargetState.COMPLETED

    def test_completion_listeners_are_called(self, lifecycle):
        seen = []
        lifecycle.on_completed(lambda target: seen.append(target["id"]))
        t = lifecycle.create("Listen", tomorrow_at(9))
        lifecycle.complete(t["id"])
        assert seen == [t["id"]]


class TestDelete:
    def test_delete_unknown_is_noop(self, lifecycle, store):
        lifecycle.create("Stay", tomorrow_at(9))
        before = store.get("target-locker:v1:targets")
        assert lifecycle.delete("missing") is False
        assert len(lifecycle.targets) == 1
        assert store.get("target-locker:v1:targets") == before

    def test_delete_from_any_state(self, lifecycle):
        draft = lifecycle.create("Draft", tomorrow_at(9))
        locked = lifecycle.create("Locked", tomorrow_at(10))
        lifecycle.lock(locked["id"])
        assert lifecycle.delete(draft["id"])
        assert lifecycle.delete(locked["id"])
        assert lifecycle.targets == []


class TestSnooze:
    def test_snooze_on_due_day_moves_due_at(self, lifecycle, clock):
        t = lifecycle.create("Snooze me", tomorrow_at(9))
        clock.set(datetime(2026, 10, 18, 23, 55, tzinfo=UTC))
        snoozed = lifecycle.snooze(t["id"], 10)
        assert snoozed["due_at"] == datetime(2026, 10, 19, 0, 5, tzinfo=UTC)

    def test_snooze_never_passes_end_of_tomorrow(self, lifecycle, clock):
        t = lifecycle.create("Far", tomorrow_at(9))
        clock.set(datetime(2026, 10, 18, 23, 0, tzinfo=UTC))
        snoozed = lifecycle.snooze(t["id"], 60 * 24 * 365)
        assert snoozed["due_at"] == datetime(2026, 10, 19, 23, 59, 59, 999000, tzinfo=UTC)

    def test_snooze_landing_today_is_out_of_window(self, lifecycle):
        t = lifecycle.create("Too soon", tomorrow_at(9))
        with pytest.raises(OutOfWindow):
            lifecycle.snooze(t["id"], 10)
        assert lifecycle.get(t["id"])["due_at"] == tomorrow_at(9)

    def test_snooze_requires_positive_minutes(self, lifecycle):
        t = lifecycle.create("Zero", tomorrow_at(9))
        with pytest.raises(ValueError):
            lifecycle.snooze(t["id"], 0)


class TestPersistenceAndObservers:
    def test_state_survives_a_new_engine(self, lifecycle, repository, clock):
        t = lifecycle.create("Persist", tomorrow_at(9), notes="kept")
        lifecycle.lock(t["id"])
        reloaded = TargetLifecycle(repository, clock)
        assert reloaded.targets == lifecycle.targets

    def test_failed_save_leaves_state_untouched(self, clock, store):
        class FailingRepository(TargetRepository):
            fail = False

            def save(self, targets):
                if self.fail:
                    raise OSError("disk full")
                super().save(targets)

        repo = FailingRepository(store, tz=UTC)
        engine = TargetLifecycle(repo, clock)
        t = engine.create("Safe", tomorrow_at(9))
        repo.fail = True
        with pytest.raises(OSError):
            engine.lock(t["id"])
        assert engine.get(t["id"])["locked"] is False

    def test_listeners_see_every_accepted_change_only(self, lifecycle):
        seen = []
        lifecycle.subscribe(lambda targets: seen.append(len(targets)))
        t = lifecycle.create("A", tomorrow_at(9))
        lifecycle.lock(t["id"])
        with pytest.raises(TargetLocked):
            lifecycle.update_title(t["id"], "B")
        lifecycle.delete(t["id"])
        assert seen == [1, 1, 0]

    def test_failing_listener_does_not_undo_mutation(self, lifecycle):
        def boom(targets):
            raise RuntimeError("listener bug")

        lifecycle.subscribe(boom)
        t = lifecycle.create("Robust", tomorrow_at(9))
        assert lifecycle.get(t["id"])["title"] == "Robust"

    def test_active_excludes_completed_and_past(self, lifecycle, clock):
        early = lifecycle.create("Early", tomorrow_at(8))
        late = lifecycle.create("Late", tomorrow_at(18))
        done = lifecycle.create("Done", tomorrow_at(20))
        lifecycle.complete(done["id"])
        clock.set(tomorrow_at(12))
        assert [t["id"] for t in lifecycle.active()] == [late["id"]]
        assert early["id"] not in {t["id"] for t in lifecycle.active()}
