"""Tests for NotificationService, the composed entry point."""

from datetime import datetime

import pytest

from beacon.adapters.memory import MemoryTrayAdapter, RecordingNavigator
from beacon.core.config import BeaconConfig
from beacon.core.errors import AdapterError, EncodingError, PastTimeError
from beacon.core.events import EventType
from beacon.core.service import NotificationService, TaskDeadline
from beacon.notifications.envelope import NotificationEnvelope
from beacon.notifications.identity import derive_id
from beacon.notifications.router import DispatchOutcome
from beacon.scheduler.schedule import Daily, Once, Weekly

MONDAY = datetime(2026, 3, 2, 10, 0)  # a Monday


def _task_env(task_id="task_1", class_id="class_9"):
    return NotificationEnvelope(kind="task_deadline", entity_id=task_id, secondary_id=class_id)


@pytest.fixture
def events(service):
    received = []
    service.on(EventType.ALL, received.append)
    return received


def _types(events):
    return [e.type for e in events]


# ── Show / schedule ──────────────────────────────────────────────────────────

class TestOutbound:
    def test_show(self, service, tray, events):
        identity = service.show("task_1", "default", _task_env(), title="Hi", body="There")

        assert identity == derive_id("task_1", "default")
        assert tray.shown[identity].title == "Hi"
        assert service.registry.get("task_1", "default") is not None
        assert EventType.NOTIFICATION_SHOWN in _types(events)

    def test_schedule_once(self, service, tray, events):
        at = datetime(2026, 3, 3, 9, 0)
        identity = service.schedule("task_1", "before", _task_env(), Once(at), now=MONDAY)

        assert tray.scheduled[identity].fire_at == at
        assert service.registry.get("task_1", "before").fire_at == at
        scheduled = [e for e in events if e.type == EventType.NOTIFICATION_SCHEDULED]
        assert scheduled[0].data["fire_at"] == at.isoformat()

    def test_schedule_recurring_resolves_fire_time(self, service, tray):
        identity = service.schedule("digest", "weekly", _task_env("digest"), Weekly(1, 9), now=MONDAY)
        # Monday 10:00 is past Monday 09:00, so next week
        assert tray.scheduled[identity].fire_at == datetime(2026, 3, 9, 9, 0)

    def test_reschedule_replaces(self, service, tray):
        first = service.schedule("task_1", "before", _task_env(), Once(datetime(2026, 3, 3)), now=MONDAY)
        second = service.schedule("task_1", "before", _task_env(), Once(datetime(2026, 3, 4)), now=MONDAY)

        assert first == second
        assert len(service.pending()) == 1
        assert tray.scheduled[first].fire_at == datetime(2026, 3, 4)

    def test_past_once_is_rejected_without_side_effects(self, service, tray):
        with pytest.raises(PastTimeError):
            service.schedule("task_1", "before", _task_env(), Once(datetime(2026, 3, 1)), now=MONDAY)
        assert service.pending() == []
        assert tray.scheduled == {}

    def test_unencodable_envelope_is_rejected(self, service, tray):
        with pytest.raises(EncodingError):
            service.show("x", "default", NotificationEnvelope(kind="party", entity_id="x"))
        assert service.pending() == []
        assert tray.shown == {}

    def test_adapter_refusal_rolls_back(self, service, tray, events):
        tray.fail_next = True
        with pytest.raises(AdapterError, match="refused to schedule"):
            service.schedule("task_1", "before", _task_env(), Daily(9), now=MONDAY)

        assert service.pending() == []
        failed = [e for e in events if e.type == EventType.NOTIFICATION_FAILED]
        assert failed[0].data["action"] == "schedule"

    def test_adapter_exception_rolls_back(self, service, tray):
        tray.raise_next = OSError("tray gone")
        with pytest.raises(AdapterError, match="tray gone") as exc_info:
            service.show("task_1", "default", _task_env())
        assert exc_info.value.adapter == "memory"
        assert service.pending() == []


# ── Cancel ───────────────────────────────────────────────────────────────────

class TestCancel:
    def test_cancel(self, service, tray):
        identity = service.schedule("task_1", "before", _task_env(), Daily(9), now=MONDAY)

        assert service.cancel("task_1", "before") == identity
        assert tray.scheduled == {}
        assert service.pending() == []

    def test_cancel_unregistered_still_reaches_tray(self, service, tray):
        identity = service.cancel("ghost", "before")
        assert tray.cancelled == [identity]

    def test_cancel_failure_restores_entry(self, service, tray):
        service.schedule("task_1", "before", _task_env(), Daily(9), now=MONDAY)
        tray.fail_next = True

        with pytest.raises(AdapterError):
            service.cancel("task_1", "before")
        assert service.registry.get("task_1", "before") is not None

    def test_cancel_entity(self, service):
        service.schedule("task_1", "before", _task_env(), Daily(9), now=MONDAY)
        service.schedule("task_1", "deadline", _task_env(), Daily(10), now=MONDAY)
        service.schedule("task_2", "before", _task_env("task_2"), Daily(9), now=MONDAY)

        assert len(service.cancel_entity("task_1")) == 2
        assert [e.entity_id for e in service.pending()] == ["task_2"]

    def test_cancel_all(self, service, tray):
        service.show("a", "default", _task_env("a"))
        service.schedule("b", "before", _task_env("b"), Daily(9), now=MONDAY)

        assert service.cancel_all() == 2
        assert service.pending() == []
        assert tray.shown == {} and tray.scheduled == {}

    def test_cancel_all_failure_restores(self, service, tray):
        service.show("a", "default", _task_env("a"))
        tray.raise_next = RuntimeError("nope")

        with pytest.raises(AdapterError):
            service.cancel_all()
        assert len(service.pending()) == 1


# ── Taps ─────────────────────────────────────────────────────────────────────

class TestTaps:
    def test_tap_on_scheduled_payload_navigates(self, service, tray, navigator, events):
        identity = service.schedule("task_1", "before", _task_env(), Daily(9), now=MONDAY)

        result = service.on_tap(tray.scheduled[identity].payload)

        assert result.outcome is DispatchOutcome.DISPATCHED
        assert navigator.last == ("/task-details", {"taskId": "task_1", "classId": "class_9"})
        assert EventType.NOTIFICATION_TAPPED in _types(events)
        assert EventType.NOTIFICATION_DISPATCHED in _types(events)

    def test_garbage_tap_goes_home(self, service, navigator, events):
        result = service.on_tap("garbage")

        assert result.outcome is DispatchOutcome.FALLBACK
        assert navigator.last == ("/home", {})
        assert EventType.NOTIFICATION_FALLBACK in _types(events)

    def test_dispatch_event_links_to_tap(self, service, events):
        service.on_tap("garbage")
        tapped, fallback = events
        assert fallback.parent_id == tapped.id
        assert fallback.data["reason"]

    def test_none_tap(self, service, navigator):
        service.on_tap(None)
        assert navigator.calls == [("/home", {})]

    def test_configured_routes(self, tray):
        nav = RecordingNavigator()
        config = BeaconConfig(routes={"home": "/start", "overrides": {"message": "/inbox"}})
        service = NotificationService(config=config, adapter=tray, navigator=nav)

        service.on_tap('{"kind":"message","entityId":"u1"}')
        service.on_tap("")

        assert nav.calls == [("/inbox", {"userId": "u1"}), ("/start", {})]

    def test_extra_kinds_from_config(self, tray):
        config = BeaconConfig(codec={"extra_kinds": ["grade_posted"]})
        service = NotificationService(config=config, adapter=tray)
        handled = []
        service.router.register("grade_posted", handled.append)

        service.show("g1", "default", NotificationEnvelope(kind="grade_posted", entity_id="g1"))
        service.on_tap(tray.shown[derive_id("g1", "default")].payload)

        assert len(handled) == 1

    def test_failing_subscriber_does_not_break_tap(self, service, navigator):
        def broken(event):
            raise RuntimeError("subscriber")

        service.on(EventType.NOTIFICATION_TAPPED, broken)
        service.on_tap("garbage")
        assert navigator.last == ("/home", {})


# ── Rehydrate ────────────────────────────────────────────────────────────────

class TestRehydrate:
    def test_rebuilds_from_tray(self, config, tray):
        first = NotificationService(config=config, adapter=tray)
        first.schedule_task_deadline(
            "task_1", "class_9", "Essay", "Submit it", datetime(2026, 3, 5, 17, 0), now=MONDAY
        )

        second = NotificationService(config=config, adapter=tray)
        assert second.rehydrate() == 2
        assert second.registry.get("task_1", "before") is not None
        assert second.registry.get("task_1", "deadline") is not None

        second.cancel_task_notifications("task_1")
        assert tray.scheduled == {}


# ── Task deadlines ───────────────────────────────────────────────────────────

class TestTaskDeadlines:
    DEADLINE = datetime(2026, 3, 5, 17, 0)  # Thursday

    def test_schedules_reminder_pair(self, service, tray):
        ids = service.schedule_task_deadline(
            "task_1", "class_9", "Essay", "Submit it", self.DEADLINE, now=MONDAY
        )

        before = tray.scheduled[ids["before"]]
        deadline = tray.scheduled[ids["deadline"]]
        assert before.fire_at == datetime(2026, 3, 4, 9, 0)
        assert before.title == "Task Reminder: Essay"
        assert before.body == "Deadline tomorrow! Submit it"
        assert deadline.fire_at == datetime(2026, 3, 5, 9, 0)
        assert deadline.title == "Task Due Today: Essay"
        assert deadline.body == "Due today! Submit it"
        assert ids["before"] != ids["deadline"]

    def test_reminder_payloads_route_to_task(self, service, tray, navigator):
        ids = service.schedule_task_deadline(
            "task_1", "class_9", "Essay", "", self.DEADLINE, now=MONDAY
        )
        service.on_tap(tray.scheduled[ids["before"]].payload)
        assert navigator.last == ("/task-details", {"taskId": "task_1", "classId": "class_9", "title": "Essay"})

    def test_past_reminder_skipped(self, service, events):
        now = datetime(2026, 3, 4, 10, 0)  # after Wednesday's 09:00
        ids = service.schedule_task_deadline(
            "task_1", "class_9", "Essay", "", self.DEADLINE, now=now
        )

        assert ids["before"] is None
        assert ids["deadline"] is not None
        skipped = [e for e in events if e.type == EventType.NOTIFICATION_SKIPPED]
        assert skipped[0].data["purpose"] == "before"

    def test_both_past(self, service):
        ids = service.schedule_task_deadline(
            "task_1", "class_9", "Essay", "", self.DEADLINE, now=datetime(2026, 3, 6)
        )
        assert ids == {"before": None, "deadline": None}
        assert service.pending() == []

    def test_configured_reminder_time(self, tray):
        config = BeaconConfig(reminders={"hour": 7, "minute": 30, "days_before": 2})
        service = NotificationService(config=config, adapter=tray)

        ids = service.schedule_task_deadline(
            "task_1", "class_9", "Essay", "Go", self.DEADLINE, now=MONDAY
        )

        before = tray.scheduled[ids["before"]]
        assert before.fire_at == datetime(2026, 3, 3, 7, 30)
        assert before.body == "Deadline in 2 days! Go"

    def test_batch(self, service):
        tasks = [
            TaskDeadline("task_1", "c1", "A", "", self.DEADLINE),
            TaskDeadline("task_2", "c1", "B", "", datetime(2026, 3, 10, 12, 0)),
        ]
        results = service.schedule_task_deadlines(tasks, now=MONDAY)

        assert set(results) == {"task_1", "task_2"}
        assert len(service.pending()) == 4

    def test_rescheduling_same_task_does_not_duplicate(self, service):
        service.schedule_task_deadline("task_1", "c1", "A", "", self.DEADLINE, now=MONDAY)
        service.schedule_task_deadline("task_1", "c1", "A", "", datetime(2026, 3, 6, 12), now=MONDAY)
        assert len(service.pending()) == 2

    def test_cancel_task_notifications(self, service, tray):
        service.schedule_task_deadline("task_1", "c1", "A", "", self.DEADLINE, now=MONDAY)
        service.cancel_task_notifications("task_1")

        assert service.pending() == []
        assert tray.scheduled == {}


# ── Class activity ───────────────────────────────────────────────────────────

class TestClassActivity:
    def test_new_notice(self, service, tray, navigator):
        identity = service.show_new_notice("n1", "class_9", "Exam moved", "Now on Friday")

        shown = tray.shown[identity]
        assert identity == derive_id("n1", "default")
        assert shown.title == "New Notice Posted"
        assert shown.body == "Exam moved"

        service.on_tap(shown.payload)
        assert navigator.last == (
            "/notice-details",
            {"noticeId": "n1", "title": "Exam moved", "description": "Now on Friday"},
        )

    def test_new_task(self, service, tray, navigator):
        identity = service.show_new_task("task_3", "class_9", "Lab report", datetime(2026, 3, 5, 17, 0))

        shown = tray.shown[identity]
        assert shown.title == "New Task Assigned"
        assert shown.body == "Lab report - Due: 5/3/2026"
        assert service.registry.get("task_3", "default").envelope.kind == "new_task"

        service.on_tap(shown.payload)
        assert navigator.last[0] == "/home"

    def test_new_task_does_not_replace_reminders(self, service):
        service.schedule_task_deadline(
            "task_3", "class_9", "Lab report", "", datetime(2026, 3, 5, 17, 0), now=MONDAY
        )
        service.show_new_task("task_3", "class_9", "Lab report", datetime(2026, 3, 5, 17, 0))
        assert len(service.pending()) == 3

    def test_class_update(self, service, tray, navigator):
        identity = service.show_class_update("class_9", "Biology", "Room changed to B12")

        shown = tray.shown[identity]
        assert shown.title == "Update from Biology"
        assert shown.body == "Room changed to B12"

        service.on_tap(shown.payload)
        assert navigator.last == ("/classroom", {"classId": "class_9", "className": "Biology"})


# ── Push messages ────────────────────────────────────────────────────────────

class TestPushMessages:
    def test_known_kind(self, service, tray, navigator):
        identity = service.show_push_message(
            {"kind": "new_notice", "entityId": "n1", "headline": "Exam"},
            title="Notice",
            body="Exam moved",
        )

        assert identity == derive_id("n1", "default")
        service.on_tap(tray.shown[identity].payload)
        assert navigator.last == ("/notice-details", {"noticeId": "n1", "headline": "Exam"})

    def test_unknown_kind_shown_as_generic(self, service, tray):
        identity = service.show_push_message({"kind": "party", "entityId": "p1"})

        entry = service.registry.get("p1", "default")
        assert entry.envelope.kind == "generic"
        assert entry.envelope.attributes["original_kind"] == "party"
        assert identity in tray.shown

    def test_known_kind_without_entity(self, service):
        service.show_push_message({"kind": "message", "messageId": "m-77"})
        entry = service.registry.get("m-77", "default")
        assert entry.envelope.kind == "generic"

    def test_no_identifiers(self, service):
        identity = service.show_push_message({})
        assert identity == derive_id("push", "default")


# ── Recurring ────────────────────────────────────────────────────────────────

class TestRecurring:
    def test_reschedules_elapsed_entries(self, service, tray):
        identity = service.schedule("digest", "daily", _task_env("digest"), Daily(9), now=MONDAY)
        service.schedule("later", "weekly", _task_env("later"), Weekly(5, 9), now=MONDAY)
        service.schedule("once", "before", _task_env("once"), Once(datetime(2026, 3, 3, 8)), now=MONDAY)

        now = datetime(2026, 3, 3, 9, 30)
        assert service.reschedule_recurring(now) == [identity]
        assert tray.scheduled[identity].fire_at == datetime(2026, 3, 4, 9, 0)

    def test_nothing_due(self, service):
        service.schedule("digest", "daily", _task_env("digest"), Daily(9), now=MONDAY)
        assert service.reschedule_recurring(MONDAY) == []


def test_default_construction(monkeypatch, tmp_path):
    """With no arguments the service loads config and uses the memory tray."""
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)
    monkeypatch.chdir(tmp_path)
    service = NotificationService()
    assert isinstance(service.adapter, MemoryTrayAdapter)
