"""
NotificationService — the single context object an app builds at start-up.

Composes config, codec, registry, router, tray adapter and event bus. It is
passed by reference to whatever needs it, so there is no global plugin
instance and no static navigator key.

Every call is synchronous. The adapter is the only component that does I/O;
when it reports failure the registry entry written for that request is
rolled back and AdapterError is raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Mapping

from beacon.adapters.base import NotificationAdapter, Navigator
from beacon.adapters.memory import MemoryTrayAdapter
from beacon.core.bus import EventBus, EventHandler, MiddlewareFunc
from beacon.core.config import BeaconConfig
from beacon.core.errors import AdapterError, PastTimeError
from beacon.core.events import Event, EventType
from beacon.notifications.codec import EnvelopeCodec
from beacon.notifications.envelope import (
    ORIGINAL_KIND_ATTRIBUTE,
    PURPOSE_ATTRIBUTE,
    NotificationEnvelope,
    NotificationKind,
)
from beacon.notifications.identity import (
    PURPOSE_BEFORE,
    PURPOSE_DEADLINE,
    PURPOSE_DEFAULT,
    derive_id,
)
from beacon.notifications.navigation import install_navigation
from beacon.notifications.registry import NotificationRegistry, RegistryEntry
from beacon.notifications.router import DispatchOutcome, DispatchResult, DispatchRouter
from beacon.scheduler.calculator import next_fire_time
from beacon.scheduler.schedule import Once, ScheduleSpec

logger = logging.getLogger(__name__)

_PUSH_FIELDS = ("kind", "entityId", "secondaryId", "targetRoute", "messageId")


@dataclass(frozen=True)
class TaskDeadline:
    """A task whose deadline gets a reminder pair."""

    task_id: str
    class_id: str
    title: str
    body: str
    deadline: datetime


class NotificationService:
    """
    Show, schedule, cancel and route notifications.

    Usage:
        service = NotificationService(
            config=BeaconConfig.load(),
            adapter=SQLiteTrayAdapter(path),
            navigator=app_navigator,
        )
        service.rehydrate()

        service.schedule("task_1", "before", envelope, Once(at), now=now,
                         title="Reminder", body="Essay due tomorrow")
        ...
        tray.on_tap(service.on_tap)   # host wiring
    """

    def __init__(
        self,
        config: BeaconConfig | None = None,
        adapter: NotificationAdapter | None = None,
        navigator: Navigator | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.config = config or BeaconConfig.load()
        self.adapter = adapter or MemoryTrayAdapter()
        self.bus = bus or EventBus()
        self.codec = EnvelopeCodec(
            extra_kinds=self.config.codec.extra_kinds,
            max_payload_bytes=self.config.codec.max_payload_bytes,
        )
        self.registry = NotificationRegistry()
        self.router = DispatchRouter(codec=self.codec)
        if navigator is not None:
            install_navigation(
                self.router,
                navigator,
                home=self.config.routes.home,
                overrides=self.config.routes.overrides,
            )

    # ━━━ Event Bus Shortcuts ━━━

    def on(self, event_type: str, handler: EventHandler) -> None:
        self.bus.on(event_type, handler)

    def use(self, middleware: MiddlewareFunc) -> None:
        self.bus.use(middleware)

    def _emit(self, event_type: str, parent: Event | None = None, **data) -> Event:
        event = (
            parent.child(event_type, data)
            if parent
            else Event(type=event_type, data=data, source="service")
        )
        try:
            self.bus.emit(event)
        except Exception as e:
            logger.error(f"Error emitting {event_type}: {e}")
        return event

    # ━━━ Outbound ━━━

    def show(
        self,
        entity_id: str,
        purpose: str,
        envelope: NotificationEnvelope,
        *,
        title: str = "",
        body: str = "",
    ) -> int:
        """
        Show a notification now. Returns its identity.

        Raises:
            EncodingError: the envelope cannot be serialized.
            AdapterError: the tray refused; nothing stays registered.
        """
        envelope = self.codec.stamp(envelope)
        payload = self.codec.encode(envelope)
        identity = self.registry.upsert(
            entity_id, purpose, None, envelope, title=title, body=body
        )
        self._request(
            entity_id,
            purpose,
            "show",
            lambda: self.adapter.request_show(identity, title, body, payload),
        )
        logger.info(f"Shown {entity_id}/{purpose} (id={identity})")
        self._emit(
            EventType.NOTIFICATION_SHOWN,
            entity_id=entity_id,
            purpose=purpose,
            identity=identity,
            kind=envelope.kind,
        )
        return identity

    def schedule(
        self,
        entity_id: str,
        purpose: str,
        envelope: NotificationEnvelope,
        spec: ScheduleSpec,
        *,
        now: datetime,
        title: str = "",
        body: str = "",
    ) -> int:
        """
        Schedule a notification for the next time ``spec`` fires after ``now``.

        Scheduling the same (entity_id, purpose) again replaces the earlier
        request under the same identity.

        Raises:
            PastTimeError: a Once target is not after ``now``.
            EncodingError: the envelope cannot be serialized.
            AdapterError: the tray refused; nothing stays registered.
        """
        fire_at = next_fire_time(spec, now)
        envelope = self.codec.stamp(envelope)
        payload = self.codec.encode(envelope)
        identity = self.registry.upsert(
            entity_id,
            purpose,
            spec,
            envelope,
            title=title,
            body=body,
            fire_at=fire_at,
        )
        self._request(
            entity_id,
            purpose,
            "schedule",
            lambda: self.adapter.request_schedule(identity, title, body, payload, fire_at),
        )
        logger.info(
            f"Scheduled {entity_id}/{purpose} (id={identity}) for {fire_at.isoformat()}"
        )
        self._emit(
            EventType.NOTIFICATION_SCHEDULED,
            entity_id=entity_id,
            purpose=purpose,
            identity=identity,
            kind=envelope.kind,
            fire_at=fire_at.isoformat(),
            schedule=spec.description,
        )
        return identity

    def cancel(self, entity_id: str, purpose: str) -> int:
        """
        Cancel one logical notification. Works even if the registry never saw
        it, since the identity is derived. Returns the identity.
        """
        identity = derive_id(entity_id, purpose)
        removed = self.registry.remove(entity_id, purpose)
        try:
            self._call_adapter("cancel", lambda: self.adapter.request_cancel(identity))
        except AdapterError:
            if removed:
                self._restore([removed])
            raise
        logger.info(f"Cancelled {entity_id}/{purpose} (id={identity})")
        self._emit(
            EventType.NOTIFICATION_CANCELLED,
            entity_id=entity_id,
            purpose=purpose,
            identity=identity,
        )
        return identity

    def cancel_entity(self, entity_id: str) -> list[int]:
        """Cancel every registered purpose of an entity."""
        return [
            self.cancel(entry.entity_id, entry.purpose)
            for entry in self.registry.list_pending()
            if entry.entity_id == entity_id
        ]

    def cancel_all(self) -> int:
        """Cancel everything. Returns how many registry entries were dropped."""
        removed = self.registry.clear()
        try:
            self._call_adapter("cancel_all", self.adapter.request_cancel_all)
        except AdapterError:
            self._restore(removed)
            raise
        logger.info(f"Cancelled all notifications ({len(removed)} registered)")
        self._emit(EventType.NOTIFICATION_CANCELLED, all=True, count=len(removed))
        return len(removed)

    def pending(self) -> list[RegistryEntry]:
        return self.registry.list_pending()

    # ━━━ Inbound ━━━

    def on_tap(self, raw: str | None) -> DispatchResult:
        """Entry point for the tray's tap callback. Never raises."""
        tapped = self._emit(EventType.NOTIFICATION_TAPPED, payload_size=len(raw or ""))
        result = self.router.dispatch(raw)
        event_type = (
            EventType.NOTIFICATION_DISPATCHED
            if result.outcome is DispatchOutcome.DISPATCHED
            else EventType.NOTIFICATION_FALLBACK
        )
        self._emit(
            event_type,
            parent=tapped,
            kind=result.envelope.kind,
            entity_id=result.envelope.entity_id,
            reason=result.reason,
            error=result.error,
        )
        return result

    def rehydrate(self) -> int:
        """Rebuild the registry from what the tray still holds."""
        count = self.registry.rehydrate(
            self.adapter.pending(), self.codec, self.config.registry.purposes
        )
        self._emit(EventType.NOTIFICATION_REHYDRATED, count=count)
        return count

    # ━━━ Task deadlines ━━━

    def schedule_task_deadline(
        self,
        task_id: str,
        class_id: str,
        title: str,
        body: str,
        deadline: datetime,
        *,
        now: datetime,
    ) -> dict[str, int | None]:
        """
        Schedule the reminder pair for a task: one ``days_before`` the deadline
        and one on the day, both at the configured reminder time.

        Reminders already in the past are skipped, not fired. Returns
        purpose → identity, with None for skipped purposes.
        """
        reminders = self.config.reminders
        due_day = deadline.replace(
            hour=reminders.hour, minute=reminders.minute, second=0, microsecond=0
        )
        days = reminders.days_before
        lead = "Deadline tomorrow!" if days == 1 else f"Deadline in {days} days!"
        plan = (
            (
                PURPOSE_BEFORE,
                NotificationKind.TASK_REMINDER,
                due_day - timedelta(days=days),
                f"Task Reminder: {title}",
                f"{lead} {body}".strip(),
            ),
            (
                PURPOSE_DEADLINE,
                NotificationKind.TASK_DEADLINE,
                due_day,
                f"Task Due Today: {title}",
                f"Due today! {body}".strip(),
            ),
        )

        result: dict[str, int | None] = {}
        for purpose, kind, at, note_title, note_body in plan:
            envelope = NotificationEnvelope(
                kind=kind,
                entity_id=task_id,
                secondary_id=class_id,
                attributes={"title": title, PURPOSE_ATTRIBUTE: purpose},
            )
            try:
                result[purpose] = self.schedule(
                    task_id,
                    purpose,
                    envelope,
                    Once(at),
                    now=now,
                    title=note_title,
                    body=note_body,
                )
            except PastTimeError:
                logger.info(f"{task_id}/{purpose} reminder at {at.isoformat()} is past; skipping")
                self._emit(
                    EventType.NOTIFICATION_SKIPPED,
                    entity_id=task_id,
                    purpose=purpose,
                    fire_at=at.isoformat(),
                )
                result[purpose] = None
        return result

    def schedule_task_deadlines(
        self, tasks: Iterable[TaskDeadline], *, now: datetime
    ) -> dict[str, dict[str, int | None]]:
        results = {
            task.task_id: self.schedule_task_deadline(
                task.task_id,
                task.class_id,
                task.title,
                task.body,
                task.deadline,
                now=now,
            )
            for task in tasks
        }
        logger.info(f"Scheduled deadline reminders for {len(results)} task(s)")
        return results

    def cancel_task_notifications(self, task_id: str) -> list[int]:
        """Cancel both reminders of a task, registered or not."""
        return [self.cancel(task_id, p) for p in (PURPOSE_BEFORE, PURPOSE_DEADLINE)]

    # ━━━ Class activity ━━━

    def show_new_notice(
        self, notice_id: str, class_id: str, title: str, description: str = ""
    ) -> int:
        """A notice was posted in a class. Tapping opens the notice."""
        attributes = {"title": title}
        if description:
            attributes["description"] = description
        envelope = NotificationEnvelope(
            kind=NotificationKind.NEW_NOTICE,
            entity_id=notice_id,
            secondary_id=class_id,
            attributes=attributes,
        )
        return self.show(
            notice_id, PURPOSE_DEFAULT, envelope, title="New Notice Posted", body=title
        )

    def show_new_task(
        self,
        task_id: str,
        class_id: str,
        title: str,
        deadline: datetime,
        description: str = "",
    ) -> int:
        due = f"{deadline.day}/{deadline.month}/{deadline.year}"
        attributes = {"title": title, "due": due}
        if description:
            attributes["description"] = description
        envelope = NotificationEnvelope(
            kind=NotificationKind.NEW_TASK,
            entity_id=task_id,
            secondary_id=class_id,
            attributes=attributes,
        )
        return self.show(
            task_id,
            PURPOSE_DEFAULT,
            envelope,
            title="New Task Assigned",
            body=f"{title} - Due: {due}",
        )

    def show_class_update(self, class_id: str, class_name: str, message: str) -> int:
        envelope = NotificationEnvelope(
            kind=NotificationKind.CLASS_UPDATE,
            entity_id=class_id,
            attributes={"className": class_name},
        )
        return self.show(
            class_id,
            PURPOSE_DEFAULT,
            envelope,
            title=f"Update from {class_name}",
            body=message,
        )

    # ━━━ Push messages ━━━

    def show_push_message(
        self,
        data: Mapping[str, str],
        *,
        title: str = "",
        body: str = "",
    ) -> int:
        """
        Surface a foreground push message as a local notification.

        ``data`` is the push data map. Its ``kind``/``entityId``/
        ``secondaryId``/``targetRoute`` fields build the envelope; the rest
        become attributes. An unknown kind, or a known kind without an
        entity id, is shown as generic.
        """
        kind = data.get("kind") or NotificationKind.GENERIC
        entity_id = data.get("entityId") or None
        attributes = {k: str(v) for k, v in data.items() if k not in _PUSH_FIELDS}
        if not self.codec.is_known(kind) or (kind != NotificationKind.GENERIC and not entity_id):
            if kind != NotificationKind.GENERIC:
                attributes[ORIGINAL_KIND_ATTRIBUTE] = kind
            kind = NotificationKind.GENERIC

        envelope = NotificationEnvelope(
            kind=kind,
            entity_id=entity_id,
            secondary_id=data.get("secondaryId") or None,
            target_route=data.get("targetRoute") or None,
            attributes=attributes,
        )
        key = entity_id or data.get("messageId") or "push"
        return self.show(key, PURPOSE_DEFAULT, envelope, title=title, body=body)

    # ━━━ Recurring ━━━

    def reschedule_recurring(self, now: datetime) -> list[int]:
        """
        Re-request every daily/weekly entry whose last fire time has passed,
        so the tray always holds the next occurrence.
        """
        identities = []
        for entry in self.registry.list_pending():
            if entry.schedule is None or not entry.schedule.recurring:
                continue
            if entry.fire_at is not None and entry.fire_at > now:
                continue
            identities.append(
                self.schedule(
                    entry.entity_id,
                    entry.purpose,
                    entry.envelope,
                    entry.schedule,
                    now=now,
                    title=entry.title,
                    body=entry.body,
                )
            )
        return identities

    # ━━━ Internals ━━━

    def _request(
        self,
        entity_id: str,
        purpose: str,
        action: str,
        call: Callable[[], bool],
    ) -> None:
        """Run an adapter request; roll back the registry entry if it fails."""
        try:
            self._call_adapter(action, call)
        except AdapterError as e:
            self.registry.remove(entity_id, purpose)
            self._emit(
                EventType.NOTIFICATION_FAILED,
                entity_id=entity_id,
                purpose=purpose,
                action=action,
                error=e.message,
            )
            raise

    def _call_adapter(self, action: str, call: Callable[[], bool]) -> None:
        try:
            ok = call()
        except Exception as e:
            raise AdapterError(
                f"{self.adapter.name} adapter failed to {action}: {e}",
                adapter=self.adapter.name,
            ) from e
        if not ok:
            raise AdapterError(
                f"{self.adapter.name} adapter refused to {action}",
                adapter=self.adapter.name,
            )

    def _restore(self, entries: list[RegistryEntry]) -> None:
        for entry in entries:
            self.registry.upsert(
                entry.entity_id,
                entry.purpose,
                entry.schedule,
                entry.envelope,
                title=entry.title,
                body=entry.body,
                fire_at=entry.fire_at,
            )
