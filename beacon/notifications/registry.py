"""
NotificationRegistry — in-memory bookkeeping of outstanding notifications.

Keyed by (entity_id, purpose). Upserting an existing key overwrites the
entry in place; it never duplicates. Nothing is persisted: at start-up the
registry can be rebuilt from the tray's own pending list via rehydrate().
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from beacon.core.errors import DecodingError
from beacon.notifications.codec import EnvelopeCodec
from beacon.notifications.envelope import PURPOSE_ATTRIBUTE, NotificationEnvelope
from beacon.notifications.identity import derive_id
from beacon.scheduler.schedule import ScheduleSpec

logger = logging.getLogger(__name__)

Key = tuple[str, str]


@dataclass(frozen=True)
class RegistryEntry:
    """One outstanding logical notification."""

    entity_id: str
    purpose: str
    identity: int
    schedule: ScheduleSpec | None
    envelope: NotificationEnvelope
    title: str = ""
    body: str = ""
    fire_at: datetime | None = None

    @property
    def key(self) -> Key:
        return (self.entity_id, self.purpose)


class NotificationRegistry:
    """
    Outstanding notifications, in insertion order.

    Usage:
        registry = NotificationRegistry()
        identity = registry.upsert("task_1", "before", Once(at), envelope)
        ...
        registry.remove("task_1", "before")

    Every mutation and snapshot holds one re-entrant lock, so the registry
    can be shared across threads; per-entity ordering is the caller's order.
    """

    def __init__(self) -> None:
        self._entries: dict[Key, RegistryEntry] = {}
        self._lock = threading.RLock()

    def upsert(
        self,
        entity_id: str,
        purpose: str,
        schedule: ScheduleSpec | None,
        envelope: NotificationEnvelope,
        *,
        title: str = "",
        body: str = "",
        fire_at: datetime | None = None,
    ) -> int:
        """
        Store or overwrite the entry for (entity_id, purpose).

        Returns the derived identity to hand to the tray adapter. An
        overwritten key keeps its original position in list_pending().
        """
        identity = derive_id(entity_id, purpose)
        entry = RegistryEntry(
            entity_id=entity_id,
            purpose=purpose,
            identity=identity,
            schedule=schedule,
            envelope=envelope,
            title=title,
            body=body,
            fire_at=fire_at,
        )
        with self._lock:
            replaced = entry.key in self._entries
            self._entries[entry.key] = entry
        logger.debug(
            f"{'Updated' if replaced else 'Registered'} {entity_id}/{purpose} (id={identity})"
        )
        return identity

    def get(self, entity_id: str, purpose: str) -> RegistryEntry | None:
        with self._lock:
            return self._entries.get((entity_id, purpose))

    def remove(self, entity_id: str, purpose: str) -> RegistryEntry | None:
        """Remove an entry if present. Removing a missing key is a no-op."""
        with self._lock:
            entry = self._entries.pop((entity_id, purpose), None)
        if entry:
            logger.debug(f"Removed {entity_id}/{purpose}")
        return entry

    def remove_all_for_entity(self, entity_id: str) -> list[RegistryEntry]:
        """Remove every purpose recorded for an entity (e.g. a deleted task)."""
        with self._lock:
            removed = [e for e in self._entries.values() if e.entity_id == entity_id]
            for entry in removed:
                del self._entries[entry.key]
        return removed

    def clear(self) -> list[RegistryEntry]:
        """Remove everything. Returns what was removed."""
        with self._lock:
            removed = list(self._entries.values())
            self._entries.clear()
        return removed

    def list_pending(self) -> list[RegistryEntry]:
        """Snapshot of all entries, in insertion order."""
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    # ── Recovery ──────────────────────────────────────────────────────────────

    def rehydrate(
        self,
        pending: Iterable[tuple[int, str]],
        codec: EnvelopeCodec,
        purposes: Iterable[str] = ("before", "deadline", "default"),
    ) -> int:
        """
        Rebuild entries from the tray's pending (identity, payload) pairs.

        The purpose is not on the wire as such, so it is recovered by
        checking which candidate purpose derives the same identity:
        ``attributes["purpose"]`` first, then ``purposes`` in order.
        Payloads that do not decode or match are skipped.

        Returns the number of entries restored.
        """
        candidates = list(purposes)
        restored = 0
        for identity, payload in pending:
            try:
                envelope = codec.decode(payload)
            except DecodingError as e:
                logger.warning(f"Skipping pending notification {identity}: {e.message}")
                continue
            if not envelope.entity_id:
                logger.warning(f"Skipping pending notification {identity}: no entity id")
                continue

            hinted = envelope.attributes.get(PURPOSE_ATTRIBUTE)
            ordered = ([hinted] if hinted else []) + candidates
            purpose = next(
                (p for p in ordered if derive_id(envelope.entity_id, p) == identity),
                None,
            )
            if purpose is None:
                logger.warning(
                    f"Skipping pending notification {identity}: "
                    f"no purpose of {envelope.entity_id!r} derives that id"
                )
                continue

            self.upsert(envelope.entity_id, purpose, None, envelope)
            restored += 1
        logger.info(f"Rehydrated {restored} pending notification(s)")
        return restored
