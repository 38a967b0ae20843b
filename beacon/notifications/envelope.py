"""
NotificationEnvelope — the structured payload attached to a notification.

The tray treats it as an opaque string; the app decodes it on tap and picks
a handler by ``kind``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping


class NotificationKind:
    """Known discriminants. The set is open: config may add more."""

    TASK_DEADLINE = "task_deadline"
    TASK_REMINDER = "task_reminder"
    NEW_NOTICE = "new_notice"
    NEW_TASK = "new_task"
    CLASS_UPDATE = "class_update"
    MESSAGE = "message"
    GENERIC = "generic"


KNOWN_KINDS: frozenset[str] = frozenset(
    {
        NotificationKind.TASK_DEADLINE,
        NotificationKind.TASK_REMINDER,
        NotificationKind.NEW_NOTICE,
        NotificationKind.NEW_TASK,
        NotificationKind.CLASS_UPDATE,
        NotificationKind.MESSAGE,
        NotificationKind.GENERIC,
    }
)

# Reserved attribute keys written by the codec and router
RAW_ATTRIBUTE = "raw"
ORIGINAL_KIND_ATTRIBUTE = "original_kind"
PURPOSE_ATTRIBUTE = "purpose"


@dataclass(frozen=True)
class NotificationEnvelope:
    """
    Typed notification payload.

    ``attributes`` is copied into a read-only mapping, so an envelope cannot
    change after it has been handed to the codec. ``created_at`` is left
    as None by callers and stamped by ``encode``.
    """

    kind: str
    entity_id: str | None = None
    secondary_id: str | None = None
    target_route: str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict, hash=False)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def is_generic(self) -> bool:
        return self.kind == NotificationKind.GENERIC

    @property
    def raw(self) -> str | None:
        """Original payload string when this envelope came from a fallback."""
        return self.attributes.get(RAW_ATTRIBUTE)

    @classmethod
    def generic(cls, raw: str, **attributes: str) -> NotificationEnvelope:
        """Minimal envelope carrying an unparseable or unrecognised payload."""
        return cls(
            kind=NotificationKind.GENERIC,
            attributes={**attributes, RAW_ATTRIBUTE: raw},
        )

    def __repr__(self) -> str:
        return (
            f"NotificationEnvelope(kind={self.kind!r}, entity_id={self.entity_id!r}, "
            f"secondary_id={self.secondary_id!r}, target_route={self.target_route!r}, "
            f"attributes={dict(self.attributes)!r}, created_at={self.created_at!r})"
        )
