"""
EnvelopeCodec — NotificationEnvelope ⇄ transport string.

Wire format is a compact JSON object with camelCase keys, since the string
is also read by non-Python clients:

    {"attributes":{"title":"Essay"},"createdAt":"2026-03-02T08:00:00+00:00",
     "entityId":"task_1","kind":"task_deadline","secondaryId":"class_9"}

Absent optional fields are omitted. ``decode`` is strict about structure but
lenient about meaning: a well-formed payload with an unknown ``kind`` comes
back as a generic envelope that still carries the raw string, so the router
can fall back instead of failing.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from beacon.core.errors import DecodingError, EncodingError
from beacon.notifications.envelope import (
    KNOWN_KINDS,
    ORIGINAL_KIND_ATTRIBUTE,
    RAW_ATTRIBUTE,
    NotificationEnvelope,
    NotificationKind,
)

DEFAULT_MAX_PAYLOAD_BYTES = 4096

_KIND = "kind"
_ENTITY_ID = "entityId"
_SECONDARY_ID = "secondaryId"
_TARGET_ROUTE = "targetRoute"
_ATTRIBUTES = "attributes"
_CREATED_AT = "createdAt"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EnvelopeCodec:
    """
    Serializes envelopes for the tray and parses them back on tap.

    Usage:
        codec = EnvelopeCodec(extra_kinds=["grade_posted"])
        payload = codec.encode(envelope)
        envelope = codec.decode(payload)
    """

    def __init__(
        self,
        extra_kinds: Iterable[str] = (),
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kinds = KNOWN_KINDS | frozenset(extra_kinds)
        self._max_payload_bytes = max_payload_bytes
        self._clock = clock

    @property
    def kinds(self) -> frozenset[str]:
        return self._kinds

    def is_known(self, kind: str) -> bool:
        return kind in self._kinds

    def stamp(self, envelope: NotificationEnvelope) -> NotificationEnvelope:
        """Envelope with ``created_at`` filled from the codec clock if unset."""
        if envelope.created_at is not None:
            return envelope
        return replace(envelope, created_at=self._clock())

    # ── Encode ────────────────────────────────────────────────────────────────

    def encode(self, envelope: NotificationEnvelope) -> str:
        """
        Produce the transport string for an envelope.

        Stamps ``createdAt`` with the codec clock when the envelope has none.

        Raises:
            EncodingError: empty or unknown kind, missing entity id,
                non-string fields, or a payload over the size limit.
        """
        kind = envelope.kind
        if not isinstance(kind, str) or not kind:
            raise EncodingError("Envelope kind must be a non-empty string")
        if kind not in self._kinds:
            raise EncodingError(f"Unknown envelope kind: {kind!r}", {"kind": kind})
        if kind != NotificationKind.GENERIC and not envelope.entity_id:
            raise EncodingError(
                f"Envelope of kind {kind!r} requires an entity id", {"kind": kind}
            )

        data: dict[str, Any] = {_KIND: kind}
        for key, value in (
            (_ENTITY_ID, envelope.entity_id),
            (_SECONDARY_ID, envelope.secondary_id),
            (_TARGET_ROUTE, envelope.target_route),
        ):
            if value is None:
                continue
            if not isinstance(value, str):
                raise EncodingError(
                    f"Envelope field {key!r} must be a string, got {type(value).__name__}"
                )
            data[key] = value

        attributes = {}
        for key, value in envelope.attributes.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise EncodingError(
                    f"Attribute {key!r} must map a string to a string",
                    {"key": repr(key), "type": type(value).__name__},
                )
            attributes[key] = value
        if attributes:
            data[_ATTRIBUTES] = attributes

        created_at = envelope.created_at or self._clock()
        if not isinstance(created_at, datetime):
            raise EncodingError("Envelope created_at must be a datetime")
        data[_CREATED_AT] = created_at.isoformat()

        payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
        try:
            size = len(payload.encode("utf-8"))
        except UnicodeEncodeError as e:
            raise EncodingError(f"Envelope holds text that is not valid UTF-8: {e.reason}") from e
        if size > self._max_payload_bytes:
            raise EncodingError(
                f"Encoded envelope is {size} bytes (limit {self._max_payload_bytes})",
                {"size": size, "limit": self._max_payload_bytes},
            )
        return payload

    # ── Decode ────────────────────────────────────────────────────────────────

    def decode(self, raw: str) -> NotificationEnvelope:
        """
        Parse a transport string.

        Raises:
            DecodingError: empty input, malformed JSON, a non-object
                document, a missing kind, badly typed fields, or a known
                kind without its entity id.
        """
        if not isinstance(raw, str) or not raw.strip():
            raise DecodingError("Empty notification payload")

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise DecodingError(f"Payload is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise DecodingError(
                f"Payload must be a JSON object, got {type(data).__name__}"
            )

        kind = data.get(_KIND)
        if not isinstance(kind, str) or not kind:
            raise DecodingError("Payload is missing a 'kind'")

        entity_id = _optional_str(data, _ENTITY_ID)
        secondary_id = _optional_str(data, _SECONDARY_ID)
        target_route = _optional_str(data, _TARGET_ROUTE)
        attributes = _attributes(data)
        created_at = _created_at(data)

        if kind not in self._kinds:
            attributes[ORIGINAL_KIND_ATTRIBUTE] = kind
            attributes[RAW_ATTRIBUTE] = raw
            kind = NotificationKind.GENERIC
        elif kind != NotificationKind.GENERIC and not entity_id:
            raise DecodingError(f"Payload of kind {kind!r} is missing 'entityId'")

        return NotificationEnvelope(
            kind=kind,
            entity_id=entity_id,
            secondary_id=secondary_id,
            target_route=target_route,
            attributes=attributes,
            created_at=created_at,
        )


# ── Field helpers ─────────────────────────────────────────────────────────────


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise DecodingError(f"Payload field {key!r} must be a string")


def _attributes(data: dict) -> dict[str, str]:
    value = data.get(_ATTRIBUTES)
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
        raise DecodingError("Payload 'attributes' must be an object of strings")
    return dict(value)


def _created_at(data: dict) -> datetime | None:
    value = data.get(_CREATED_AT)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodingError("Payload 'createdAt' must be an ISO-8601 string")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise DecodingError(f"Payload 'createdAt' is not ISO-8601: {value!r}") from e


_default_codec = EnvelopeCodec()


def encode(envelope: NotificationEnvelope) -> str:
    """Encode with the default codec (built-in kinds, 4 KiB limit)."""
    return _default_codec.encode(envelope)


def decode(raw: str) -> NotificationEnvelope:
    """Decode with the default codec."""
    return _default_codec.decode(raw)
