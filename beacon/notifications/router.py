"""
DispatchRouter — decides which handler receives a tapped notification.

Routing logic, per inbound payload:

    1. Decode the raw string.
       Decode failure → Fallback with a generic envelope carrying the raw text.
    2. Look up a handler by envelope.kind.
       Found     → Dispatched (that handler runs once)
       Not found → Fallback (default handler runs once with the envelope)

dispatch() is total: every input, including None, "" and garbage, ends in
exactly one handler call, and nothing is raised back to the tray callback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from beacon.core.errors import DecodingError
from beacon.notifications.codec import EnvelopeCodec
from beacon.notifications.envelope import NotificationEnvelope

logger = logging.getLogger(__name__)

Handler = Callable[[NotificationEnvelope], None]


class DispatchOutcome(str, Enum):
    DISPATCHED = "dispatched"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DispatchResult:
    """What happened to one tap."""

    outcome: DispatchOutcome
    envelope: NotificationEnvelope
    reason: str | None = None  # why we fell back
    error: str | None = None  # handler exception, if any

    @property
    def ok(self) -> bool:
        return self.error is None


def _log_only(envelope: NotificationEnvelope) -> None:
    logger.warning(f"No default handler; dropped notification of kind {envelope.kind!r}")


class DispatchRouter:
    """
    Routes tapped notifications to handlers by kind.

    Usage:
        router = DispatchRouter(default_handler=go_home)
        router.register("task_deadline", open_task)
        router.register("message", open_chat)

        router.dispatch(raw_payload)

    register() overwrites: registering a second handler for a kind silently
    replaces the first (last write wins, logged at INFO).
    """

    def __init__(
        self,
        default_handler: Handler | None = None,
        codec: EnvelopeCodec | None = None,
    ) -> None:
        self._handlers: dict[str, Handler] = {}
        self._default: Handler = default_handler or _log_only
        self._codec = codec or EnvelopeCodec()

    def register(self, kind: str, handler: Handler) -> None:
        """Register the handler for a kind, replacing any existing one."""
        if kind in self._handlers:
            logger.info(f"Replacing handler for kind {kind!r}")
        self._handlers[kind] = handler
        logger.debug(f"Handler registered for kind {kind!r}")

    def unregister(self, kind: str) -> None:
        """Remove a kind's handler. Taps of that kind then fall back."""
        self._handlers.pop(kind, None)

    def has(self, kind: str) -> bool:
        return kind in self._handlers

    def set_default(self, handler: Handler) -> None:
        self._default = handler

    @property
    def kinds(self) -> list[str]:
        return list(self._handlers)

    def dispatch(self, raw: str | None) -> DispatchResult:
        """Decode and route one tapped payload. Never raises."""
        try:
            envelope = self._codec.decode(raw or "")
        except DecodingError as e:
            logger.info(f"Unparseable notification payload ({e.message}); falling back")
            fallback = NotificationEnvelope.generic(raw if isinstance(raw, str) else "")
            return self._invoke(self._default, fallback, DispatchOutcome.FALLBACK, e.message)
        except Exception as e:
            logger.error(f"Unexpected error decoding payload: {e}", exc_info=e)
            fallback = NotificationEnvelope.generic(raw if isinstance(raw, str) else "")
            return self._invoke(self._default, fallback, DispatchOutcome.FALLBACK, str(e))

        handler = self._handlers.get(envelope.kind)
        if handler is None:
            logger.debug(f"No handler for kind {envelope.kind!r}; falling back")
            return self._invoke(
                self._default,
                envelope,
                DispatchOutcome.FALLBACK,
                f"no handler for kind {envelope.kind!r}",
            )
        return self._invoke(handler, envelope, DispatchOutcome.DISPATCHED)

    @staticmethod
    def _invoke(
        handler: Handler,
        envelope: NotificationEnvelope,
        outcome: DispatchOutcome,
        reason: str | None = None,
    ) -> DispatchResult:
        error = None
        try:
            handler(envelope)
        except Exception as e:
            logger.error(f"Handler for kind {envelope.kind!r} failed: {e}", exc_info=e)
            error = str(e) or type(e).__name__
        return DispatchResult(outcome=outcome, envelope=envelope, reason=reason, error=error)
