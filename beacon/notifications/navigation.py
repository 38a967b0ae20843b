"""
Navigation handlers — turn a tapped envelope into navigate(route, arguments).

Each kind has a default route and names for the arguments its screen reads.
An envelope's own target_route wins over the table; config overrides sit in
between. Envelopes missing an id their screen needs land on home instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from beacon.adapters.base import Navigator
from beacon.notifications.envelope import (
    ORIGINAL_KIND_ATTRIBUTE,
    PURPOSE_ATTRIBUTE,
    RAW_ATTRIBUTE,
    NotificationEnvelope,
    NotificationKind,
)
from beacon.notifications.router import DispatchRouter, Handler

logger = logging.getLogger(__name__)

_RESERVED = frozenset({RAW_ATTRIBUTE, ORIGINAL_KIND_ATTRIBUTE, PURPOSE_ATTRIBUTE})


@dataclass(frozen=True)
class RouteSpec:
    """Where a kind navigates to and how its ids are passed."""

    route: str
    entity_arg: str | None = None
    secondary_arg: str | None = None
    requires_secondary: bool = False


DEFAULT_ROUTES: dict[str, RouteSpec] = {
    NotificationKind.TASK_DEADLINE: RouteSpec("/task-details", "taskId", "classId", True),
    NotificationKind.TASK_REMINDER: RouteSpec("/task-details", "taskId", "classId", True),
    NotificationKind.NEW_NOTICE: RouteSpec("/notice-details", "noticeId"),
    NotificationKind.NEW_TASK: RouteSpec("/home"),
    NotificationKind.CLASS_UPDATE: RouteSpec("/classroom", "classId"),
    NotificationKind.MESSAGE: RouteSpec("/chat", "userId"),
}


def navigation_arguments(envelope: NotificationEnvelope, spec: RouteSpec) -> dict[str, str]:
    """Screen arguments: display attributes plus the kind's id arguments."""
    args = {k: v for k, v in envelope.attributes.items() if k not in _RESERVED}
    if spec.entity_arg and envelope.entity_id:
        args[spec.entity_arg] = envelope.entity_id
    if spec.secondary_arg and envelope.secondary_id:
        args[spec.secondary_arg] = envelope.secondary_id
    return args


def make_home_handler(navigator: Navigator, home: str = "/home") -> Handler:
    """Default handler: always lands on home with no arguments."""

    def go_home(envelope: NotificationEnvelope) -> None:
        logger.debug(f"Navigating home for {envelope.kind!r}")
        navigator.navigate(home, {})

    return go_home


def make_route_handler(
    navigator: Navigator,
    spec: RouteSpec,
    route: str | None = None,
    home: str = "/home",
) -> Handler:
    """Handler for one kind; ``route`` overrides ``spec.route``."""
    default_route = route or spec.route

    def handle(envelope: NotificationEnvelope) -> None:
        if spec.entity_arg and not envelope.entity_id:
            logger.info(f"{envelope.kind!r} without entity id; navigating home")
            navigator.navigate(home, {})
            return
        if spec.requires_secondary and not envelope.secondary_id:
            logger.info(f"{envelope.kind!r} without {spec.secondary_arg}; navigating home")
            navigator.navigate(home, {})
            return
        navigator.navigate(
            envelope.target_route or default_route,
            navigation_arguments(envelope, spec),
        )

    return handle


def install_navigation(
    router: DispatchRouter,
    navigator: Navigator,
    home: str = "/home",
    overrides: Mapping[str, str] | None = None,
    routes: Mapping[str, RouteSpec] | None = None,
) -> None:
    """Register a route handler per kind and make home the fallback."""
    overrides = overrides or {}
    for kind, spec in (routes or DEFAULT_ROUTES).items():
        router.register(
            kind, make_route_handler(navigator, spec, overrides.get(kind), home)
        )
    router.set_default(make_home_handler(navigator, home))
