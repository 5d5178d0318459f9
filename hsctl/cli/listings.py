"""Tables shown by the routes, preauthkeys and namespaces commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from hsctl.cli.output import HEADSCALE_DATETIME_FORMAT, colour_time

ROUTES_HEADER = ["Route", "Enabled"]
PREAUTHKEYS_HEADER = [
    "ID",
    "Key",
    "Reusable",
    "Ephemeral",
    "Used",
    "Expiration",
    "Created",
    "Tags",
]
NAMESPACES_HEADER = ["ID", "Name", "Created"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class RouteSet:
    """The routes a machine advertises and those that are enabled."""

    advertised_routes: list[str] = field(default_factory=list)
    enabled_routes: list[str] = field(default_factory=list)


@dataclass
class PreAuthKeyRecord:
    """A pre-auth key as reported by the server's listing call."""

    id: str
    key: str
    reusable: bool = False
    ephemeral: bool = False
    used: bool = False
    expiration: Optional[datetime] = None
    created_at: Optional[datetime] = None
    acl_tags: list[str] = field(default_factory=list)


@dataclass
class NamespaceRecord:
    """A namespace as reported by the server's listing call."""

    id: str
    name: str
    created_at: Optional[datetime] = None


def _aware_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _format_created(moment: Optional[datetime]) -> str:
    value = _EPOCH if moment is None else _aware_utc(moment)
    return value.strftime(HEADSCALE_DATETIME_FORMAT)


def routes_to_table(routes: Optional[RouteSet]) -> list[list[str]]:
    """Build table rows (header first) listing each advertised route."""
    rows = [list(ROUTES_HEADER)]
    if routes is None:
        return rows
    enabled = set(routes.enabled_routes)
    rows.extend(
        [route, str(route in enabled).lower()] for route in routes.advertised_routes
    )
    return rows


def preauthkeys_to_table(
    keys: Iterable[PreAuthKeyRecord], now: Optional[datetime] = None
) -> list[list[str]]:
    """Build table rows (header first) for a list of pre-auth keys.

    Expirations are coloured green when still in the future relative to
    ``now``; the reusable column reads ``N/A`` for ephemeral keys.
    """
    moment = datetime.now(timezone.utc) if now is None else _aware_utc(now)
    rows = [list(PREAUTHKEYS_HEADER)]
    for key in keys:
        expiration = "-"
        if key.expiration is not None:
            expiration = colour_time(_aware_utc(key.expiration), moment)
        reusable = "N/A" if key.ephemeral else str(bool(key.reusable)).lower()
        tags = "".join("," + tag for tag in key.acl_tags).lstrip(",")
        rows.append(
            [
                key.id,
                key.key,
                reusable,
                str(bool(key.ephemeral)).lower(),
                str(bool(key.used)).lower(),
                expiration,
                _format_created(key.created_at),
                tags,
            ]
        )
    return rows


def namespaces_to_table(namespaces: Iterable[NamespaceRecord]) -> list[list[str]]:
    """Build table rows (header first) for a list of namespaces."""
    rows = [list(NAMESPACES_HEADER)]
    rows.extend(
        [namespace.id, namespace.name, _format_created(namespace.created_at)]
        for namespace in namespaces
    )
    return rows