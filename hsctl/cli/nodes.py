"""Turning machine listings into the table shown by the nodes command."""

from __future__ import annotations

import base64
import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from hsctl.cli.output import (
    HEADSCALE_DATETIME_FORMAT,
    light_green,
    light_magenta,
    light_red,
    light_yellow,
)

NODE_PUBLIC_KEY_PREFIX = "nodekey:"
NODE_KEY_LENGTH = 32
ONLINE_WINDOW = timedelta(minutes=5)

TABLE_HEADER = [
    "ID",
    "Hostname",
    "Name",
    "NodeKey",
    "Namespace",
    "IP addresses",
    "Ephemeral",
    "Last seen",
    "Online",
    "Expired",
]
TAG_HEADER = ["ForcedTags", "InvalidTags", "ValidTags"]


@dataclass
class NodeRecord:
    """A machine as reported by the server's listing call."""

    id: int
    name: str
    node_key: str
    namespace: str
    given_name: str = ""
    ip_addresses: list[str] = field(default_factory=list)
    ephemeral: bool = False
    last_seen: Optional[datetime] = None
    expiry: Optional[datetime] = None
    forced_tags: list[str] = field(default_factory=list)
    invalid_tags: list[str] = field(default_factory=list)
    valid_tags: list[str] = field(default_factory=list)


def _ensure_prefix(node_key: str) -> str:
    if node_key.startswith(NODE_PUBLIC_KEY_PREFIX):
        return node_key
    return NODE_PUBLIC_KEY_PREFIX + node_key


def _parse_node_key(node_key: str) -> bytes:
    text = _ensure_prefix(node_key)[len(NODE_PUBLIC_KEY_PREFIX):]
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise ValueError(f"invalid node key {node_key!r}: {exc}") from exc
    if len(raw) != NODE_KEY_LENGTH:
        raise ValueError(
            f"invalid node key {node_key!r}: expected {NODE_KEY_LENGTH} bytes"
        )
    return raw


def node_key_short_string(node_key: str) -> str:
    """Return the short form of a node key, e.g. ``[abcde]``.

    The ``nodekey:`` prefix is optional. An all-zero key gives ``""``.
    """
    raw = _parse_node_key(node_key)
    if not any(raw):
        return ""
    return "[" + base64.b64encode(raw).decode("ascii")[:5] + "]"


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _join_tags(tags: Iterable[str]) -> str:
    return ",".join(tags)


def _node_row(
    machine: NodeRecord, current_namespace: str, show_tags: bool, now: datetime
) -> list[str]:
    last_seen_text = ""
    online = light_red("offline")
    if machine.last_seen is not None:
        last_seen = _aware(machine.last_seen)
        last_seen_text = machine.last_seen.strftime(HEADSCALE_DATETIME_FORMAT)
        if last_seen > now - ONLINE_WINDOW:
            online = light_green("online")

    if machine.expiry is None or _aware(machine.expiry) > now:
        expired = light_green("no")
    else:
        expired = light_red("yes")

    if current_namespace == "" or current_namespace == machine.namespace:
        namespace = light_magenta(machine.namespace)
    else:
        # Shared into this namespace.
        namespace = light_yellow(machine.namespace)

    ipv4 = ipv6 = ""
    for address in machine.ip_addresses:
        if ipaddress.ip_address(address).version == 4:
            ipv4 = address
        else:
            ipv6 = address

    row = [
        str(machine.id),
        machine.name,
        machine.given_name,
        node_key_short_string(machine.node_key),
        namespace,
        ", ".join([ipv4, ipv6]),
        "true" if machine.ephemeral else "false",
        last_seen_text,
        online,
        expired,
    ]
    if show_tags:
        forced = set(machine.forced_tags)
        row += [
            _join_tags(machine.forced_tags),
            _join_tags(light_red(t) for t in machine.invalid_tags if t not in forced),
            _join_tags(light_green(t) for t in machine.valid_tags if t not in forced),
        ]
    return row


def nodes_to_table(
    current_namespace: str,
    show_tags: bool,
    machines: Iterable[NodeRecord],
    now: Optional[datetime] = None,
) -> list[list[str]]:
    """Build table rows (header first) for a list of machines.

    Raises ``ValueError`` when a machine carries a malformed node key.
    """
    moment = _aware(now) if now is not None else datetime.now(timezone.utc)
    header = TABLE_HEADER + (TAG_HEADER if show_tags else [])
    return [list(header)] + [
        _node_row(machine, current_namespace, show_tags, moment)
        for machine in machines
    ]