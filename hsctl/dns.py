"""MagicDNS root domains and per-machine DNS configuration."""

from __future__ import annotations

import copy
import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Union

BYTE_SIZE = 8
IPV4_ADDRESS_LENGTH = 32
IPV6_ADDRESS_LENGTH = 128

_NIBBLE_LEN = 4
_MAX_NAME_LENGTH = 254
_MAX_LABEL_LENGTH = 63

PrefixLike = Union[str, ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass(frozen=True)
class Namespace:
    """A namespace (user) that machines belong to."""

    name: str
    id: int = 0
    created_at: Optional[datetime] = None


@dataclass
class Machine:
    """A machine registered in a namespace."""

    hostname: str
    namespace: Namespace
    id: int = 0
    given_name: str = ""
    machine_key: str = ""
    node_key: str = ""
    ip_addresses: list[str] = field(default_factory=list)


@dataclass
class DNSConfig:
    """The DNS settings sent to clients in a map response."""

    routes: dict[str, Optional[list[str]]] = field(default_factory=dict)
    domains: list[str] = field(default_factory=list)
    proxied: bool = False
    nameservers: list[str] = field(default_factory=list)

    def clone(self) -> "DNSConfig":
        """Return a deep copy of this configuration."""
        return copy.deepcopy(self)


def _to_fqdn(name: str) -> str:
    """Validate a DNS name and return it with a trailing dot."""
    fqdn = name if name.endswith(".") else name + "."
    if len(fqdn) > _MAX_NAME_LENGTH:
        raise ValueError(f"{name!r} is too long to be a DNS name")
    for label in fqdn[:-1].split("."):
        if not label:
            raise ValueError(f"{name!r} contains an empty label")
        if len(label) > _MAX_LABEL_LENGTH:
            raise ValueError(f"label {label!r} in {name!r} is too long")
    return fqdn


def _as_network(prefix: PrefixLike) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
    return ipaddress.ip_network(prefix, strict=False)


def generate_magic_dns_root_domains(prefixes: Iterable[PrefixLike]) -> list[str]:
    """Return the reverse DNS root domains covering every prefix, in order."""
    fqdns: list[str] = []
    for prefix in prefixes:
        network = _as_network(prefix)
        bit_len = network.max_prefixlen
        if bit_len == IPV4_ADDRESS_LENGTH:
            fqdns.extend(generate_ipv4_dns_root_domain(network))
        elif bit_len == IPV6_ADDRESS_LENGTH:
            fqdns.extend(generate_ipv6_dns_root_domain(network))
        else:
            raise ValueError(f"unsupported IP version with address length {bit_len}")
    return fqdns


def generate_ipv4_dns_root_domain(prefix: PrefixLike) -> list[str]:
    """Return the in-addr.arpa domains of the class block following the mask."""
    network = _as_network(prefix)
    mask_bits = network.prefixlen
    octets = network.network_address.packed

    last_octet = mask_bits // BYTE_SIZE
    if last_octet >= len(octets):
        raise ValueError(f"prefix {network} covers no wildcard octet")
    wildcard_bits = BYTE_SIZE - mask_bits % BYTE_SIZE

    low = octets[last_octet]
    high = low + (1 << wildcard_bits) - 1

    base_labels = [str(octet) for octet in reversed(octets[:last_octet])]
    rdns_base = ".".join([*base_labels, "in-addr.arpa."])

    fqdns = []
    for value in range(low, high + 1):
        try:
            fqdns.append(_to_fqdn(f"{value}.{rdns_base}"))
        except ValueError:
            continue
    return fqdns


def generate_ipv6_dns_root_domain(prefix: PrefixLike) -> list[str]:
    """Return the ip6.arpa domains covering an IPv6 prefix."""
    network = _as_network(prefix)
    mask_bits = network.prefixlen
    nibbles = network.network_address.exploded.replace(":", "")

    constant_parts = list(reversed(nibbles[: mask_bits // _NIBBLE_LEN]))

    def make_domain(*variable: str) -> str:
        labels = ".".join([*variable, *constant_parts])
        return _to_fqdn(f"{labels}.ip6.arpa")

    remainder = mask_bits % _NIBBLE_LEN
    variable_nibbles = [()] if remainder == 0 else [
        (format(value, "x"),) for value in range(1 << remainder)
    ]

    fqdns = []
    for variable in variable_nibbles:
        try:
            fqdns.append(make_domain(*variable))
        except ValueError:
            continue
    return fqdns


def get_map_response_dns_config(
    dns_config: Optional[DNSConfig],
    base_domain: str,
    machine: Machine,
    peers: Iterable[Machine],
) -> Optional[DNSConfig]:
    """Build the DNS configuration sent to ``machine``.

    With MagicDNS enabled, a copy of ``dns_config`` is returned with the
    machine's namespace search domain and a route for every namespace among
    the machine and its peers. Otherwise ``dns_config`` itself is returned.
    """
    if dns_config is None or not dns_config.proxied:
        return dns_config

    config = dns_config.clone()
    config.domains.append(f"{machine.namespace.name}.{base_domain}")

    namespaces = {machine.namespace}
    namespaces.update(peer.namespace for peer in peers)
    for namespace in namespaces:
        config.routes[f"{namespace.name}.{base_domain}"] = None

    return config