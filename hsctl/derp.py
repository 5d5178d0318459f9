"""DERP relay maps: loading, merging and the embedded server's region."""

from __future__ import annotations

import json
import logging
import socket
import urllib.request
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlsplit

import yaml

logger = logging.getLogger(__name__)

DEFAULT_URL_TIMEOUT = 30.0

_NODE_FIELDS = {
    "name": "Name",
    "region_id": "RegionID",
    "host_name": "HostName",
    "cert_name": "CertName",
    "ipv4": "IPv4",
    "ipv6": "IPv6",
    "stun_port": "STUNPort",
    "stun_only": "STUNOnly",
    "derp_port": "DERPPort",
}
_NODE_ALWAYS = {"name", "region_id", "host_name"}


def _lower_keys(data: Optional[dict]) -> dict:
    return {str(key).lower(): value for key, value in (data or {}).items()}


@dataclass
class DERPNode:
    """A single relay server within a region."""

    name: str = ""
    region_id: int = 0
    host_name: str = ""
    cert_name: str = ""
    ipv4: str = ""
    ipv6: str = ""
    stun_port: int = 0
    stun_only: bool = False
    derp_port: int = 0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DERPNode":
        lowered = _lower_keys(data)
        values = {
            attr: lowered[key.lower()]
            for attr, key in _NODE_FIELDS.items()
            if lowered.get(key.lower()) is not None
        }
        return cls(**values)

    def to_dict(self) -> dict:
        result = {}
        for attr, key in _NODE_FIELDS.items():
            value = getattr(self, attr)
            if attr in _NODE_ALWAYS or value:
                result[key] = value
        return result


@dataclass
class DERPRegion:
    """A geographic region holding one or more relay nodes."""

    region_id: int = 0
    region_code: str = ""
    region_name: str = ""
    avoid: bool = False
    nodes: list[DERPNode] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DERPRegion":
        lowered = _lower_keys(data)
        return cls(
            region_id=int(lowered.get("regionid") or 0),
            region_code=lowered.get("regioncode") or "",
            region_name=lowered.get("regionname") or "",
            avoid=bool(lowered.get("avoid") or False),
            nodes=[DERPNode.from_dict(node) for node in lowered.get("nodes") or []],
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "RegionID": self.region_id,
            "RegionCode": self.region_code,
            "RegionName": self.region_name,
        }
        if self.avoid:
            result["Avoid"] = True
        result["Nodes"] = [node.to_dict() for node in self.nodes]
        return result


@dataclass
class DERPMap:
    """The set of relay regions offered to clients, keyed by region ID."""

    regions: dict[int, DERPRegion] = field(default_factory=dict)
    omit_default_regions: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DERPMap":
        """Build a map from decoded JSON or YAML; key case is ignored."""
        lowered = _lower_keys(data)
        regions = {
            int(region_id): DERPRegion.from_dict(region)
            for region_id, region in (lowered.get("regions") or {}).items()
        }
        return cls(
            regions=regions,
            omit_default_regions=bool(lowered.get("omitdefaultregions") or False),
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "Regions": {
                str(region_id): region.to_dict()
                for region_id, region in self.regions.items()
            }
        }
        if self.omit_default_regions:
            result["OmitDefaultRegions"] = True
        return result


@dataclass
class DERPConfig:
    """Where DERP maps come from and how the embedded server is set up."""

    paths: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    server_enabled: bool = False
    server_region_id: int = 0
    server_region_code: str = ""
    server_region_name: str = ""
    stun_addr: str = ""
    update_frequency: timedelta = timedelta(hours=24)
    url_timeout: float = DEFAULT_URL_TIMEOUT


def load_derp_map_from_path(path: str) -> DERPMap:
    """Read a DERP map from a YAML file."""
    with open(path, "rb") as handle:
        data = yaml.safe_load(handle.read())
    return DERPMap.from_dict(data)


def load_derp_map_from_url(url: str, timeout: float = DEFAULT_URL_TIMEOUT) -> DERPMap:
    """Fetch a DERP map encoded as JSON over HTTP."""
    request = urllib.request.Request(url, method="GET")
    with urllib.request.urlopen(request, timeout=timeout) as response:
        body = response.read()
    return DERPMap.from_dict(json.loads(body))


def merge_derp_maps(derp_maps: Iterable[DERPMap]) -> DERPMap:
    """Merge the regions of several maps; a later map wins on a shared ID."""
    result = DERPMap()
    for derp_map in derp_maps:
        result.regions.update(derp_map.regions)
    return result


def get_derp_map(cfg: DERPConfig) -> DERPMap:
    """Load every configured map and merge them.

    Loading stops at the first path, and at the first URL, that fails.
    """
    derp_maps = []
    for path in cfg.paths:
        logger.debug("Loading DERPMap from path %s", path)
        try:
            derp_maps.append(load_derp_map_from_path(path))
        except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as exc:
            logger.error("Could not load DERP map from path %s: %s", path, exc)
            break

    for url in cfg.urls:
        logger.debug("Loading DERPMap from url %s", url)
        try:
            derp_maps.append(load_derp_map_from_url(url, cfg.url_timeout))
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.error("Could not load DERP map from url %s: %s", url, exc)
            break

    derp_map = merge_derp_maps(derp_maps)
    if not derp_map.regions:
        logger.warning(
            "DERP map is empty, not a single DERP map datasource was loaded "
            "correctly or contained a region"
        )
    return derp_map


def _split_host_port(hostport: str) -> tuple[str, str]:
    """Split ``host:port``, rejecting input that lacks a port."""
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        host, rest = hostport[1:end], hostport[end + 1:]
        if not rest.startswith(":"):
            raise ValueError(f"address {hostport}: missing port in address")
        port = rest[1:]
    else:
        if ":" not in hostport:
            raise ValueError(f"address {hostport}: missing port in address")
        host, _, port = hostport.rpartition(":")
        if ":" in host:
            raise ValueError(f"address {hostport}: too many colons in address")
    if ":" in port:
        raise ValueError(f"address {hostport}: too many colons in address")
    return host, port


def _parse_port(port: str) -> int:
    if not port.lstrip("+-").isdigit():
        raise ValueError(f"invalid port {port!r}")
    return int(port)


def generate_region_local_derp(
    server_url: str,
    region_id: int,
    region_code: str,
    region_name: str,
    stun_addr: str,
) -> DERPRegion:
    """Describe the embedded DERP server as a region with a single node."""
    parsed = urlsplit(server_url)
    netloc = parsed.netloc.rpartition("@")[2]
    try:
        host, port_str = _split_host_port(netloc)
    except ValueError:
        host = netloc
        port = 443 if parsed.scheme == "https" else 80
    else:
        port = _parse_port(port_str)

    _, stun_port_str = _split_host_port(stun_addr)
    stun_port = _parse_port(stun_port_str)

    region = DERPRegion(
        region_id=region_id,
        region_code=region_code,
        region_name=region_name,
        avoid=False,
        nodes=[
            DERPNode(
                name=str(region_id),
                region_id=region_id,
                host_name=host,
                derp_port=port,
                stun_port=stun_port,
            )
        ],
    )
    logger.info("DERP region: %s", region)
    return region


def derp_probe_response(method: str) -> tuple[int, dict[str, str], bytes]:
    """Answer a latency probe: status, headers and body."""
    if method in ("HEAD", "GET"):
        return 200, {"Access-Control-Allow-Origin": "*"}, b""
    return 405, {}, b"bogus probe method"


def _resolve_host(host: str) -> list[str]:
    addresses: list[str] = []
    for *_, sockaddr in socket.getaddrinfo(host, None):
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def bootstrap_dns_entries(
    derp_map: DERPMap,
    resolve: Optional[Callable[[str], list[str]]] = None,
) -> dict[str, list[str]]:
    """Resolve the host name of every node; failed lookups are left out."""
    lookup = resolve or _resolve_host
    entries: dict[str, list[str]] = {}
    for region in derp_map.regions.values():
        for node in region.nodes:
            try:
                addresses = lookup(node.host_name)
            except (OSError, ValueError) as exc:
                logger.debug("bootstrap DNS lookup failed %r: %s", node.host_name, exc)
                continue
            entries[node.host_name] = [str(address) for address in addresses]
    return entries