"""A minimal STUN binding server (RFC 5389)."""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import time
import zlib
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

MAGIC_COOKIE = b"\x21\x12\xa4\x42"
HEADER_LEN = 20
TXID_LEN = 12

_BINDING_REQUEST = 0x0001
_BINDING_SUCCESS = 0x0101
_ATTR_XOR_MAPPED_ADDRESS = 0x0020
_ATTR_FINGERPRINT = 0x8028
_FINGERPRINT_XOR = 0x5354554E
_FAMILY_IPV4 = 0x01
_FAMILY_IPV6 = 0x02
_BUFFER_SIZE = 64 << 10


class StunError(ValueError):
    """Raised for packets that are not valid STUN binding requests."""


def is_stun(packet: bytes) -> bool:
    """Report whether ``packet`` carries a STUN header."""
    return (
        len(packet) >= HEADER_LEN
        and packet[0] & 0xC0 == 0
        and bytes(packet[4:8]) == MAGIC_COOKIE
    )


def _attributes(packet: bytes) -> Iterator[tuple[int, bytes, int]]:
    """Yield (type, value, start offset) for each attribute."""
    pos = HEADER_LEN
    while pos < len(packet):
        if pos + 4 > len(packet):
            raise StunError("truncated STUN attribute header")
        attr_type = int.from_bytes(packet[pos:pos + 2], "big")
        length = int.from_bytes(packet[pos + 2:pos + 4], "big")
        end = pos + 4 + length
        if end > len(packet):
            raise StunError("truncated STUN attribute value")
        yield attr_type, bytes(packet[pos + 4:end]), pos
        pos += 4 + ((length + 3) & ~3)


def parse_binding_request(packet: bytes) -> bytes:
    """Validate a binding request and return its transaction ID."""
    if not is_stun(packet):
        raise StunError("not a STUN packet")
    if int.from_bytes(packet[0:2], "big") != _BINDING_REQUEST:
        raise StunError("not a STUN binding request")
    txid = bytes(packet[8:HEADER_LEN])
    for attr_type, value, start in _attributes(packet):
        if attr_type != _ATTR_FINGERPRINT:
            continue
        if len(value) != 4:
            raise StunError("malformed STUN fingerprint")
        expected = (zlib.crc32(bytes(packet[:start])) ^ _FINGERPRINT_XOR) & 0xFFFFFFFF
        if int.from_bytes(value, "big") != expected:
            raise StunError("wrong STUN fingerprint")
    return txid


def binding_response(
    txid: bytes,
    address: Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address],
    port: int,
) -> bytes:
    """Build a success response telling the client its address and port."""
    if len(txid) != TXID_LEN:
        raise ValueError(f"transaction ID must be {TXID_LEN} bytes")
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port {port} out of range")
    addr = ipaddress.ip_address(address)
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped

    if isinstance(addr, ipaddress.IPv4Address):
        family, key = _FAMILY_IPV4, MAGIC_COOKIE
    else:
        family, key = _FAMILY_IPV6, MAGIC_COOKIE + bytes(txid)
    xor_port = port ^ int.from_bytes(MAGIC_COOKIE[:2], "big")
    xor_addr = bytes(a ^ b for a, b in zip(addr.packed, key))

    value = bytes([0, family]) + xor_port.to_bytes(2, "big") + xor_addr
    attribute = (
        _ATTR_XOR_MAPPED_ADDRESS.to_bytes(2, "big")
        + len(value).to_bytes(2, "big")
        + value
    )
    header = (
        _BINDING_SUCCESS.to_bytes(2, "big")
        + len(attribute).to_bytes(2, "big")
        + MAGIC_COOKIE
        + bytes(txid)
    )
    return header + attribute


def serve_stun(sock: socket.socket, stop_event: Optional[threading.Event] = None) -> None:
    """Answer binding requests on a UDP socket until ``stop_event`` is set."""
    stop = stop_event or threading.Event()
    while not stop.is_set():
        try:
            packet, peer = sock.recvfrom(_BUFFER_SIZE)
        except socket.timeout:
            continue
        except OSError as exc:
            if stop.is_set():
                return
            logger.error("STUN ReadFrom: %s", exc)
            time.sleep(1)
            continue

        logger.debug("STUN request from %s", peer)
        if not is_stun(packet):
            logger.debug("UDP packet is not STUN")
            continue
        try:
            txid = parse_binding_request(packet)
        except StunError as exc:
            logger.debug("STUN parse error: %s", exc)
            continue

        host = str(peer[0]).partition("%")[0]
        try:
            sock.sendto(binding_response(txid, host, peer[1]), peer)
        except OSError as exc:
            logger.debug("Issue writing to UDP: %s", exc)