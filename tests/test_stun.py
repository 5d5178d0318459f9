import socket
import threading

import pytest

from hsctl.stun import (
    MAGIC_COOKIE,
    StunError,
    binding_response,
    is_stun,
    parse_binding_request,
    serve_stun,
)

TXID = bytes(range(1, 13))
REQUEST = b"\x00\x01\x00\x00" + MAGIC_COOKIE + TXID


def test_is_stun():
    assert is_stun(REQUEST)
    assert not is_stun(REQUEST[:19])
    assert not is_stun(b"\xc0" + REQUEST[1:])
    assert not is_stun(REQUEST[:4] + b"\x00\x00\x00\x00" + TXID)


def test_parse_binding_request_returns_txid():
    assert parse_binding_request(REQUEST) == TXID


def test_parse_rejects_non_stun():
    with pytest.raises(StunError):
        parse_binding_request(b"hello world, not stun at all")


def test_parse_rejects_other_message_type():
    with pytest.raises(StunError):
        parse_binding_request(b"\x01\x01" + REQUEST[2:])


def test_parse_rejects_truncated_attribute():
    packet = b"\x00\x01\x00\x08" + MAGIC_COOKIE + TXID + b"\x00\x06\x00\x10abcd"
    with pytest.raises(StunError):
        parse_binding_request(packet)


def test_parse_rejects_wrong_fingerprint():
    packet = b"\x00\x01\x00\x08" + MAGIC_COOKIE + TXID + b"\x80\x28\x00\x04\x00\x00\x00\x00"
    with pytest.raises(StunError):
        parse_binding_request(packet)


def test_response_ipv4_layout():
    response = binding_response(TXID, "192.0.2.1", 3478)
    assert is_stun(response)
    assert response[:2] == b"\x01\x01"
    assert int.from_bytes(response[2:4], "big") == len(response) - 20
    assert response[8:20] == TXID
    assert len(response) == 32


def test_response_zero_address_is_cookie():
    response = binding_response(TXID, "0.0.0.0", 0)
    assert response[-8:-4] == b"\x00\x01\x21\x12"
    assert response[-4:] == MAGIC_COOKIE


def test_response_ipv6_and_mapped():
    v6 = binding_response(TXID, "2001:db8::1", 3478)
    assert len(v6) == 44
    assert v6[25] == 2
    mapped = binding_response(TXID, "::ffff:192.0.2.1", 3478)
    assert mapped == binding_response(TXID, "192.0.2.1", 3478)


def test_response_rejects_bad_input():
    with pytest.raises(ValueError):
        binding_response(b"short", "192.0.2.1", 1)
    with pytest.raises(ValueError):
        binding_response(TXID, "192.0.2.1", 70000)


def test_serve_stun_answers_requests():
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    server.settimeout(0.05)
    stop = threading.Event()
    thread = threading.Thread(target=serve_stun, args=(server, stop), daemon=True)
    thread.start()
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.bind(("127.0.0.1", 0))
    client.settimeout(5)
    try:
        client.sendto(b"not stun", server.getsockname())
        client.sendto(REQUEST, server.getsockname())
        data, _ = client.recvfrom(1024)
    finally:
        stop.set()
        thread.join(5)
        server.close()
        client.close()
    assert data == binding_response(TXID, "127.0.0.1", client.getsockname()[1] if False else data and _port_of(data))
    assert not thread.is_alive()


def _port_of(response):
    return int.from_bytes(response[26:28], "big") ^ 0x2112


def test_serve_stun_reports_client_port():
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    server.settimeout(0.05)
    stop = threading.Event()
    thread = threading.Thread(target=serve_stun, args=(server, stop), daemon=True)
    thread.start()
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.bind(("127.0.0.1", 0))
    client.settimeout(5)
    client_port = client.getsockname()[1]
    try:
        client.sendto(REQUEST, server.getsockname())
        data, _ = client.recvfrom(1024)
    finally:
        stop.set()
        thread.join(5)
        server.close()
        client.close()
    assert data == binding_response(TXID, "127.0.0.1", client_port)