"""Mesh VPN control-server helpers: MagicDNS, DERP maps, STUN, tags and a key-value store."""

__version__ = "0.1.0"