"""Client identity resolution for per-client quotas.

The client key is a best-effort network address, resolved in this order
(first match wins):

1. First entry of ``X-Forwarded-For``, if it is a valid IP address.
2. ``X-Real-IP``, if it is a valid IP address.
3. The transport peer address, with ``::1`` mapped to ``127.0.0.1`` and
   IPv4-mapped IPv6 (``::ffff:a.b.c.d``) reduced to the IPv4 literal.
4. ``127.0.0.1``.

IPv6 zone suffixes (``fe80::1%eth0``) are dropped at every step.

Security note: both headers are taken at face value. A caller that reaches
the service directly (not through a trusted proxy that overwrites them) can
pick its own key and dodge its quota. Deploy behind such a proxy.
"""

from __future__ import annotations

import ipaddress

from fastapi import Request

FORWARDED_FOR_HEADER = "X-Forwarded-For"
REAL_IP_HEADER = "X-Real-IP"
FALLBACK_CLIENT_KEY = "127.0.0.1"

_IPV6_LOOPBACK = "::1"
_IPV4_MAPPED_PREFIX = "::ffff:"


def _canonical_ip(value: str) -> str | None:
    """Return ``value`` without an IPv6 zone suffix if it is an IP address.

    ``ipaddress`` accepts scoped literals such as ``fe80::1%eth0``; the zone
    names a local interface, not a client, so it is dropped from the key.
    """
    address = value.split("%", 1)[0]
    try:
        ipaddress.ip_address(address)
    except ValueError:
        return None
    return address


def normalize_peer_address(address: str) -> str:
    """Normalize a transport peer address into a client key.

    Examples:
        >>> normalize_peer_address("::1")
        '127.0.0.1'
        >>> normalize_peer_address("::ffff:10.0.0.7")
        '10.0.0.7'
        >>> normalize_peer_address("2001:db8::1")
        '2001:db8::1'
        >>> normalize_peer_address("fe80::1%eth0")
        'fe80::1'
    """
    address = address.split("%", 1)[0]
    if address == _IPV6_LOOPBACK:
        return FALLBACK_CLIENT_KEY
    if address.lower().startswith(_IPV4_MAPPED_PREFIX):
        return address[len(_IPV4_MAPPED_PREFIX):]
    return address


def resolve_client_key(request: Request) -> str:
    """Derive the quota key for the caller of ``request``. Never raises."""

    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        key = _canonical_ip(first)
        if key:
            return key

    real_ip = (request.headers.get(REAL_IP_HEADER) or "").strip()
    key = _canonical_ip(real_ip) if real_ip else None
    if key:
        return key

    peer = request.client.host if request.client else None
    if peer:
        return normalize_peer_address(peer) or FALLBACK_CLIENT_KEY

    return FALLBACK_CLIENT_KEY
