"""Client address resolution and allow-list matching."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable

from pagepress.models import InboundRequest

UNKNOWN_IP = "0.0.0.0"


def _valid_ip(value: str | None) -> str | None:
    if not value:
        return None
    candidate = value.strip()
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def resolve_client_ip(request: InboundRequest, trusted_headers: Iterable[str]) -> str:
    """Return the caller's address.

    Proxy headers are consulted in the given order; for ``X-Forwarded-For``
    only the first (client-most) hop is used.  Values that do not parse as
    an IP address are skipped.  Falls back to the socket address, then to
    ``0.0.0.0``.
    """
    for name in trusted_headers:
        raw = request.header(name)
        if raw is None:
            continue
        if name.lower() == "x-forwarded-for":
            raw = raw.split(",")[0]
        ip = _valid_ip(raw)
        if ip is not None:
            return ip
    return _valid_ip(request.remote_addr) or UNKNOWN_IP


class IpAllowList:
    """Exact-address and CIDR matcher for IPv4 and IPv6.

    An empty list admits everything.

    Parameters
    ----------
    entries:
        Addresses or networks, e.g. ``["203.0.113.7", "10.0.0.0/8"]``.
        Entries that fail to parse are ignored; configuration validation
        rejects them up front.
    """

    __slots__ = ("_networks",)

    def __init__(self, entries: Iterable[str]) -> None:
        networks = []
        for entry in entries:
            entry = entry.strip()
            if not entry:
                continue
            try:
                networks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError:
                continue
        self._networks = tuple(networks)

    def __len__(self) -> int:
        return len(self._networks)

    def allows(self, ip: str) -> bool:
        if not self._networks:
            return True
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return any(
            address.version == network.version and address in network
            for network in self._networks
        )
