"""
Client address resolution for rate limiting.
"""

from functools import lru_cache
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import Optional, Tuple, Union

from starlette.requests import Request

from burnthread.config import settings

UNKNOWN_CLIENT = "0.0.0.0"


@lru_cache()
def _trusted_networks(raw: str) -> Tuple[Union[IPv4Network, IPv6Network], ...]:
    networks = []
    for cidr in raw.split(","):
        try:
            networks.append(ip_network(cidr.strip(), strict=False))
        except ValueError:
            continue
    return tuple(networks)


def normalize_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(ip_address(value.strip()))
    except ValueError:
        return None


def is_trusted_proxy(address: str) -> bool:
    parsed = ip_address(address)
    return any(parsed in network for network in _trusted_networks(settings.TRUSTED_PROXY_CIDRS_RAW))


def get_client_ip(request: Request) -> str:
    """
    Peer address, or the first X-Forwarded-For hop when the peer is a
    trusted proxy and proxy headers are enabled.
    """
    peer = normalize_ip(request.client.host if request.client else None)
    if peer is None:
        return UNKNOWN_CLIENT

    if settings.TRUST_PROXY_HEADERS and is_trusted_proxy(peer):
        forwarded = request.headers.get("X-Forwarded-For", "")
        candidate = normalize_ip(forwarded.split(",")[0])
        if candidate:
            return candidate

    return peer
