"""
URL guard for provider requests.

Rendered provider URLs are checked before any fetch:
- HTTPS only
- Host must belong to the provider's own domain
- Loopback, private and otherwise reserved IP literals are rejected
"""

import ipaddress
from typing import Iterable, Optional, Union
from urllib.parse import urlparse

from ..errors import AggregationError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class UnsafeURLError(AggregationError):
    """Raised when a URL fails the guard. Treated as an adapter failure."""


# Private/reserved IP ranges that should be blocked
BLOCKED_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("224.0.0.0/4"),
    ipaddress.ip_network("240.0.0.0/4"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("::1/128"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
}


def _parse_ip_address(hostname: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        return None


def _is_blocked_ip(ip_addr: IPAddress) -> bool:
    for network in BLOCKED_IP_RANGES:
        if ip_addr.version == network.version and ip_addr in network:
            return True
    return False


def domain_matches(hostname: str, allowed_domains: Iterable[str]) -> bool:
    """Exact or subdomain match ("www.meetup.com" matches "meetup.com")."""
    hostname = hostname.lower()
    for domain in allowed_domains:
        domain = domain.lower()
        if hostname == domain or hostname.endswith("." + domain):
            return True
    return False


def check_url(url: str, allowed_domains: Optional[Iterable[str]] = None) -> str:
    """
    Validate a provider URL.

    Args:
        url: Rendered URL about to be fetched
        allowed_domains: Domains the provider may talk to. None skips the
            allowlist check (IP and scheme rules still apply).

    Returns:
        The URL, stripped

    Raises:
        UnsafeURLError: If the URL is not safe to fetch
    """
    if not url or not isinstance(url, str):
        raise UnsafeURLError("URL must be a non-empty string")

    url = url.strip()
    parsed = urlparse(url)

    if parsed.scheme.lower() != "https":
        raise UnsafeURLError(f"Only HTTPS URLs are allowed (got {parsed.scheme or 'no'} scheme)")

    hostname = parsed.hostname
    if not hostname:
        raise UnsafeURLError("URL must include a hostname")

    hostname_lower = hostname.lower()
    if hostname_lower in BLOCKED_HOSTNAMES or hostname_lower.endswith(".localhost"):
        raise UnsafeURLError(f"Access to {hostname} is blocked (loopback host)")

    ip_addr = _parse_ip_address(hostname)
    if ip_addr and _is_blocked_ip(ip_addr):
        raise UnsafeURLError(f"Access to {hostname} is blocked (private/internal IP address)")

    if allowed_domains is not None and not domain_matches(hostname_lower, allowed_domains):
        raise UnsafeURLError(f"Domain {hostname} is not allowed for this provider")

    return url
