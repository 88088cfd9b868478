"""
Rate limiting utilities for Lockbox.

Provides a key function for slowapi that only honours X-Forwarded-For when
the direct peer is a known proxy.
"""
import ipaddress
import os

from fastapi import Request
from slowapi import Limiter


def parse_trusted_proxies(proxy_config: str | None = None) -> list:
    """
    Parse trusted proxies from LOCKBOX_TRUSTED_PROXIES.

    The variable holds a comma-separated list of IP addresses or CIDR
    ranges, e.g. "10.0.0.1,172.16.0.0/12". Invalid entries are skipped.

    Returns:
        List of ip_network objects (single addresses become /32 or /128).
    """
    if proxy_config is None:
        proxy_config = os.getenv("LOCKBOX_TRUSTED_PROXIES", "")

    trusted = []
    for proxy in proxy_config.split(","):
        proxy = proxy.strip()
        if not proxy:
            continue
        try:
            trusted.append(ipaddress.ip_network(proxy, strict=False))
        except ValueError:
            continue
    return trusted


# Cache the trusted proxies at module level to avoid re-parsing on every request
_TRUSTED_PROXIES: list | None = None


def get_trusted_proxies() -> list:
    """Get cached trusted proxies, parsing on first access."""
    global _TRUSTED_PROXIES
    if _TRUSTED_PROXIES is None:
        _TRUSTED_PROXIES = parse_trusted_proxies()
    return _TRUSTED_PROXIES


def is_trusted_proxy(ip: str, trusted: list) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(address in network for network in trusted)


def get_real_client_ip(request: Request) -> str:
    """
    Get the client IP address used as the rate limit key.

    X-Forwarded-For is trusted only when the direct peer is a trusted proxy;
    in that case the rightmost address that is not itself a trusted proxy is
    the client that reached our first proxy.
    """
    direct_client_ip = request.client.host if request.client else "unknown"

    trusted_proxies = get_trusted_proxies()
    if not trusted_proxies or not is_trusted_proxy(direct_client_ip, trusted_proxies):
        return direct_client_ip

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if not x_forwarded_for:
        return direct_client_ip

    ips = [ip.strip() for ip in x_forwarded_for.split(",")]
    for ip in reversed(ips):
        if ip and not is_trusted_proxy(ip, trusted_proxies):
            return ip

    # All IPs in chain are trusted proxies, use the leftmost (original source)
    return ips[0] if ips and ips[0] else direct_client_ip


limiter = Limiter(key_func=get_real_client_ip)
