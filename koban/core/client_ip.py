"""
Client address detection behind proxies and CDNs.

The socket peer is the only candidate unless trust_proxy_headers is on. Then
the Forwarded header, the usual CDN client-ip headers and X-Forwarded-For are
considered too, and public addresses win unless ip_preference is "private".
"""

import ipaddress
import re

from fastapi import Request

from koban.config import settings

DIRECT_IP_HEADERS = (
    "cf-connecting-ip",
    "true-client-ip",
    "x-real-ip",
    "x-client-ip",
    "fastly-client-ip",
    "x-cluster-client-ip",
    "fly-client-ip",
)

_FORWARDED_FOR = re.compile(r"for=([^;,]+)", re.IGNORECASE)


def normalize_ip(raw: str | None) -> str:
    """Strip brackets, ports and the IPv4-mapped IPv6 prefix."""
    if not raw:
        return ""
    ip = str(raw).strip().strip('"')

    if ip.startswith("["):
        end = ip.find("]")
        if end != -1:
            ip = ip[1:end]
    elif ip.count(":") == 1:
        # IPv4 with port
        ip = ip.split(":", 1)[0]

    if ip.lower().startswith("::ffff:"):
        ip = ip[7:]
    return ip


def is_valid_ip(ip: str) -> bool:
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return False
    return True


def is_private_ip(ip: str) -> bool:
    """Loopback, RFC1918, link-local and IPv6 unique-local count as private."""
    if not ip:
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return address.is_private or address.is_loopback or address.is_link_local


def _header_candidates(request: Request) -> list[str]:
    headers = request.headers
    candidates: list[str] = []

    forwarded = headers.get("forwarded")
    if forwarded:
        candidates.extend(match.strip() for match in _FORWARDED_FOR.findall(forwarded))

    for name in DIRECT_IP_HEADERS:
        value = headers.get(name)
        if value:
            candidates.append(value)

    xff = headers.get("x-forwarded-for")
    if xff:
        candidates.extend(part.strip() for part in xff.split(",") if part.strip())

    return candidates


def _candidates(request: Request, preference: str, trust_headers: bool) -> list[str]:
    socket_candidates = [request.client.host] if request.client and request.client.host else []
    if not trust_headers:
        return socket_candidates
    header_candidates = _header_candidates(request)

    if preference == "private":
        return socket_candidates + header_candidates
    return header_candidates + socket_candidates


def _first_valid(candidates: list[str], public_only: bool) -> str | None:
    for raw in candidates:
        ip = normalize_ip(raw)
        if is_valid_ip(ip) and not (public_only and is_private_ip(ip)):
            return ip
    return None


def get_ip_variants(
    request: Request,
    preference: str | None = None,
    trust_headers: bool | None = None,
) -> dict[str, str | None]:
    """Return the best public address and the first valid address, for diagnostics."""
    if trust_headers is None:
        trust_headers = settings.trust_proxy_headers
    candidates = _candidates(request, preference or settings.ip_preference, trust_headers)
    return {
        "public_ip": _first_valid(candidates, public_only=True),
        "private_ip": _first_valid(candidates, public_only=False),
    }


def get_client_ip(
    request: Request,
    preference: str | None = None,
    trust_headers: bool | None = None,
) -> str:
    """
    Best-effort client address for audit and rate limiting.

    Headers are client-controlled, so they only count when a trusted proxy
    sets them. Returns "unknown" when no candidate parses as an IP address.
    """
    preference = preference or settings.ip_preference
    variants = get_ip_variants(request, preference, trust_headers)

    if preference == "private":
        chosen = variants["private_ip"] or variants["public_ip"]
    else:
        chosen = variants["public_ip"] or variants["private_ip"]
    return chosen or "unknown"
