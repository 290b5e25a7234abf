import hmac
import ipaddress
import logging
import re
import socket
import time
from typing import Iterable, Optional
from urllib.parse import urlsplit

from fastapi import Request, Response, Security
from fastapi.security import APIKeyHeader

from vision_gateway.utils.errors import (
    AuthError,
    CorsError,
    TimestampError,
)

logger = logging.getLogger(__name__)

API_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")
BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False
)


def literal_address(host: str):
    """Parse a host written as an IP literal, including the shorthand forms
    (``2130706433``, ``0x7f.1``, ``017700000001``, ``127.1``) that HTTP
    clients hand to ``inet_aton``. Returns None for ordinary hostnames.
    """
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        try:
            address = ipaddress.ip_address(socket.inet_aton(host))
        except (OSError, ValueError):
            return None
    if address.version == 6 and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def check_image_url(url: str) -> str:
    """Accept only absolute http(s) URLs that do not target internal hosts.

    Only literal addresses and well-known local hostnames are rejected; names
    are not resolved through DNS here.
    """
    url = url.strip()
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https"):
        raise ValueError("must be an absolute http or https URL")
    host = (parts.hostname or "").rstrip(".")
    if not host:
        raise ValueError("must be an absolute http or https URL")
    if host in BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        raise ValueError("must not point to a local or private network address")
    address = literal_address(host)
    if address is None:
        return url
    if (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
    ):
        raise ValueError("must not point to a local or private network address")
    return url


def check_api_key(api_key: Optional[str], known_keys: Iterable[str]) -> str:
    """Walk the key states: present, well-formed, then known"""
    if not api_key:
        raise AuthError("API key required in X-API-Key header", code="MISSING_API_KEY")

    if not API_KEY_PATTERN.match(api_key):
        raise AuthError(
            "API key must be 64 hexadecimal characters",
            code="INVALID_API_KEY_FORMAT"
        )

    keys = list(known_keys)
    if not keys:
        # Open mode: no allow-list configured
        return api_key

    # Use constant-time comparison to prevent timing attacks
    provided_key_bytes = api_key.encode()
    matched = False
    for expected in keys:
        if hmac.compare_digest(expected.encode(), provided_key_bytes):
            matched = True
    if not matched:
        raise AuthError("Invalid API key", code="INVALID_API_KEY")
    return api_key


def check_timestamp(
    raw_timestamp: Optional[str],
    tolerance_ms: int,
    required: bool = False,
    now_ms: Optional[int] = None,
) -> Optional[int]:
    """Validate an X-Timestamp header given in Unix milliseconds"""
    if raw_timestamp is None or raw_timestamp == "":
        if required:
            raise TimestampError("X-Timestamp header is required")
        return None

    try:
        timestamp = int(raw_timestamp.strip())
    except ValueError:
        raise TimestampError("X-Timestamp must be a Unix timestamp in milliseconds")

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if timestamp > now_ms:
        raise TimestampError("X-Timestamp must not be in the future")
    if now_ms - timestamp > tolerance_ms:
        raise TimestampError(
            f"X-Timestamp is older than {tolerance_ms // 1000} seconds"
        )
    return timestamp


def check_origin(origin: Optional[str], allowed_origins: Iterable[str]) -> None:
    allowed = [o.rstrip("/") for o in allowed_origins]
    if not origin or not allowed or "*" in allowed:
        return
    if origin.rstrip("/") not in allowed:
        raise CorsError(f"Origin {origin} is not allowed")


def client_address(request: Request, trust_forwarded_for: bool = False) -> str:
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def _apply_rate_limit(request: Request, response: Response, identity: str) -> None:
    limiter = request.app.state.rate_limiter
    status = await limiter.check(identity)
    response.headers.update(status.headers())


async def require_gate(
    request: Request,
    response: Response,
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """Auth & rate gate for the protected analysis routes"""
    settings = request.app.state.settings
    if not settings.security_enabled:
        return None

    check_origin(request.headers.get("origin"), settings.allowed_origins)
    api_key = check_api_key(api_key, settings.api_keys)
    check_timestamp(
        request.headers.get("x-timestamp"),
        settings.timestamp_tolerance_ms,
        required=settings.require_timestamp,
    )
    await _apply_rate_limit(request, response, f"key:{api_key}")
    return api_key


async def require_legacy_gate(request: Request, response: Response) -> None:
    """Origin and rate checks for the legacy route, which has no API key"""
    settings = request.app.state.settings
    if not settings.security_enabled:
        return None

    check_origin(request.headers.get("origin"), settings.allowed_origins)
    address = client_address(request, settings.trust_forwarded_for)
    await _apply_rate_limit(request, response, f"ip:{address}")
    return None
