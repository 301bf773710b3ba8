"""Bounded media download with an SSRF guard.

Usage:
    fetched = await fetch_to_file(url, dest_dir, max_bytes=8_000_000, ssrf=policy)
    fetched.path, fetched.content_type
"""

import asyncio
import ipaddress
import socket
import uuid
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import httpx
from loguru import logger

from clawkit.config.schema import SsrfConfig
from clawkit.errors import MediaFetchError

DEFAULT_MAX_BYTES = 20 * 1024 * 1024  # 20 MB


@dataclass(frozen=True)
class SsrfPolicy:
    """Which hosts a media download may reach."""

    allowed_hostnames: frozenset[str] = field(default_factory=frozenset)
    allow_private_network: bool = False

    @classmethod
    def from_config(cls, ssrf: SsrfConfig) -> "SsrfPolicy":
        return cls(
            allowed_hostnames=frozenset(h.lower() for h in ssrf.allowed_hostnames),
            allow_private_network=ssrf.allow_private_network,
        )

    def is_allowlisted(self, hostname: str) -> bool:
        """Exact match, or ``*.example.com`` matching any subdomain."""
        hostname = hostname.lower().rstrip(".")
        for pattern in self.allowed_hostnames:
            if pattern.startswith("*."):
                if hostname.endswith(pattern[1:]):
                    return True
            elif hostname == pattern:
                return True
        return False


@dataclass
class FetchedMedia:
    """A downloaded attachment on local disk."""

    path: Path
    content_type: str | None
    size: int


def _is_private(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


async def _resolve(hostname: str) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    try:
        return [ipaddress.ip_address(hostname)]
    except ValueError:
        pass

    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise MediaFetchError(f"Cannot resolve {hostname}: {e}") from e
    return [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]


async def check_url(url: str, policy: SsrfPolicy) -> None:
    """Raise MediaFetchError if *url* may not be fetched under *policy*."""
    parsed = httpx.URL(url)
    if parsed.scheme not in ("http", "https"):
        raise MediaFetchError(f"Unsupported URL scheme: {parsed.scheme or '<none>'}")

    hostname = parsed.host.lower()
    if not hostname:
        raise MediaFetchError(f"URL has no host: {url}")
    if policy.allow_private_network or policy.is_allowlisted(hostname):
        return
    if hostname == "localhost" or hostname.endswith(".localhost"):
        raise MediaFetchError(f"Blocked private host: {hostname}")

    for ip in await _resolve(hostname):
        if _is_private(ip):
            raise MediaFetchError(f"Blocked private address {ip} for host {hostname}")


def _suffix_for(url: str) -> str:
    suffix = PurePosixPath(httpx.URL(url).path).suffix
    return suffix if len(suffix) <= 8 else ""


async def fetch_to_file(
    url: str,
    dest_dir: Path,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
    ssrf: SsrfPolicy | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float = 60.0,
) -> FetchedMedia:
    """
    Stream *url* into a new file under *dest_dir*.

    Redirects are not followed, so every request target passes the SSRF check.
    The partial file is removed on any failure.

    Raises:
        MediaFetchError: blocked host, HTTP error, or body larger than *max_bytes*.
    """
    await check_url(url, ssrf or SsrfPolicy())

    dest = dest_dir / f"{uuid.uuid4().hex}{_suffix_for(url)}"
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(follow_redirects=False, timeout=timeout)

    total = 0
    try:
        async with client.stream("GET", url) as resp:
            resp.raise_for_status()
            declared = resp.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise MediaFetchError(f"{url} is {declared} bytes, limit is {max_bytes}")

            with open(dest, "wb") as f:
                async for chunk in resp.aiter_bytes():
                    total += len(chunk)
                    if total > max_bytes:
                        raise MediaFetchError(f"{url} exceeded {max_bytes} bytes")
                    f.write(chunk)
            content_type = resp.headers.get("content-type", "").split(";", 1)[0].strip() or None
    except httpx.HTTPError as e:
        dest.unlink(missing_ok=True)
        raise MediaFetchError(f"Download failed for {url}: {e}") from e
    except MediaFetchError:
        dest.unlink(missing_ok=True)
        raise
    finally:
        if owns_client:
            await client.aclose()

    logger.debug(f"Fetched {url} -> {dest.name} ({total} bytes)")
    return FetchedMedia(path=dest, content_type=content_type, size=total)
