# csw_resolver/prepare.py
"""
Catalog URL preparation, run once when a catalog is configured.

Trims the URL, allows only http/https, and refuses hosts that resolve to
loopback, private, link-local or unspecified IPv4 addresses so that a catalog
configuration cannot be used to reach internal services.
"""
from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from urllib.parse import urlsplit, urlunsplit

from csw_resolver.errors import CatalogConfigError
from csw_resolver.urls import ALLOWED_SCHEMES

log = logging.getLogger(__name__)


def is_internal_address(address: str) -> bool:
    ip = ipaddress.ip_address(address)
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified


async def resolve_ipv4(host: str) -> str:
    """First IPv4 address of ``host`` from the system resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, family=socket.AF_INET)
    return infos[0][4][0]


async def prepare_catalog_url(url: str | None, *, check_private_network: bool = True) -> str:
    """Return the cleaned catalog URL or raise CatalogConfigError."""
    if not url or not url.strip():
        raise CatalogConfigError("The catalog URL is required.")
    url = url.strip()

    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise CatalogConfigError("The catalog URL is not valid.") from e
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        raise CatalogConfigError("Only HTTP and HTTPS catalog URLs are allowed.")

    if check_private_network:
        try:
            address = await resolve_ipv4(parts.hostname)
        except (OSError, IndexError) as e:
            raise CatalogConfigError(f"Unable to resolve host: {parts.hostname}") from e
        if is_internal_address(address):
            raise CatalogConfigError(
                f"The catalog URL is forbidden: it points to an internal network ({address})."
            )
        log.debug("Catalog host %s resolved to %s", parts.hostname, address)

    return urlunsplit(
        (parts.scheme.lower(), parts.netloc, parts.path, parts.query, parts.fragment)
    )
