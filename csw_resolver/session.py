# csw_resolver/session.py
"""Builds the shared httpx client used for probing, CSW requests and downloads."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

DEFAULT_USER_AGENT = "csw_resolver/0.1"


def build_client(
    config: Dict[str, Any],
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create an AsyncClient following redirects, with the configured user agent.

    Every request made by the resolver passes its own timeout; the client-wide
    timeout only applies to callers that do not.
    """
    headers = {"User-Agent": config.get("user_agent", DEFAULT_USER_AGENT)}
    kwargs: Dict[str, Any] = {
        "follow_redirects": True,
        "timeout": config.get("request_timeout", 30.0),
        "headers": headers,
    }
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.AsyncClient(**kwargs)


def basic_auth(config: Dict[str, Any]) -> Optional[httpx.BasicAuth]:
    """Return basic auth credentials from config["auth"], if both are set."""
    auth = config.get("auth") or {}
    username = auth.get("username")
    password = auth.get("password")
    if username and password:
        return httpx.BasicAuth(username, password)
    return None
