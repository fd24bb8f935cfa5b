# csw_resolver/download.py
"""
Streams a resolved URL to disk with periodic progress logging.

Partial files are removed on failure. 4xx answers are turned into a
DownloadError with a message a user can act on.
"""
from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from csw_resolver.config import DEFAULT_CONFIG
from csw_resolver.errors import DownloadError
from csw_resolver.models import Reporter, ResolutionResult
from csw_resolver.urls import path_suffix

log = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    "shapefile": ".zip",
    "geojson": ".geojson",
    "csv": ".csv",
    "json": ".json",
    "kml": ".kml",
}

CLIENT_ERROR_MESSAGES = {
    400: "Bad request (400). The parameters sent may be incorrect.",
    401: "Access denied (401). Check the username and password in the configuration.",
    403: "Forbidden (403). You do not have the rights required to access this file.",
    404: "File not found (404). The download URL no longer exists or is incorrect.",
    408: "Request timeout (408). The server took too long to respond.",
    410: "Resource gone (410). The file has been permanently removed.",
    421: "Misdirected request (421). The server cannot answer (SSL certificate problem).",
    429: "Too many requests (429). The server is rate limiting downloads.",
}


def client_error_message(status: int) -> str:
    return CLIENT_ERROR_MESSAGES.get(status, f"Unhandled client error ({status}).")


def file_name_for(resource_id: str, result: ResolutionResult) -> str:
    """``<resource_id><ext>``, ext from the format or else from the URL path."""
    stem = re.sub(r"[^\w.-]", "_", resource_id) or "resource"
    ext = FORMAT_EXTENSIONS.get(result.format) or path_suffix(result.url)
    return stem + ext


def _remove_partial(dest_path: Path) -> None:
    try:
        dest_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning("Could not remove partial file %s: %s", dest_path, e)


async def download_file(
    client: httpx.AsyncClient,
    url: str,
    dest_path: Path,
    label: str,
    *,
    auth: Optional[httpx.Auth] = None,
    config: Optional[Dict[str, Any]] = None,
    log: Optional[Reporter] = None,
) -> Path:
    """Download ``url`` to ``dest_path`` and return the path."""
    cfg = config or DEFAULT_CONFIG
    report = log or logging.getLogger(__name__)
    interval = float(cfg.get("progress_interval", 0.5))
    request_kwargs: Dict[str, Any] = {"timeout": cfg.get("download_timeout", 300.0)}
    if auth is not None:
        request_kwargs["auth"] = auth

    downloaded = 0
    try:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        async with client.stream("GET", url, **request_kwargs) as resp:
            if 400 <= resp.status_code < 500:
                msg = client_error_message(resp.status_code)
                report.error(msg)
                raise DownloadError(msg, status_code=resp.status_code)
            resp.raise_for_status()

            total_header = resp.headers.get("content-length")
            total = int(total_header) if total_header and total_header.isdigit() else None
            report.info("Downloading %s (%s bytes)", label, total if total is not None else "?")

            last_logged = time.monotonic()
            with dest_path.open("wb") as f:
                async for chunk in resp.aiter_bytes():
                    f.write(chunk)
                    downloaded += len(chunk)
                    now = time.monotonic()
                    if now - last_logged > interval:
                        last_logged = now
                        report.info("download %s: %d/%s bytes", label, downloaded, total or "?")
    except DownloadError:
        _remove_partial(dest_path)
        raise
    except (httpx.HTTPError, OSError) as e:
        _remove_partial(dest_path)
        status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
        raise DownloadError(f"Download of {label} failed: {e}", status_code=status) from e

    report.info("download %s: %d/%d bytes", label, downloaded, downloaded)
    return dest_path
