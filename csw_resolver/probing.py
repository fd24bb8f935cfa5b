# csw_resolver/probing.py
"""
Network probes used to validate candidates.

- ``probe_url``: is a URL currently servable? A plain HEAD for ordinary links;
  a real GetFeature request for WFS links, since only a GET carrying the
  OUTPUTFORMAT parameter shows whether the server honours it.
- ``sniff_format``: infer a format from the Content-Type of a HEAD response.

Neither function raises on network trouble: timeouts, connection errors and
bad statuses all come back as False/None. Cancellation is not caught.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from csw_resolver.config import DEFAULT_CONFIG
from csw_resolver.models import Format, Reporter
from csw_resolver.urls import query_value, set_query_params

log = logging.getLogger(__name__)

# Strings WFS servers put in the body when they reject a request with 200 OK.
SERVICE_EXCEPTION_MARKERS = ("ExceptionReport", "ServiceException")

# Content-type substrings -> format. Checked in order; the bare "xml" row is a
# catch-all and must stay after the spreadsheet, GPX and KML rows.
CONTENT_TYPE_TABLE: Tuple[Tuple[Tuple[str, ...], Format], ...] = (
    (("application/json", "geo+json"), "geojson"),
    (("application/zip", "application/x-zip-compressed"), "shapefile"),
    (("text/csv", "application/csv"), "csv"),
    (("text/tab-separated-values", "text/tsv"), "tsv"),
    (("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",), "xlsx"),
    (("application/vnd.ms-excel",), "xls"),
    (("application/vnd.oasis.opendocument.spreadsheet",), "ods"),
    (("gpx",), "gpx"),
    (("kmz",), "kmz"),
    (("kml",), "kml"),
    (("xml",), "kml"),
)

# Errors that mean "not reachable" rather than a bug. ValueError comes from
# urllib.parse on URLs it cannot split.
PROBE_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValueError)


def format_from_content_type(content_type: str) -> Optional[Format]:
    """Map a Content-Type header to a format using CONTENT_TYPE_TABLE."""
    ctype = (content_type or "").lower()
    if not ctype:
        return None
    for needles, fmt in CONTENT_TYPE_TABLE:
        if any(n in ctype for n in needles):
            return fmt
    return None


async def _read_prefix(resp: httpx.Response, limit: int) -> bytes:
    chunks = []
    size = 0
    async for chunk in resp.aiter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)


async def _probe_service(
    client: httpx.AsyncClient, url: str, config: Dict[str, Any], report: Reporter
) -> bool:
    test_url = set_query_params(url, [("COUNT", "1"), ("MAXFEATURES", "1")])
    requested = (query_value(test_url, "outputformat") or "").lower()
    limit = int(config.get("max_probe_bytes", 65_536))

    async with client.stream(
        "GET", test_url, timeout=config.get("service_probe_timeout", 5.0)
    ) as resp:
        status = resp.status_code
        if status >= 400:
            report.warning("Invalid URL (HTTP %d): %s", status, url)
            return False
        body = await _read_prefix(resp, limit)
        content_type = resp.headers.get("content-type", "").lower()

    content = body.decode("utf-8", errors="replace")
    if any(marker in content for marker in SERVICE_EXCEPTION_MARKERS):
        report.warning("Service exception returned by %s", url)
        return False
    if "json" in requested and "xml" in content_type:
        # The server ignored OUTPUTFORMAT and fell back to its default GML.
        report.info("Requested %s but got %s from %s", requested, content_type, url)
        return False
    return True


async def probe_url(
    client: httpx.AsyncClient,
    url: str,
    *,
    service_test: bool = False,
    config: Optional[Dict[str, Any]] = None,
    log: Optional[Reporter] = None,
) -> bool:
    """
    Return True if ``url`` is currently servable.

    Plain mode sends a HEAD and accepts 2xx/3xx. Service-test mode sends a
    GET with COUNT=1 and MAXFEATURES=1 and inspects the answer.
    """
    cfg = config or DEFAULT_CONFIG
    report = log or logging.getLogger(__name__)
    try:
        if service_test:
            return await _probe_service(client, url, cfg, report)
        resp = await client.head(url, timeout=cfg.get("probe_timeout", 3.0))
        if 200 <= resp.status_code < 400:
            return True
        report.warning("Invalid URL (HTTP %d): %s", resp.status_code, url)
        return False
    except PROBE_ERRORS as e:
        report.warning("Invalid URL: %s (%s)", url, e)
        return False


async def sniff_format(
    client: httpx.AsyncClient,
    url: str,
    *,
    config: Optional[Dict[str, Any]] = None,
    log: Optional[Reporter] = None,
) -> Optional[Format]:
    """HEAD ``url`` and infer the format from its Content-Type, None if unknown."""
    cfg = config or DEFAULT_CONFIG
    report = log or logging.getLogger(__name__)
    try:
        resp = await client.head(url, timeout=cfg.get("sniff_timeout", 5.0))
    except PROBE_ERRORS as e:
        report.warning("Could not detect the format of %s (HTTP error: %s).", url, e)
        return None
    if resp.status_code >= 400:
        report.warning(
            "Could not detect the format of %s (HTTP %d).", url, resp.status_code
        )
        return None
    fmt = format_from_content_type(resp.headers.get("content-type", ""))
    if fmt is None:
        report.info(
            "Unrecognized content type for %s: %r",
            url,
            resp.headers.get("content-type", ""),
        )
    return fmt
