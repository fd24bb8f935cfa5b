# csw_resolver/negotiation.py
"""
WFS output-format negotiation.

Capability documents are unreliable, so the only way to learn which
OUTPUTFORMAT a WFS honours is to ask for one feature in each candidate
encoding and keep the first that comes back clean.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from csw_resolver.config import DEFAULT_CONFIG
from csw_resolver.models import Format, Reporter, ResolutionResult
from csw_resolver.probing import probe_url
from csw_resolver.urls import drop_query_keys, set_query_params

log = logging.getLogger(__name__)

# Parameters stripped from the catalog URL before canonical ones are added.
CONFLICTING_WFS_KEYS = (
    "service",
    "request",
    "version",
    "typename",
    "typenames",
    "outputformat",
    "srsname",
)

# OUTPUTFORMAT tokens in preference order: GeoJSON > shapefile > CSV > KML.
WFS_FORMATS_TO_TRY: Tuple[Tuple[str, Format], ...] = (
    ("application/json; subtype=geojson", "geojson"),
    ("geojson", "geojson"),
    ("application/json", "geojson"),
    ("application/vnd.geo+json", "geojson"),
    ("json", "geojson"),
    ("SHAPE-ZIP", "shapefile"),
    ("shapezip", "shapefile"),
    ("application/zip", "shapefile"),
    ("application/x-shapefile", "shapefile"),
    ("csv", "csv"),
    ("text/csv", "csv"),
    ("kml", "kml"),
    ("application/vnd.google-earth.kml+xml", "kml"),
)


def build_getfeature_url(
    base_url: str, type_name: str, version: str = "2.0.0"
) -> str:
    """Canonical GetFeature URL for ``type_name``, without OUTPUTFORMAT."""
    cleaned = drop_query_keys(base_url, CONFLICTING_WFS_KEYS)
    return set_query_params(
        cleaned,
        [
            ("SERVICE", "WFS"),
            ("VERSION", version),
            ("REQUEST", "GetFeature"),
            ("TYPENAMES", type_name),
        ],
    )


async def negotiate_wfs_format(
    client: httpx.AsyncClient,
    base_url: str,
    resource_id: str,
    layer_name: Optional[str] = None,
    *,
    config: Optional[Dict[str, Any]] = None,
    log: Optional[Reporter] = None,
    formats: Tuple[Tuple[str, Format], ...] = WFS_FORMATS_TO_TRY,
) -> Optional[ResolutionResult]:
    """
    Try each OUTPUTFORMAT token in order and return the first that probes OK.

    The type name is the link's declared layer name, falling back to the
    catalog resource id. Returns None once every token has failed.
    """
    cfg = config or DEFAULT_CONFIG
    report = log or logging.getLogger(__name__)
    report.info("WFS service detected at %s, testing supported formats...", base_url)

    try:
        getfeature_url = build_getfeature_url(
            base_url, layer_name or resource_id, cfg.get("wfs_version", "2.0.0")
        )
    except ValueError as e:
        report.warning("Cannot build a GetFeature request from %s (%s).", base_url, e)
        return None

    for token, fmt in formats:
        test_url = set_query_params(getfeature_url, [("OUTPUTFORMAT", token)])
        report.info("Trying OUTPUTFORMAT=%s", token)
        if await probe_url(client, test_url, service_test=True, config=cfg, log=report):
            report.info("Supported WFS format found: %s. Final WFS URL: %s", token, test_url)
            return ResolutionResult(url=test_url, format=fmt)

    report.error(
        "This WFS service offers none of the supported formats "
        "(GeoJSON, Shapefile, CSV, KML): %s",
        base_url,
    )
    return None
