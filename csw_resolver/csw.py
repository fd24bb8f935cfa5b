# csw_resolver/csw.py
"""
Minimal CSW 2.0.2 client.

- ``fetch_record``: GetRecordById in the ISO 19139 (gmd) output schema.
- ``list_records``: GetRecords summary search with paging and a filter
  keeping records that mention a downloadable format.

Responses are parsed with xmltodict and namespace prefixes are dropped from
element names, which yields the tree ``csw_resolver.metadata`` walks.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from xml.parsers.expat import ExpatError
from xml.sax.saxutils import escape

import httpx
import xmltodict

from csw_resolver.config import DEFAULT_CONFIG
from csw_resolver.errors import CatalogResponseError
from csw_resolver.metadata import as_list, as_text, dig
from csw_resolver.models import MetadataDocument, RecordPage, RecordSummary, Reporter

log = logging.getLogger(__name__)

XML_HEADERS = {"Content-Type": "application/xml"}

GET_RECORD_BY_ID = """
<csw:GetRecordById
  xmlns:csw="http://www.opengis.net/cat/csw/2.0.2"
  xmlns:gmd="http://www.isotc211.org/2005/gmd"
  service="CSW"
  version="2.0.2"
  outputSchema="http://www.isotc211.org/2005/gmd">
  <csw:Id>{resource_id}</csw:Id>
  <csw:ElementSetName>full</csw:ElementSetName>
</csw:GetRecordById>"""

_LIKE = """
      <ogc:PropertyIsLike wildCard="%" singleChar="_" escapeChar="\\\\">
        <ogc:PropertyName>AnyText</ogc:PropertyName>
        <ogc:Literal>%{literal}%</ogc:Literal>
      </ogc:PropertyIsLike>"""

# Records must mention at least one format the resolver can end up with.
FORMAT_FILTER_TERMS = ("SHAPE-ZIP", "csv", "json", "geojson")

GET_RECORDS = """
<csw:GetRecords
  xmlns:csw="http://www.opengis.net/cat/csw/2.0.2"
  xmlns:ogc="http://www.opengis.net/ogc"
  service="CSW"
  version="2.0.2"
  resultType="results"
  startPosition="{start_position}"
  maxRecords="{max_records}"
  outputSchema="http://www.opengis.net/cat/csw/2.0.2">
  <csw:Query typeNames="csw:Record">
    <csw:ElementSetName>summary</csw:ElementSetName>
    <csw:Constraint version="1.1.0">
      <ogc:Filter>{filter_block}
      </ogc:Filter>
    </csw:Constraint>
    <ogc:SortBy xmlns:ogc="http://www.opengis.net/ogc">
      <ogc:SortProperty>
        <ogc:PropertyName>RevisionDate</ogc:PropertyName>
        <ogc:SortOrder>DESC</ogc:SortOrder>
      </ogc:SortProperty>
    </ogc:SortBy>
  </csw:Query>
</csw:GetRecords>"""


def _strip_prefix(path: Any, key: str, value: Any) -> tuple[str, Any]:
    if key.startswith("@"):
        return "@" + key[1:].rsplit(":", 1)[-1], value
    return key.rsplit(":", 1)[-1], value


def parse_xml(text: str | bytes) -> Dict[str, Any]:
    """Parse a CSW response into nested dicts with namespace prefixes removed."""
    return xmltodict.parse(text, postprocessor=_strip_prefix)


def build_get_records_body(query: str = "", page: int = 1, size: int = 10) -> str:
    formats = "".join(_LIKE.format(literal=escape(t)) for t in FORMAT_FILTER_TERMS)
    format_filter = f"\n    <ogc:Or>{formats}\n    </ogc:Or>"
    query = query.strip()
    if query:
        filter_block = (
            f"\n    <ogc:And>{_LIKE.format(literal=escape(query))}{format_filter}"
            "\n    </ogc:And>"
        )
    else:
        filter_block = format_filter
    return GET_RECORDS.format(
        start_position=(page - 1) * size + 1,
        max_records=size,
        filter_block=filter_block,
    )


def _first_text(node: Any) -> str:
    items = as_list(node)
    return as_text(items[0]).strip() if items else ""


async def fetch_record(
    client: httpx.AsyncClient,
    catalog_url: str,
    resource_id: str,
    *,
    config: Optional[Dict[str, Any]] = None,
    log: Optional[Reporter] = None,
) -> MetadataDocument:
    """
    GetRecordById for ``resource_id``; return its MD_Metadata tree.

    Raises httpx.HTTPError on transport/status failures and
    CatalogResponseError when the answer holds no ISO 19139 record.
    """
    cfg = config or DEFAULT_CONFIG
    report = log or logging.getLogger(__name__)
    report.info("Fetching metadata for %s from %s", resource_id, catalog_url)

    resp = await client.post(
        catalog_url,
        content=GET_RECORD_BY_ID.format(resource_id=escape(resource_id)),
        headers=XML_HEADERS,
        timeout=cfg.get("request_timeout", 30.0),
    )
    resp.raise_for_status()

    try:
        parsed = parse_xml(resp.content)
    except ExpatError as e:
        raise CatalogResponseError(f"Invalid XML in CSW response: {e}") from e

    root = parsed.get("GetRecordByIdResponse")
    if not isinstance(root, Mapping):
        raise CatalogResponseError("Empty or invalid CSW response")

    records = [r for r in as_list(root.get("MD_Metadata")) if isinstance(r, Mapping)]
    if not records:
        raise CatalogResponseError("ISO 19139 metadata not found")
    return records[0]


def record_title(metadata: MetadataDocument, default: str = "") -> str:
    title = as_text(
        dig(metadata, "identificationInfo", "MD_DataIdentification", "citation", "CI_Citation", "title")
    )
    return title.strip() or default


def record_abstract(metadata: MetadataDocument) -> str:
    return as_text(
        dig(metadata, "identificationInfo", "MD_DataIdentification", "abstract")
    ).strip()


def record_updated_at(metadata: MetadataDocument) -> str:
    stamp = dig(metadata, "dateStamp")
    value = as_text(dig(stamp, "Date")) or as_text(dig(stamp, "DateTime"))
    return value.strip() or datetime.now(timezone.utc).isoformat()


def _summary_from_record(record: Mapping[str, Any]) -> RecordSummary:
    updated = (
        _first_text(record.get("RevisionDate"))
        or _first_text(record.get("modified"))
        or _first_text(record.get("dateStamp"))
    )
    return RecordSummary(
        id=_first_text(record.get("identifier")),
        title=_first_text(record.get("title")) or "Untitled",
        updated_at=updated or datetime.now(timezone.utc).isoformat(),
        format=_first_text(record.get("type")) or "unknown",
    )


async def list_records(
    client: httpx.AsyncClient,
    catalog_url: str,
    *,
    query: str = "",
    page: int = 1,
    size: int = 10,
    config: Optional[Dict[str, Any]] = None,
    log: Optional[Reporter] = None,
) -> RecordPage:
    """
    One page of catalog records matching ``query``.

    Malformed but well-formed-XML answers give an empty page; transport
    failures and unparsable XML raise CatalogResponseError.
    """
    cfg = config or DEFAULT_CONFIG
    report = log or logging.getLogger(__name__)
    body = build_get_records_body(query, page, size)

    try:
        resp = await client.post(
            catalog_url,
            content=body,
            headers=XML_HEADERS,
            timeout=cfg.get("request_timeout", 30.0),
        )
        resp.raise_for_status()
        parsed = parse_xml(resp.content)
    except (httpx.HTTPError, ExpatError) as e:
        report.error("CSW search failed on %s: %s", catalog_url, e)
        raise CatalogResponseError("CSW search failed") from e

    root = parsed.get("GetRecordsResponse")
    if not isinstance(root, Mapping):
        report.error("Invalid XML response (no GetRecordsResponse)")
        return RecordPage(count=0)

    results = root.get("SearchResults")
    if not isinstance(results, Mapping):
        report.error("No SearchResults in CSW response")
        return RecordPage(count=0)

    raw_count = results.get("@numberOfRecordsMatched") or results.get("numberOfRecordsMatched")
    try:
        count = int(raw_count or 0)
    except (TypeError, ValueError):
        count = 0

    records = as_list(results.get("SummaryRecord") or results.get("Record"))
    summaries = [_summary_from_record(r) for r in records if isinstance(r, Mapping)]
    report.info("CSW search returned %d of %d records.", len(summaries), count)
    return RecordPage(count=count, results=summaries)
