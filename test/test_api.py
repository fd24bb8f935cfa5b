from __future__ import annotations

import asyncio

import httpx
import pytest

from csw_resolver import (
    ResolutionResult,
    ResourceImportError,
    find_best_download_url,
    get_resource,
    list_resources,
    resolve_record,
)

CATALOG = "https://catalog.example.org/csw"

RECORD_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<csw:GetRecordByIdResponse xmlns:csw="http://www.opengis.net/cat/csw/2.0.2"
    xmlns:gmd="http://www.isotc211.org/2005/gmd" xmlns:gco="http://www.isotc211.org/2005/gco">
  <gmd:MD_Metadata>
    <gmd:dateStamp><gco:Date>2024-02-01</gco:Date></gmd:dateStamp>
    <gmd:identificationInfo><gmd:MD_DataIdentification>
      <gmd:citation><gmd:CI_Citation><gmd:title>
        <gco:CharacterString>Bike lanes</gco:CharacterString>
      </gmd:title></gmd:CI_Citation></gmd:citation>
    </gmd:MD_DataIdentification></gmd:identificationInfo>
    <gmd:distributionInfo><gmd:MD_Distribution><gmd:transferOptions><gmd:MD_DigitalTransferOptions>
      <gmd:onLine><gmd:CI_OnlineResource>
        <gmd:linkage><gmd:URL>https://data.example.org/bike-lanes.geojson</gmd:URL></gmd:linkage>
      </gmd:CI_OnlineResource></gmd:onLine>
    </gmd:MD_DigitalTransferOptions></gmd:transferOptions></gmd:MD_Distribution></gmd:distributionInfo>
  </gmd:MD_Metadata>
</csw:GetRecordByIdResponse>
"""

NO_LINK_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<csw:GetRecordByIdResponse xmlns:csw="http://www.opengis.net/cat/csw/2.0.2"
    xmlns:gmd="http://www.isotc211.org/2005/gmd">
  <gmd:MD_Metadata><gmd:distributionInfo/></gmd:MD_Metadata>
</csw:GetRecordByIdResponse>
"""

GEOJSON = b'{"type": "FeatureCollection", "features": []}'


def _catalog_and_data(record_xml: bytes):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "catalog.example.org":
            return httpx.Response(200, headers={"Content-Type": "application/xml"}, content=record_xml)
        if request.method == "HEAD":
            return httpx.Response(200, headers={"Content-Type": "application/geo+json"})
        return httpx.Response(200, headers={"Content-Type": "application/geo+json"}, content=GEOJSON)

    return handler


def _run(handler, make_coro):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await make_coro(client)

    return asyncio.run(go())


def test_find_best_download_url(metadata_for, config):
    def handler(request):
        return httpx.Response(200)

    result = _run(
        handler,
        lambda c: find_best_download_url(
            metadata_for("https://example.org/a.kml"), "a", config=config, client=c
        ),
    )
    assert result == ResolutionResult("https://example.org/a.kml", "kml")


def test_find_best_download_url_probe_timeout_override_leaves_config_untouched(metadata_for, config):
    def handler(request):
        return httpx.Response(200)

    _run(
        handler,
        lambda c: find_best_download_url(
            metadata_for("https://example.org/a.kml"), "a", config=config, client=c, probe_timeout=1.5
        ),
    )
    assert config["probe_timeout"] == 3.0


def test_resolve_record(config):
    result = _run(
        _catalog_and_data(RECORD_XML),
        lambda c: resolve_record(CATALOG, "bike-lanes", config=config, client=c),
    )
    assert result == ResolutionResult("https://data.example.org/bike-lanes.geojson", "geojson")


def test_get_resource_downloads_and_describes_file(tmp_path, config):
    resource = _run(
        _catalog_and_data(RECORD_XML),
        lambda c: get_resource(CATALOG, "bike-lanes", tmp_path, config=config, client=c),
    )
    assert resource.id == "bike-lanes"
    assert resource.title == "Bike lanes"
    assert resource.format == "geojson"
    assert resource.updated_at == "2024-02-01"
    assert resource.file_path == str(tmp_path / "bike-lanes.geojson")
    assert resource.size == len(GEOJSON)
    assert resource.extra == {"download_url": "https://data.example.org/bike-lanes.geojson"}


def test_get_resource_without_link_raises_import_error(tmp_path, config):
    with pytest.raises(ResourceImportError) as excinfo:
        _run(
            _catalog_and_data(NO_LINK_XML),
            lambda c: get_resource(CATALOG, "orphan", tmp_path, config=config, client=c),
        )
    assert excinfo.value.resource_id == "orphan"
    assert str(excinfo.value) == "CSW import failed for orphan: No download link found for orphan"


def test_get_resource_wraps_catalog_failure(tmp_path, config):
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(ResourceImportError, match="CSW import failed for rec"):
        _run(handler, lambda c: get_resource(CATALOG, "rec", tmp_path, config=config, client=c))


def test_get_resource_credentials_reach_the_download(tmp_path, config):
    seen = []
    inner = _catalog_and_data(RECORD_XML)

    def handler(request):
        if request.method == "GET":
            seen.append(request.headers.get("Authorization"))
        return inner(request)

    _run(
        handler,
        lambda c: get_resource(
            CATALOG, "bike-lanes", tmp_path, config=config, client=c, username="u", password="p"
        ),
    )
    assert seen and seen[0].startswith("Basic ")
    assert config["auth"] == {"username": None, "password": None}


def test_list_resources_uses_configured_page_size(config):
    seen = []
    config["page_size"] = 25

    def handler(request):
        seen.append(request.content.decode())
        return httpx.Response(200, content=b"<csw:GetRecordsResponse xmlns:csw='x'/>")

    page = _run(handler, lambda c: list_resources(CATALOG, config=config, client=c))
    assert page.count == 0
    assert 'maxRecords="25"' in seen[0]


def test_get_resource_wraps_unwritable_destination(tmp_path, config):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(ResourceImportError, match="CSW import failed for bike-lanes"):
        _run(
            _catalog_and_data(RECORD_XML),
            lambda c: get_resource(CATALOG, "bike-lanes", blocker / "out", config=config, client=c),
        )
