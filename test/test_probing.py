from __future__ import annotations

import logging

import httpx
import pytest

from csw_resolver.probing import format_from_content_type, probe_url, sniff_format

GEOJSON_BODY = b'{"type": "FeatureCollection", "features": []}'
EXCEPTION_BODY = (
    b'<?xml version="1.0"?><ows:ExceptionReport><ows:Exception exceptionCode="InvalidParameterValue">'
    b"<ows:ExceptionText>Unknown output format</ows:ExceptionText></ows:Exception></ows:ExceptionReport>"
)


# ---------- plain mode ----------


@pytest.mark.parametrize("status, expected", [(200, True), (204, True), (304, True), (404, False), (500, False)])
def test_plain_probe_status_codes(with_client, status, expected):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.method)
        return httpx.Response(status)

    ok = with_client(handler, lambda c: probe_url(c, "https://example.org/data.csv"))
    assert ok is expected
    assert seen == ["HEAD"]


def test_plain_probe_follows_redirects(with_client):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(302, headers={"Location": "https://example.org/new"})
        return httpx.Response(200)

    assert with_client(handler, lambda c: probe_url(c, "https://example.org/old")) is True


@pytest.mark.parametrize(
    "exc",
    [httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout, httpx.RemoteProtocolError],
)
def test_plain_probe_network_errors_are_false(with_client, exc, caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc("boom", request=request)

    assert with_client(handler, lambda c: probe_url(c, "https://example.org/x")) is False
    assert "Invalid URL" in caplog.text


def test_plain_probe_uses_given_logger(with_client, caplog):
    reporter = logging.getLogger("test.probe.reporter")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with caplog.at_level(logging.WARNING, logger="test.probe.reporter"):
        with_client(handler, lambda c: probe_url(c, "https://example.org/x", log=reporter))
    assert [r.name for r in caplog.records] == ["test.probe.reporter"]


# ---------- service-test mode ----------


def _service_probe(with_client, handler, url):
    return with_client(handler, lambda c: probe_url(c, url, service_test=True))


def test_service_probe_sends_get_with_single_feature_limits(with_client):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"Content-Type": "application/json"}, content=GEOJSON_BODY)

    url = "https://example.org/wfs?SERVICE=WFS&count=1000&maxFeatures=500&OUTPUTFORMAT=application/json"
    assert _service_probe(with_client, handler, url) is True

    (request,) = seen
    assert request.method == "GET"
    params = request.url.params
    assert params["COUNT"] == "1"
    assert params["MAXFEATURES"] == "1"
    assert "count" not in params
    assert "maxFeatures" not in params
    assert params["OUTPUTFORMAT"] == "application/json"


@pytest.mark.parametrize("status", [400, 404, 500, 503])
def test_service_probe_rejects_error_status(with_client, status):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, headers={"Content-Type": "application/json"}, content=GEOJSON_BODY)

    assert _service_probe(with_client, handler, "https://example.org/wfs?OUTPUTFORMAT=json") is False


@pytest.mark.parametrize(
    "body",
    [EXCEPTION_BODY, b"<ServiceExceptionReport><ServiceException>nope</ServiceException></ServiceExceptionReport>"],
)
def test_service_probe_rejects_exception_bodies_served_with_200(with_client, body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Type": "application/zip"}, content=body)

    assert _service_probe(with_client, handler, "https://example.org/wfs?OUTPUTFORMAT=SHAPE-ZIP") is False


def test_service_probe_rejects_xml_answer_to_json_request(with_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"Content-Type": "text/xml; subtype=gml/3.2"},
            content=b"<wfs:FeatureCollection/>",
        )

    assert _service_probe(with_client, handler, "https://example.org/wfs?OUTPUTFORMAT=geojson") is False


def test_service_probe_accepts_xml_when_json_was_not_requested(with_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"Content-Type": "application/vnd.google-earth.kml+xml"},
            content=b"<kml><Document/></kml>",
        )

    assert _service_probe(with_client, handler, "https://example.org/wfs?OUTPUTFORMAT=kml") is True


def test_service_probe_network_error_is_false(with_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    assert _service_probe(with_client, handler, "https://example.org/wfs?OUTPUTFORMAT=csv") is False


# ---------- content-type sniffing ----------


@pytest.mark.parametrize(
    "content_type, expected",
    [
        ("application/json", "geojson"),
        ("application/geo+json; charset=utf-8", "geojson"),
        ("application/vnd.geo+json", "geojson"),
        ("application/zip", "shapefile"),
        ("application/x-zip-compressed", "shapefile"),
        ("text/csv; charset=utf-8", "csv"),
        ("application/csv", "csv"),
        ("text/tab-separated-values", "tsv"),
        ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
        ("application/vnd.ms-excel", "xls"),
        ("application/vnd.oasis.opendocument.spreadsheet", "ods"),
        ("application/gpx+xml", "gpx"),
        ("application/vnd.google-earth.kmz", "kmz"),
        ("application/vnd.google-earth.kml+xml", "kml"),
        ("text/xml", "kml"),
        ("Application/JSON", "geojson"),
        ("text/html; charset=utf-8", None),
        ("application/octet-stream", None),
        ("", None),
    ],
)
def test_format_from_content_type(content_type, expected):
    assert format_from_content_type(content_type) == expected


def test_sniff_format_reads_head_content_type(with_client):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.method)
        return httpx.Response(200, headers={"Content-Type": "text/csv"})

    assert with_client(handler, lambda c: sniff_format(c, "https://example.org/dl?id=1")) == "csv"
    assert seen == ["HEAD"]


def test_sniff_format_error_status_is_none(with_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, headers={"Content-Type": "application/zip"})

    assert with_client(handler, lambda c: sniff_format(c, "https://example.org/dl")) is None


def test_sniff_format_network_error_is_none(with_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert with_client(handler, lambda c: sniff_format(c, "https://example.org/dl")) is None


@pytest.mark.parametrize("service_test", [False, True])
def test_unparsable_url_is_unreachable(with_client, service_test):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200)

    url = "http://[bad/wfs?service=wfs&OUTPUTFORMAT=json"
    assert with_client(handler, lambda c: probe_url(c, url, service_test=service_test)) is False
