# Classifies declared links into scored download candidates.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from csw_resolver.models import DownloadCandidate, Format, RawLink
from csw_resolver.urls import path_suffix, query_value

# Bulk export endpoints of some catalogs; the real format is sniffed later.
API_EXPORT_MARKERS = ("/api/data/", "/api/records/")


@dataclass(frozen=True)
class LinkView:
    """Lowercased views of a RawLink, computed once per classification."""

    link: RawLink
    u: str
    p: str
    n: str
    suffix: str

    @classmethod
    def of(cls, link: RawLink) -> "LinkView":
        return cls(
            link=link,
            u=link.url.lower(),
            p=link.protocol.lower(),
            n=link.name.lower(),
            suffix=path_suffix(link.url),
        )


@dataclass(frozen=True)
class ScoringRule:
    """
    One row of the decision list.

    ``refine`` computes the format from the link when it is not fixed.
    ``layer`` picks the layer name carried by the candidate, used later as
    the WFS type name.
    """

    name: str
    matches: Callable[[LinkView], bool]
    format: Format
    score: int
    refine: Optional[Callable[[LinkView], Format]] = None
    layer: Optional[Callable[[LinkView], Optional[str]]] = None


def is_api_export_url(url: str) -> bool:
    u = url.lower()
    return any(marker in u for marker in API_EXPORT_MARKERS)


def _explicit_wfs_format(v: LinkView) -> Format:
    output_format = (query_value(v.link.url, "outputformat") or "").lower()
    if "json" in output_format:
        return "geojson"
    if "csv" in output_format:
        return "csv"
    if "zip" in output_format or "shape" in output_format:
        return "shapefile"
    return "wfs_service"


def _is_explicit_wfs(v: LinkView) -> bool:
    return "service=wfs" in v.u and "outputformat=" in v.u


def _declared_type_name(v: LinkView) -> Optional[str]:
    return (
        query_value(v.link.url, "typenames")
        or query_value(v.link.url, "typename")
        or None
    )


def _link_name(v: LinkView) -> Optional[str]:
    return v.link.name or None


def _is_zipped_shapefile(v: LinkView) -> bool:
    return (
        "shape-zip" in v.u
        or v.u.endswith(".zip")
        or v.suffix == ".zip"
        or "shapefile" in v.n
    )


def _is_geojson(v: LinkView) -> bool:
    return "geojson" in v.u or "geo+json" in v.p or "geojson" in v.n


def _is_csv(v: LinkView) -> bool:
    return "/csv" in v.u or ".csv" in v.u or "text/csv" in v.p or v.n == "csv"


def _is_kml(v: LinkView) -> bool:
    return v.u.endswith(".kml") or v.suffix == ".kml" or "kml" in v.p


def _is_json(v: LinkView) -> bool:
    declared = (
        "/json" in v.u
        or ".json" in v.u
        or "application/json" in v.p
        or v.n == "json"
    )
    return declared and "geojson" not in v.u


def _is_wfs_endpoint(v: LinkView) -> bool:
    return "wfs" in v.p or "service=wfs" in v.u


# Evaluated top to bottom; the first match wins.
SCORING_RULES: tuple[ScoringRule, ...] = (
    ScoringRule(
        "explicit-wfs-download",
        _is_explicit_wfs,
        "wfs_service",
        50,
        refine=_explicit_wfs_format,
        layer=_declared_type_name,
    ),
    ScoringRule("api-export", lambda v: is_api_export_url(v.u), "shapefile", 11),
    ScoringRule("zipped-shapefile", _is_zipped_shapefile, "shapefile", 8),
    ScoringRule("geojson", _is_geojson, "geojson", 10),
    ScoringRule("csv", _is_csv, "csv", 6),
    ScoringRule("kml", _is_kml, "kml", 4),
    ScoringRule("json", _is_json, "json", 5),
    ScoringRule(
        "wfs-endpoint", _is_wfs_endpoint, "wfs_service", 2, layer=_link_name
    ),
    ScoringRule("fallback", lambda v: True, "unknown", 1),
)


def classify_link(
    link: RawLink, rules: Iterable[ScoringRule] = SCORING_RULES
) -> DownloadCandidate | None:
    """Return the candidate built by the first matching rule, None without a URL."""
    if not link.url or not link.url.strip():
        return None
    view = LinkView.of(link)
    for rule in rules:
        if not rule.matches(view):
            continue
        fmt = rule.refine(view) if rule.refine else rule.format
        return DownloadCandidate(
            url=link.url,
            format=fmt,
            score=rule.score,
            layer_name=rule.layer(view) if rule.layer else None,
            rule=rule.name,
        )
    return None


def rank_candidates(links: Iterable[RawLink]) -> List[DownloadCandidate]:
    """
    Classify every link and sort by descending score.

    ``sorted`` is stable, so equal scores keep document order.
    """
    candidates = [c for c in (classify_link(link) for link in links) if c]
    return sorted(candidates, key=lambda c: c.score, reverse=True)
