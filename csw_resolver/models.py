# Defines the data structures used throughout the resolver.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Union

# A parsed ISO 19139 record: nested mappings, strings, lists of either, or None.
MetadataDocument = Mapping[str, Any]

# Anything exposing info/warning/error the way a stdlib logger does.
Reporter = Union[logging.Logger, logging.LoggerAdapter]

Format = Literal[
    "geojson",
    "shapefile",
    "csv",
    "json",
    "kml",
    "wfs_service",
    "unknown",
    # only produced by content-type sniffing
    "tsv",
    "xlsx",
    "xls",
    "ods",
    "gpx",
    "kmz",
]

# Formats a downloader cannot act on; they must be resolved before returning.
INTERMEDIATE_FORMATS = frozenset({"wfs_service", "unknown"})


@dataclass(frozen=True)
class RawLink:
    """One online-resource entry declared in the distribution metadata."""

    url: str
    protocol: str = ""
    name: str = ""


@dataclass
class DownloadCandidate:
    """A link tagged with an inferred format and a confidence score."""

    url: str
    format: Format
    score: int
    layer_name: str | None = None
    rule: str = ""


@dataclass(frozen=True)
class ResolutionResult:
    """The final url/format pair a downloader can act on."""

    url: str
    format: Format


@dataclass
class RecordSummary:
    """A catalog record as returned by a CSW GetRecords listing."""

    id: str
    title: str
    updated_at: str
    format: str = "unknown"
    type: str = "resource"


@dataclass
class RecordPage:
    """One page of a catalog listing."""

    count: int
    results: list[RecordSummary] = field(default_factory=list)


@dataclass
class Resource:
    """A downloaded catalog resource."""

    id: str
    title: str
    description: str
    file_path: str
    format: Format
    updated_at: str
    size: int = 0
    extra: dict[str, Any] = field(default_factory=dict)
