# Entrypoint for the csw_resolver package.
# This file makes the public API available to programmers.

from __future__ import annotations

from csw_resolver.__about__ import __version__
from csw_resolver.api import (
    find_best_download_url,
    get_resource,
    list_resources,
    prepare_catalog_url,
    resolve_record,
)
from csw_resolver.errors import CswResolverError, ResourceImportError
from csw_resolver.models import DownloadCandidate, RawLink, ResolutionResult, Resource
from csw_resolver.resolver import LinkResolver

# The __all__ variable defines the public API of the package.
# When a user writes `from csw_resolver import *`, only these names will be imported.
__all__ = [
    "find_best_download_url",
    "resolve_record",
    "get_resource",
    "list_resources",
    "prepare_catalog_url",
    "LinkResolver",
    "RawLink",
    "DownloadCandidate",
    "ResolutionResult",
    "Resource",
    "CswResolverError",
    "ResourceImportError",
    "__version__",
]
