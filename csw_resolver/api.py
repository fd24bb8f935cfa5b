# csw_resolver/api.py
# The primary, programmer-facing API for the library.

from __future__ import annotations

import copy
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from csw_resolver.config import load_config
from csw_resolver.csw import (
    fetch_record,
    list_records,
    record_abstract,
    record_title,
    record_updated_at,
)
from csw_resolver.download import download_file, file_name_for
from csw_resolver.errors import CswResolverError, ResourceImportError
from csw_resolver.models import (
    MetadataDocument,
    RecordPage,
    Reporter,
    ResolutionResult,
    Resource,
)
from csw_resolver.prepare import prepare_catalog_url
from csw_resolver.resolver import LinkResolver
from csw_resolver.session import basic_auth, build_client

log = logging.getLogger(__name__)

__all__ = [
    "find_best_download_url",
    "get_resource",
    "list_resources",
    "prepare_catalog_url",
    "resolve_record",
]


def _working_config(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """A private copy of the caller's config, or defaults + pyproject.toml."""
    return copy.deepcopy(config) if config is not None else load_config()


def _apply_overrides(config: Dict[str, Any], **overrides: Any) -> Dict[str, Any]:
    for key, value in overrides.items():
        if value is None:
            continue
        if key in ("username", "password"):
            config.setdefault("auth", {})[key] = value
            log.info("Applied override - auth.%s set.", key)
            continue
        config[key] = value
        log.info("Applied override - %s set to: %s", key, value)
    return config


@asynccontextmanager
async def _client_scope(
    config: Dict[str, Any], client: Optional[httpx.AsyncClient]
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client untouched, or a fresh one closed afterwards."""
    if client is not None:
        yield client
        return
    async with build_client(config) as owned:
        yield owned


async def find_best_download_url(
    metadata: MetadataDocument,
    resource_id: str,
    *,
    config: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
    log: Optional[Reporter] = None,
    probe_timeout: float | None = None,
) -> Optional[ResolutionResult]:
    """
    Resolve the best download URL and format of one parsed ISO 19139 record.

    Args:
        metadata: The parsed MD_Metadata tree (or a mapping wrapping it).
        resource_id: The catalog record id, used as WFS type name fallback.
        config: Configuration dict; defaults + pyproject.toml when omitted.
        client: An httpx.AsyncClient to reuse. Not closed here.
        log: Logger receiving progress reports.
        probe_timeout: Override the plain HEAD probe timeout.

    Returns:
        A ResolutionResult, or None if no link could be validated.
    """
    cfg = _apply_overrides(_working_config(config), probe_timeout=probe_timeout)
    report = log or logging.getLogger(__name__)
    async with _client_scope(cfg, client) as http:
        resolver = LinkResolver(config=cfg, log=report, client=http)
        return await resolver.resolve(metadata, resource_id)


async def resolve_record(
    catalog_url: str,
    resource_id: str,
    *,
    config: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
    log: Optional[Reporter] = None,
) -> Optional[ResolutionResult]:
    """
    Fetch one record with GetRecordById and resolve its download link.

    Catalog failures propagate (httpx.HTTPError, CatalogResponseError);
    resolution failure is None.
    """
    cfg = _working_config(config)
    report = log or logging.getLogger(__name__)
    async with _client_scope(cfg, client) as http:
        metadata = await fetch_record(
            http, catalog_url, resource_id, config=cfg, log=report
        )
        resolver = LinkResolver(config=cfg, log=report, client=http)
        return await resolver.resolve(metadata, resource_id)


async def get_resource(
    catalog_url: str,
    resource_id: str,
    dest_dir: str | Path,
    *,
    config: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
    log: Optional[Reporter] = None,
    username: str | None = None,
    password: str | None = None,
) -> Resource:
    """
    Fetch a record from the catalog, resolve its download link and download it.

    Every failure is reported as a single ResourceImportError naming the
    resource id.
    """
    cfg = _apply_overrides(
        _working_config(config), username=username, password=password
    )
    report = log or logging.getLogger(__name__)
    report.info("Starting import of %s from %s", resource_id, catalog_url)

    try:
        async with _client_scope(cfg, client) as http:
            report.info("Step 1: Fetching metadata (CSW).")
            metadata = await fetch_record(
                http, catalog_url, resource_id, config=cfg, log=report
            )

            report.info("Step 2: Resolving the download link.")
            resolver = LinkResolver(config=cfg, log=report, client=http)
            result = await resolver.resolve(metadata, resource_id)
            if result is None:
                raise ResourceImportError(
                    resource_id, f"No download link found for {resource_id}"
                )

            report.info("Step 3: Downloading the file.")
            dest_path = Path(dest_dir) / file_name_for(resource_id, result)
            await download_file(
                http,
                result.url,
                dest_path,
                resource_id,
                auth=basic_auth(cfg),
                config=cfg,
                log=report,
            )
    except ResourceImportError as e:
        report.error("Error during resource import: %s", e)
        raise
    except (CswResolverError, httpx.HTTPError) as e:
        report.error("Error during resource import: %s", e)
        raise ResourceImportError(resource_id, str(e)) from e

    return Resource(
        id=resource_id,
        title=record_title(metadata, default=resource_id),
        description=record_abstract(metadata),
        file_path=str(dest_path),
        format=result.format,
        updated_at=record_updated_at(metadata),
        size=dest_path.stat().st_size,
        extra={"download_url": result.url},
    )


async def list_resources(
    catalog_url: str,
    *,
    query: str = "",
    page: int = 1,
    size: int | None = None,
    config: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
    log: Optional[Reporter] = None,
) -> RecordPage:
    """Search the catalog and return one page of downloadable records."""
    cfg = _working_config(config)
    report = log or logging.getLogger(__name__)
    async with _client_scope(cfg, client) as http:
        return await list_records(
            http,
            catalog_url,
            query=query,
            page=max(1, page),
            size=size or int(cfg.get("page_size", 10)),
            config=cfg,
            log=report,
        )
