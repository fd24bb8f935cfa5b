# csw_resolver/resolver.py
"""
Resolution orchestrator.

extract -> score -> rank -> validate in rank order -> finish -> return.

Validation is strictly sequential and stops at the first accepted candidate:
every probe is a real request to a third-party server. Each candidate is
tried with a short list of named strategies (direct probe, then WFS
negotiation for WFS endpoints). The accepted candidate then goes through the
finishing steps, which turn intermediate formats into concrete ones or give
up. ``resolve`` returns a ResolutionResult or None and does not raise.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx

from csw_resolver.config import DEFAULT_CONFIG
from csw_resolver.metadata import declared_formats, extract_links
from csw_resolver.models import (
    INTERMEDIATE_FORMATS,
    DownloadCandidate,
    MetadataDocument,
    Reporter,
    ResolutionResult,
)
from csw_resolver.negotiation import negotiate_wfs_format
from csw_resolver.probing import probe_url, sniff_format
from csw_resolver.scoring import is_api_export_url, rank_candidates
from csw_resolver.session import build_client
from csw_resolver.urls import drop_query_keys, has_query_key

log = logging.getLogger(__name__)

Outcome = Union[DownloadCandidate, ResolutionResult]
Strategy = Callable[
    [httpx.AsyncClient, DownloadCandidate, str], Awaitable[Optional[Outcome]]
]
FinishingStep = Callable[
    [httpx.AsyncClient, DownloadCandidate, str], Awaitable[Optional[DownloadCandidate]]
]


@dataclass
class LinkResolver:
    """
    Pick the best downloadable link of one metadata record.

    Use as an async context manager to share one httpx client across several
    resolutions, or pass ``client`` to reuse a client owned by the caller (it
    is never closed here). Without either, every ``resolve`` call opens and
    closes its own client, so concurrent calls share no state.
    """

    config: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG))
    log: Reporter = field(default=log, repr=False)
    client: Optional[httpx.AsyncClient] = None
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    _owns_client: bool = field(default=False, init=False, repr=False)

    async def __aenter__(self) -> "LinkResolver":
        if self.client is None:
            self.client = build_client(self.config, transport=self.transport)
            self._owns_client = True
            log.debug("httpx session initialized.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            log.debug("httpx session closed.")
        if self._owns_client:
            self.client = None
            self._owns_client = False

    # ---- public ----------------------------------------------------------

    async def resolve(
        self, metadata: MetadataDocument, resource_id: str
    ) -> Optional[ResolutionResult]:
        """Return the best {url, format} for the record, or None."""
        if self.client is not None:
            return await self._resolve(self.client, metadata, resource_id)
        async with build_client(self.config, transport=self.transport) as client:
            return await self._resolve(client, metadata, resource_id)

    # ---- pipeline --------------------------------------------------------

    async def _resolve(
        self,
        client: httpx.AsyncClient,
        metadata: MetadataDocument,
        resource_id: str,
    ) -> Optional[ResolutionResult]:
        links = extract_links(metadata)
        if not links:
            self.log.info("No online resource declared for %s.", resource_id)
            return None

        formats = declared_formats(metadata)
        if formats:
            self.log.info("Declared distribution formats: %s", ", ".join(formats))

        candidates = rank_candidates(links)
        if not candidates:
            return None
        self.log.info("%d candidate links found. Validating...", len(candidates))

        selected = await self._select(client, candidates, resource_id)
        if selected is None:
            self.log.warning("No link passed validation for %s.", resource_id)
            return None
        if isinstance(selected, ResolutionResult):
            return selected

        result = await self._finish(client, selected, resource_id)
        if result is not None:
            self.log.info("Selected download URL: %s, format: %s", result.url, result.format)
        return result

    async def _select(
        self,
        client: httpx.AsyncClient,
        candidates: List[DownloadCandidate],
        resource_id: str,
    ) -> Optional[Outcome]:
        for candidate in candidates:
            for name, strategy in self._strategies_for(candidate):
                outcome = await strategy(client, candidate, resource_id)
                if outcome is not None:
                    return outcome
                self.log.debug("%s failed for %s", name, candidate.url)
        return None

    def _strategies_for(
        self, candidate: DownloadCandidate
    ) -> Tuple[Tuple[str, Strategy], ...]:
        if candidate.format == "wfs_service":
            return (
                ("direct probe", self._accept_if_reachable),
                ("WFS negotiation", self._negotiate),
            )
        return (("direct probe", self._accept_if_reachable),)

    async def _finish(
        self, client: httpx.AsyncClient, candidate: DownloadCandidate, resource_id: str
    ) -> Optional[ResolutionResult]:
        steps: Tuple[Tuple[str, FinishingStep], ...] = (
            ("api-export sniffing", self._finish_api_export),
            ("WFS negotiation", self._finish_wfs_service),
            ("content-type sniffing", self._finish_unknown),
        )
        current: Optional[DownloadCandidate] = candidate
        for name, step in steps:
            current = await step(client, current, resource_id)  # type: ignore[arg-type]
            if current is None:
                self.log.warning("Resolution of %s failed during %s.", candidate.url, name)
                return None

        if current.format in INTERMEDIATE_FORMATS:
            return None
        return ResolutionResult(url=current.url, format=current.format)

    # ---- selection strategies -------------------------------------------

    async def _accept_if_reachable(
        self, client: httpx.AsyncClient, candidate: DownloadCandidate, resource_id: str
    ) -> Optional[DownloadCandidate]:
        if candidate.format == "wfs_service":
            self.log.info("WFS link detected, validating %s", candidate.url)
        if await probe_url(client, candidate.url, config=self.config, log=self.log):
            self.log.info(
                "Link validated (%s, rule %s): %s",
                candidate.format,
                candidate.rule,
                candidate.url,
            )
            return candidate
        return None

    async def _negotiate(
        self, client: httpx.AsyncClient, candidate: DownloadCandidate, resource_id: str
    ) -> Optional[ResolutionResult]:
        return await negotiate_wfs_format(
            client,
            candidate.url,
            resource_id,
            candidate.layer_name,
            config=self.config,
            log=self.log,
        )

    # ---- finishing steps -------------------------------------------------

    async def _finish_api_export(
        self, client: httpx.AsyncClient, candidate: DownloadCandidate, resource_id: str
    ) -> Optional[DownloadCandidate]:
        if not is_api_export_url(candidate.url):
            return candidate
        url = candidate.url
        if has_query_key(url, "format"):
            url = drop_query_keys(url, ("format",))
        fmt = await sniff_format(client, url, config=self.config, log=self.log)
        if fmt is None or fmt in INTERMEDIATE_FORMATS:
            self.log.info("Export format not detected for %s, assuming shapefile.", url)
            fmt = "shapefile"
        return replace(candidate, url=url, format=fmt)

    async def _finish_wfs_service(
        self, client: httpx.AsyncClient, candidate: DownloadCandidate, resource_id: str
    ) -> Optional[DownloadCandidate]:
        # Also covers a declared OUTPUTFORMAT that maps to no concrete format.
        if candidate.format != "wfs_service":
            return candidate
        negotiated = await self._negotiate(client, candidate, resource_id)
        if negotiated is None:
            return None
        return replace(candidate, url=negotiated.url, format=negotiated.format)

    async def _finish_unknown(
        self, client: httpx.AsyncClient, candidate: DownloadCandidate, resource_id: str
    ) -> Optional[DownloadCandidate]:
        if candidate.format != "unknown":
            return candidate
        fmt = await sniff_format(client, candidate.url, config=self.config, log=self.log)
        if fmt is None:
            self.log.warning(
                "No supported format (GeoJSON, Shapefile, KML, CSV, XLSX, XLS, ODS, "
                "GPX, KMZ) detected for %s",
                candidate.url,
            )
            return None
        self.log.info("Format detected from headers: %s", fmt)
        return replace(candidate, format=fmt)
