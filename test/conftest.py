from __future__ import annotations

import asyncio
import copy

import httpx
import pytest

from csw_resolver.config import DEFAULT_CONFIG
from csw_resolver.resolver import LinkResolver


def _online_resource(link) -> dict:
    """Accepts a bare URL or a (url, protocol, name) tuple."""
    if isinstance(link, str):
        link = (link,)
    url, protocol, name = (tuple(link) + ("", ""))[:3]
    resource: dict = {"linkage": {"URL": url}}
    if protocol:
        resource["protocol"] = {"CharacterString": protocol}
    if name:
        resource["name"] = {"CharacterString": name}
    return {"CI_OnlineResource": resource}


@pytest.fixture
def config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def metadata_for():
    """Build an MD_Metadata tree whose single transfer option lists ``links``."""

    def _build(*links) -> dict:
        return {
            "MD_Metadata": {
                "distributionInfo": {
                    "MD_Distribution": {
                        "transferOptions": {
                            "MD_DigitalTransferOptions": {
                                "onLine": [_online_resource(link) for link in links]
                            }
                        }
                    }
                }
            }
        }

    return _build


@pytest.fixture
def with_client():
    """Run ``fn(client)`` against a MockTransport-backed AsyncClient."""

    def _run(handler, fn):
        async def _go():
            async with httpx.AsyncClient(
                transport=httpx.MockTransport(handler), follow_redirects=True
            ) as client:
                return await fn(client)

        return asyncio.run(_go())

    return _run


@pytest.fixture
def resolve(config):
    """Resolve ``metadata`` with a LinkResolver whose client talks to ``handler``."""

    def _resolve(handler, metadata, resource_id="res-1", **kwargs):
        resolver = LinkResolver(
            config=config, transport=httpx.MockTransport(handler), **kwargs
        )
        return asyncio.run(resolver.resolve(metadata, resource_id))

    return _resolve
