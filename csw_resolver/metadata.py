# csw_resolver/metadata.py
"""
Tolerant access to ISO 19139 metadata trees.

The tree comes from xmltodict with namespace prefixes stripped, so any child
may be a mapping, a plain string, a list of either, or None depending on the
catalog vendor. ``as_list`` and ``as_text`` absorb those shape differences so
that the walkers below never need defensive checks of their own.
"""
from __future__ import annotations

import logging
from typing import Any, List, Mapping

from csw_resolver.models import MetadataDocument, RawLink

log = logging.getLogger(__name__)

# Localized-text wrappers: <gco:CharacterString> or an element with attributes.
TEXT_KEYS = ("CharacterString", "#text")


def as_list(node: Any) -> List[Any]:
    """Empty for absent/falsy nodes, the node itself for sequences, else [node]."""
    if not node:
        return []
    if isinstance(node, (list, tuple)):
        return list(node)
    return [node]


def as_text(node: Any) -> str:
    """Plain string for a scalar or a localized-text wrapper, "" otherwise."""
    if not node:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, Mapping):
        for key in TEXT_KEYS:
            value = node.get(key)
            if isinstance(value, str) and value:
                return value
    return ""


def _unwrap(node: Any, key: str) -> Any:
    """Return node[key] when the node is wrapped in ``key``, else the node itself."""
    if isinstance(node, Mapping) and key in node:
        return node[key]
    return node


def dig(node: Any, *keys: str) -> Any:
    """Follow ``keys`` through mappings, taking the first item of any list."""
    for key in keys:
        items = as_list(node)
        if not items or not isinstance(items[0], Mapping):
            return None
        node = items[0].get(key)
    return node


def metadata_root(metadata: MetadataDocument) -> Any:
    return _unwrap(metadata, "MD_Metadata")


def _distributions(metadata: MetadataDocument) -> List[Mapping[str, Any]]:
    root = metadata_root(metadata)
    out: List[Mapping[str, Any]] = []
    for root_item in as_list(root):
        if not isinstance(root_item, Mapping):
            continue
        for info in as_list(root_item.get("distributionInfo")):
            for dist in as_list(_unwrap(info, "MD_Distribution")):
                if isinstance(dist, Mapping):
                    out.append(dist)
    return out


def _link_from_resource(node: Any) -> RawLink | None:
    resource = _unwrap(node, "CI_OnlineResource")
    if not isinstance(resource, Mapping):
        return None
    linkage = resource.get("linkage")
    url = as_text(linkage.get("URL")) if isinstance(linkage, Mapping) else ""
    url = (url or as_text(linkage)).strip()
    if not url:
        return None
    return RawLink(
        url=url,
        protocol=as_text(resource.get("protocol")).strip(),
        name=as_text(resource.get("name")).strip(),
    )


def extract_links(metadata: MetadataDocument) -> List[RawLink]:
    """
    Walk distributionInfo -> MD_Distribution -> transferOptions ->
    MD_DigitalTransferOptions -> onLine and return the declared links in
    document order. Entries without a URL are discarded.
    """
    links: List[RawLink] = []
    for dist in _distributions(metadata):
        for transfer in as_list(dist.get("transferOptions")):
            for digital in as_list(_unwrap(transfer, "MD_DigitalTransferOptions")):
                if not isinstance(digital, Mapping):
                    continue
                for online in as_list(digital.get("onLine")):
                    link = _link_from_resource(online)
                    if link is not None:
                        links.append(link)
    return links


def declared_formats(metadata: MetadataDocument) -> List[str]:
    """Lowercased distributionFormat names, for logging only."""
    out: List[str] = []
    for dist in _distributions(metadata):
        for fmt in as_list(dist.get("distributionFormat")):
            name = as_text(dig(_unwrap(fmt, "MD_Format"), "name")).strip().lower()
            if name:
                out.append(name)
    return out
