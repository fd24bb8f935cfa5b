# csw_resolver/urls.py
"""
URL and query-string helpers.

Catalog servers are inconsistent about parameter case (``outputFormat``,
``OUTPUTFORMAT``, ``outputformat``), so every key comparison here is
case-insensitive.
"""
from __future__ import annotations

import os
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ALLOWED_SCHEMES = {"http", "https"}

QueryPairs = List[Tuple[str, str]]


def url_path(u: str) -> str:
    """Lowercased path component, or "" for unparsable input."""
    try:
        return urlsplit(u).path.lower()
    except ValueError:
        return ""


def path_suffix(u: str) -> str:
    """File extension of the URL path (".zip", ".csv", ...), lowercased."""
    _, ext = os.path.splitext(url_path(u))
    return ext


def query_pairs(u: str) -> QueryPairs:
    try:
        return parse_qsl(urlsplit(u).query, keep_blank_values=True)
    except ValueError:
        return []


def query_value(u: str, key: str) -> Optional[str]:
    """First value of ``key`` in the query string, matched case-insensitively."""
    wanted = key.lower()
    for k, v in query_pairs(u):
        if k.lower() == wanted:
            return v
    return None


def has_query_key(u: str, key: str) -> bool:
    return query_value(u, key) is not None


def _rebuild(u: str, pairs: QueryPairs) -> str:
    parts = urlsplit(u)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(pairs), ""))


def drop_query_keys(u: str, keys: Iterable[str]) -> str:
    """Remove every parameter whose lowercased key is in ``keys``."""
    lowered = {k.lower() for k in keys}
    kept = [(k, v) for k, v in query_pairs(u) if k.lower() not in lowered]
    return _rebuild(u, kept)


def set_query_params(u: str, params: Iterable[Tuple[str, str]]) -> str:
    """
    Replace (case-insensitively) or append each of ``params``.

    Existing parameters with a matching key are dropped and ``params`` are
    appended in the order given, so the result is deterministic.
    """
    params = list(params)
    replaced = {p.lower() for p, _ in params}
    pairs = [(k, v) for k, v in query_pairs(u) if k.lower() not in replaced]
    pairs.extend(params)
    return _rebuild(u, pairs)
