"""Header multimap helpers.

Headers are held in a ``multidict.CIMultiDict``: lookups are case-insensitive
and values for a key keep their insertion order. Keys are written in the
canonical MIME form (``content-type`` -> ``Content-Type``) so that requests
and responses present the same spelling regardless of how the gateway sent
them.
"""

import re
from typing import Dict, Iterable, List, Tuple

from multidict import CIMultiDict

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def canonical_header_key(key: str) -> str:
    """Return the canonical MIME form of a header key.

    Keys that are not valid HTTP tokens (e.g. containing spaces) are returned
    unchanged.

    Args:
        key: Header key as received

    Returns:
        Canonical header key
    """
    if not _TOKEN_RE.match(key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


def set_header(headers: CIMultiDict, key: str, value: str) -> None:
    """Replace all values of ``key`` with a single value."""
    headers[canonical_header_key(key)] = str(value)


def add_header(headers: CIMultiDict, key: str, value: str) -> None:
    """Append a value to ``key``, keeping any existing values."""
    headers.add(canonical_header_key(key), str(value))


def replace_header(headers: CIMultiDict, key: str, values: Iterable[str]) -> None:
    """Replace all values of ``key`` with ``values`` (in order)."""
    headers.popall(key, None)
    canonical = canonical_header_key(key)
    for value in values:
        headers.add(canonical, str(value))


def header_keys(headers: CIMultiDict) -> List[str]:
    """Distinct header keys in first-seen order."""
    seen = set()
    keys = []
    for key in headers.keys():
        folded = key.lower()
        if folded in seen:
            continue
        seen.add(folded)
        keys.append(str(key))
    return keys


def collapse_headers(headers: CIMultiDict) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    """Split a header multimap into the two maps of the outbound envelope.

    Keys with exactly one value go to the single-value map, keys with more
    than one value go to the multi-value map. No value is dropped.

    Args:
        headers: Header multimap

    Returns:
        Tuple of (single_value_headers, multi_value_headers)
    """
    single: Dict[str, str] = {}
    multi: Dict[str, List[str]] = {}
    for key in header_keys(headers):
        values = headers.getall(key)
        if len(values) == 1:
            single[key] = values[0]
        elif len(values) > 1:
            multi[key] = list(values)
    return single, multi
