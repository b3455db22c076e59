"""Dotted field path parsing helpers."""

from __future__ import annotations

import logging
from typing import Iterable, Tuple, Union

logger = logging.getLogger("woo_catalog_server.utils.field_paths")

PATH_SEPARATOR = "."

FieldPath = Tuple[str, ...]


class InvalidFieldPath(ValueError):
    """Raised when a dotted field path is empty or has an empty segment."""


def parse_path(raw: str) -> FieldPath:
    """Split a dotted path like "stock.status" into ("stock", "status")."""
    if raw is None:
        raise InvalidFieldPath("Field path is empty")
    text = str(raw).strip()
    if not text:
        raise InvalidFieldPath("Field path is empty")
    segments = tuple(segment.strip() for segment in text.split(PATH_SEPARATOR))
    if any(not segment for segment in segments):
        raise InvalidFieldPath(f"Field path has an empty segment: {raw!r}")
    return segments


def format_path(path: FieldPath) -> str:
    return PATH_SEPARATOR.join(path)


def parse_path_list(raw: Union[str, Iterable[str], None]) -> frozenset[FieldPath]:
    """Parse a CSV string or a list of dotted paths into a set of paths.

    - None or "" -> empty set (no restriction)
    - "name,stock.status" -> {("name",), ("stock", "status")}
    - ["name", "name"] -> {("name",)}

    A malformed token such as "stock..status" is kept as a single opaque
    segment. It matches no declared field, but still counts as a selection,
    so a value made only of bad tokens never falls through to another tier.
    """
    if raw is None:
        return frozenset()

    if isinstance(raw, str):
        tokens = raw.split(",")
    else:
        tokens = []
        for item in raw:
            # Tool callers sometimes pass ["name,sku"] instead of ["name", "sku"]
            tokens.extend(str(item).split(","))

    paths = set()
    for token in tokens:
        if not token.strip():
            continue
        try:
            paths.add(parse_path(token))
        except InvalidFieldPath as exc:
            logger.debug("Unknown field token %r: %s", token, exc)
            paths.add((token.strip(),))
    return frozenset(paths)


def is_ancestor_or_self(candidate: FieldPath, of: FieldPath) -> bool:
    """True when candidate is a segment-wise prefix of `of` (or equal to it)."""
    if len(candidate) > len(of):
        return False
    return tuple(of[: len(candidate)]) == tuple(candidate)


def any_ancestor_or_self(path: FieldPath, paths: Iterable[FieldPath]) -> bool:
    return any(is_ancestor_or_self(candidate, path) for candidate in paths)


def any_descendant(path: FieldPath, paths: Iterable[FieldPath]) -> bool:
    """True when some entry of `paths` lies strictly below `path`."""
    return any(
        len(candidate) > len(path) and is_ancestor_or_self(path, candidate)
        for candidate in paths
    )
