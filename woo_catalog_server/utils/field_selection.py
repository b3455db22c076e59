"""Field selection and decision logic for response shaping.

A request carries up to three hints about which fields it wants:

- ``fields``: dotted paths to return (wins over everything else)
- ``exclude_fields``: dotted paths to leave out
- ``response``: a named profile with a curated default field set

They are folded into a single ``FieldDecision`` once per request. The
decision only depends on the selection and profile configuration, never on
entity data, so one decision serves every entity of a page.

Note: when both ``fields`` and ``exclude_fields`` are given, ``fields`` wins
and exclusions are ignored. This matches the long-standing behaviour of the
catalog API; clients rely on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .field_paths import (
    FieldPath,
    any_ancestor_or_self,
    any_descendant,
    format_path,
    parse_path_list,
)

logger = logging.getLogger("woo_catalog_server.utils.field_selection")

DEFAULT_PROFILE = "default"
RESPONSE_PROFILES = ("default", "quick_browse", "quick_view")

ProfileDefaults = Mapping[str, Iterable[FieldPath]]


class UnknownResponseProfile(ValueError):
    """Raised when a response profile name is not configured."""

    def __init__(self, profile: str):
        super().__init__(f"Unknown response profile: {profile!r}")
        self.profile = profile


@dataclass(frozen=True)
class FieldSelection:
    requested: frozenset = field(default_factory=frozenset)
    excluded: frozenset = field(default_factory=frozenset)
    response_profile: str = DEFAULT_PROFILE
    include_meta: frozenset = field(default_factory=frozenset)
    exclude_meta: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class FieldDecision:
    """Callable answering ``included(path) -> bool`` for one selection.

    ``mode`` records which precedence tier produced the decision:
    "requested", "excluded" or "profile".
    """

    mode: str
    paths: frozenset
    always_included: frozenset = field(default_factory=frozenset)

    def __call__(self, path: FieldPath) -> bool:
        path = tuple(path)
        if any_ancestor_or_self(path, self.always_included) or any_descendant(
            path, self.always_included
        ):
            return True
        if self.mode == "requested":
            # A parent request includes all children, and a child request
            # keeps its parent container.
            return any_ancestor_or_self(path, self.paths) or any_descendant(path, self.paths)
        if self.mode == "excluded":
            return not any_ancestor_or_self(path, self.paths)
        return any_ancestor_or_self(path, self.paths) or any_descendant(path, self.paths)

    def describe(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "paths": sorted(format_path(p) for p in self.paths),
        }


def resolve(
    selection: FieldSelection,
    profile_defaults: ProfileDefaults,
    always_included: Iterable[FieldPath] = (),
) -> FieldDecision:
    """Fold a selection and profile configuration into a FieldDecision.

    Raises UnknownResponseProfile when the profile is needed and missing.
    """
    always = frozenset(tuple(p) for p in always_included)

    if selection.requested:
        return FieldDecision("requested", frozenset(selection.requested), always)
    if selection.excluded:
        return FieldDecision("excluded", frozenset(selection.excluded), always)

    profile = selection.response_profile
    if profile not in RESPONSE_PROFILES or profile not in profile_defaults:
        raise UnknownResponseProfile(profile)
    defaults = frozenset(tuple(p) for p in profile_defaults[profile])
    return FieldDecision("profile", defaults, always)


def resolve_with_fallback(
    selection: FieldSelection,
    profile_defaults: ProfileDefaults,
    always_included: Iterable[FieldPath] = (),
) -> FieldDecision:
    """Like resolve(), but an unknown profile falls back to "default"."""
    try:
        return resolve(selection, profile_defaults, always_included)
    except UnknownResponseProfile as exc:
        logger.warning("%s; falling back to %r", exc, DEFAULT_PROFILE)
        fallback = FieldSelection(
            requested=selection.requested,
            excluded=selection.excluded,
            response_profile=DEFAULT_PROFILE,
            include_meta=selection.include_meta,
            exclude_meta=selection.exclude_meta,
        )
        return resolve(fallback, profile_defaults, always_included)


def _parse_keys(raw: Union[str, Iterable[str], None]) -> frozenset:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(",")
    return frozenset(str(k).strip() for k in raw if str(k).strip())


def selection_from_params(
    fields: Union[str, List[str], None] = None,
    exclude_fields: Union[str, List[str], None] = None,
    response: Optional[str] = None,
    include_meta: Union[str, List[str], None] = None,
    exclude_meta: Union[str, List[str], None] = None,
    default_profile: str = DEFAULT_PROFILE,
) -> FieldSelection:
    """Build a FieldSelection from query-string or tool arguments."""
    profile = (response or "").strip() or default_profile
    return FieldSelection(
        requested=parse_path_list(fields),
        excluded=parse_path_list(exclude_fields),
        response_profile=profile,
        include_meta=_parse_keys(include_meta),
        exclude_meta=_parse_keys(exclude_meta),
    )


def filter_meta(entries: List[Dict[str, Any]], selection: FieldSelection) -> List[Dict[str, Any]]:
    """Limit meta_data entries by key; include_meta wins over exclude_meta."""
    if selection.include_meta:
        return [e for e in entries if e.get("key") in selection.include_meta]
    if selection.exclude_meta:
        return [e for e in entries if e.get("key") not in selection.exclude_meta]
    return list(entries)
