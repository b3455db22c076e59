"""Shared field projection helpers for catalog tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar

from .field_paths import FieldPath, format_path

logger = logging.getLogger("woo_catalog_server.utils.projection")

Thunk = Callable[[], Any]
Decision = Callable[[FieldPath], bool]

T = TypeVar("T")


class FieldComputationError(Exception):
    """A field computer failed while projecting an entity."""

    def __init__(self, path: FieldPath, cause: BaseException):
        super().__init__(f"Failed to compute field {format_path(path)!r}: {cause}")
        self.path = tuple(path)
        self.cause = cause


@dataclass(frozen=True)
class FieldSpec:
    """One declared field; ``children`` makes it a composite object.

    ``key`` is the output key when it differs from the path segment.
    """

    name: str
    children: Tuple["FieldSpec", ...] = ()
    key: Optional[str] = None

    @property
    def output_key(self) -> str:
        return self.key or self.name

    @property
    def is_composite(self) -> bool:
        return bool(self.children)


def child(name: str, key: Optional[str] = None) -> FieldSpec:
    return FieldSpec(name=name, key=key)


@dataclass(frozen=True)
class EntitySchema:
    kind: str
    fields: Tuple[FieldSpec, ...]

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def all_paths(self) -> List[FieldPath]:
        paths: List[FieldPath] = []
        for spec in self.fields:
            paths.append((spec.name,))
            for sub in spec.children:
                paths.append((spec.name, sub.name))
        return paths


def _compute(path: FieldPath, thunk: Thunk) -> Any:
    try:
        return thunk()
    except FieldComputationError:
        raise
    except Exception as exc:
        raise FieldComputationError(path, exc) from exc


def project(
    schema: EntitySchema,
    decision: Decision,
    computers: Mapping[FieldPath, Thunk],
) -> Dict[str, Any]:
    """Compute and assemble only the fields the decision includes.

    Walks the schema in declaration order so the response key order is
    stable. A thunk is invoked only after its path (and, for children, the
    parent path) has been accepted.
    """
    projected: Dict[str, Any] = {}

    for spec in schema.fields:
        path = (spec.name,)
        if not decision(path):
            continue

        if not spec.is_composite:
            thunk = computers.get(path)
            if thunk is None:
                logger.debug("No computer for %s.%s, skipping", schema.kind, spec.name)
                continue
            projected[spec.output_key] = _compute(path, thunk)
            continue

        nested: Dict[str, Any] = {}
        for sub in spec.children:
            sub_path = (spec.name, sub.name)
            if not decision(sub_path):
                continue
            thunk = computers.get(sub_path)
            if thunk is None:
                logger.debug("No computer for %s.%s, skipping", schema.kind, format_path(sub_path))
                continue
            nested[sub.output_key] = _compute(sub_path, thunk)
        projected[spec.output_key] = nested

    return projected


def project_many(
    items: Iterable[T],
    project_one: Callable[[T], Dict[str, Any]],
) -> Tuple[List[Dict[str, Any]], int]:
    """Project a collection, skipping entities whose fields fail to compute.

    Returns (projected_items, skipped_count).
    """
    projected: List[Dict[str, Any]] = []
    skipped = 0
    for item in items:
        try:
            projected.append(project_one(item))
        except FieldComputationError as exc:
            skipped += 1
            item_id = item.get("id") if isinstance(item, dict) else getattr(item, "id", None)
            logger.warning("Skipping entity id=%s: %s", item_id, exc)
    return projected, skipped
