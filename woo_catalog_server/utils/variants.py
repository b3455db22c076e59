"""Derive variant entity shapes (e.g. variations) from a base projection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class VariantFieldSpec:
    """Fields a variant kind drops from its base kind's projection.

    - drop_fields: top-level keys removed entirely
    - drop_nested: (parent_key, child_key) pairs removed from retained objects
    """

    base_kind: str
    variant_kind: str
    drop_fields: Tuple[str, ...] = ()
    drop_nested: Tuple[Tuple[str, str], ...] = ()


def specialize(projected: Dict[str, Any], spec: VariantFieldSpec) -> Dict[str, Any]:
    """Return a copy of ``projected`` with the spec's fields removed.

    The input is left untouched. Nested objects are copied only when a child
    key is actually removed from them; a parent that was excluded upstream
    is simply absent and is not an error.
    """
    result = {k: v for k, v in projected.items() if k not in spec.drop_fields}

    for parent, child_key in spec.drop_nested:
        value = result.get(parent)
        if not isinstance(value, dict) or child_key not in value:
            continue
        result[parent] = {k: v for k, v in value.items() if k != child_key}

    return result
