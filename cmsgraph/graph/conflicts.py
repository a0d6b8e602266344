"""Cross-type field conflict detection for merged component fragments.

Inline fragments spread on the same interface must agree on the selection
for any shared field name. A field whose signature differs between two
component types is dropped from every component's fragment.
"""

from __future__ import annotations

from collections import defaultdict
import logging

from cmsgraph.graph.classifier import get_field_projection
from cmsgraph.graph.introspector import SchemaIntrospector

logger = logging.getLogger(__name__)


def detect_field_conflicts(type_names: list[str], introspector: SchemaIntrospector) -> set[str]:
    """Field names whose signature differs across the given types.

    Signature is the projection text when non-empty, otherwise the declared
    type name. Unknown types are skipped.
    """
    signatures: dict[str, dict[str, str]] = defaultdict(dict)
    for type_name in type_names:
        t = introspector.get_type(type_name)
        if t is None:
            continue
        for f in t.fields:
            if f.name.startswith("_"):
                continue
            projection = get_field_projection(f)
            signatures[f.name][type_name] = projection or f.base_type_name

    conflicts: set[str] = set()
    for field_name, by_type in signatures.items():
        if len(set(by_type.values())) > 1:
            conflicts.add(field_name)
            logger.warning(
                "Field conflict: '%s' differs across component types %s",
                field_name,
                dict(sorted(by_type.items())),
            )
    return conflicts
