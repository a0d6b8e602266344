"""Field classification by type-name pattern.

Matching is purely syntactic on the lowercased declared type name; the
first pattern that matches decides the sub-selection. Types that match
nothing are left out of projections rather than guessed at.
"""

from __future__ import annotations

from enum import Enum
import logging

from graphql.language.ast import FieldNode, SelectionNode

from cmsgraph.graph.document import field, field_names, render_selection_set
from cmsgraph.graph.types import FieldDescriptor

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    COMPOSITION = "composition"
    RICH_TEXT = "rich_text"
    CONTENT_REFERENCE = "content_reference"
    CONTENT_AREA = "content_area"
    LINK = "link"
    MEDIA = "media"
    SCALAR = "scalar"
    UNSUPPORTED = "unsupported"


# Ordered; first match wins.
_PATTERNS: list[tuple[tuple[str, ...], FieldKind]] = [
    (("composition",), FieldKind.COMPOSITION),
    (("richtext",), FieldKind.RICH_TEXT),
    (("contentreference",), FieldKind.CONTENT_REFERENCE),
    (("contentarea",), FieldKind.CONTENT_AREA),
    (("link",), FieldKind.LINK),
    (("image", "media"), FieldKind.MEDIA),
]

SCALAR_SUBSTRINGS = (
    "string", "integer", "float", "double", "boolean",
    "date", "datetime", "decimal", "bool",
)
# Short names only match exactly: "id" is inside "video", "int" inside "point".
SCALAR_EXACT = frozenset({"id", "int", "long"})


def _url_default() -> list[SelectionNode]:
    return [field("url", field_names("default"))]


def classify(f: FieldDescriptor) -> FieldKind:
    type_name = f.base_type_name.lower()
    for patterns, kind in _PATTERNS:
        if any(p in type_name for p in patterns):
            return kind
    if type_name in SCALAR_EXACT or any(s in type_name for s in SCALAR_SUBSTRINGS):
        return FieldKind.SCALAR
    return FieldKind.UNSUPPORTED


def sub_selection(f: FieldDescriptor, include_references: bool = True) -> list[SelectionNode] | None:
    """Children to select under *f*; ``[]`` for leaves, ``None`` if not projectable."""
    kind = classify(f)
    if kind == FieldKind.SCALAR:
        return []
    if kind == FieldKind.RICH_TEXT:
        return field_names("html", "json")
    if kind in (FieldKind.CONTENT_REFERENCE, FieldKind.CONTENT_AREA):
        return _url_default() if include_references else None
    if kind == FieldKind.LINK:
        return _url_default() + field_names("text")
    if kind == FieldKind.MEDIA:
        return _url_default()
    return None


def get_field_projection(f: FieldDescriptor, include_references: bool = True) -> str | None:
    """Sub-selection text for *f*: ``""`` for scalars, ``None`` when it can't be projected."""
    children = sub_selection(f, include_references)
    if children is None:
        return None
    return render_selection_set(children)


def project_field(f: FieldDescriptor, include_references: bool = True) -> FieldNode | None:
    if f.name.startswith("_"):
        return None
    children = sub_selection(f, include_references)
    if children is None:
        logger.debug("Skipping unsupported field %s: %s", f.name, f.base_type_name)
        return None
    return field(f.name, children)


def is_basic_field(f: FieldDescriptor) -> bool:
    if f.name.startswith("_"):
        return False
    return classify(f) in (FieldKind.SCALAR, FieldKind.RICH_TEXT)


def is_composition_field(f: FieldDescriptor) -> bool:
    return classify(f) == FieldKind.COMPOSITION
