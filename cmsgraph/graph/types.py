"""Types shared by the schema discovery and query synthesis engine.

Two layers:
1. Schema model: immutable descriptors built once per introspection fetch
2. Results: what resolution and enrichment hand back to callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# -- Schema model (built once per schema fetch) -------------------------------


class TypeKind(str, Enum):
    OBJECT = "OBJECT"
    INTERFACE = "INTERFACE"
    INPUT_OBJECT = "INPUT_OBJECT"
    ENUM = "ENUM"
    SCALAR = "SCALAR"
    UNION = "UNION"


@dataclass(frozen=True)
class ArgumentDescriptor:
    name: str
    type_name: str  # rendered GraphQL type, e.g. "[Locales]" or "String!"
    default_value: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class FieldDescriptor:
    """A field with its NON_NULL/LIST wrappers unwrapped.

    ``base_type_name`` is always the named leaf type, never a wrapper.
    """

    name: str
    base_type_name: str
    is_list: bool = False
    is_required: bool = False
    args: tuple[ArgumentDescriptor, ...] = ()
    description: str | None = None


@dataclass(frozen=True)
class TypeDescriptor:
    """One named type from the introspection document."""

    name: str
    kind: TypeKind
    fields: tuple[FieldDescriptor, ...] = ()
    interfaces: tuple[str, ...] = ()
    possible_types: tuple[str, ...] = ()
    input_fields: tuple[FieldDescriptor, ...] = ()
    enum_values: tuple[str, ...] = ()
    description: str | None = None

    def field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass
class ContentTypeInfo:
    """Derived view of one content type, memoized per introspector."""

    name: str
    fields: list[FieldDescriptor] = field(default_factory=lambda: list[FieldDescriptor]())
    searchable_fields: list[str] = field(default_factory=lambda: list[str]())
    metadata_fields: list[str] = field(default_factory=lambda: list[str]())
    interfaces: list[str] = field(default_factory=lambda: list[str]())


@dataclass
class GeneratedFragment:
    name: str
    content: str
    component_types: list[str] = field(default_factory=lambda: list[str]())
    conflicts: list[str] = field(default_factory=lambda: list[str]())
    generated_at: float = 0.0


# -- Resolution and enrichment results ----------------------------------------


class IdentifierType(str, Enum):
    AUTO = "auto"
    PATH = "path"
    KEY = "key"
    SEARCH = "search"


@dataclass
class GraphQLQuery:
    """A rendered document ready for the transport."""

    document: str
    variables: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())
    root_field: str = ""


@dataclass
class ResolvedContent:
    key: str
    content_type: str
    method: str  # "search", "locate-path" or "locate-key"
    score: float | None = None
    alternatives: list[dict[str, Any]] = field(default_factory=lambda: list[dict[str, Any]]())
    metadata: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())


@dataclass
class EnrichedContent:
    content: dict[str, Any]
    discovered_fields: list[str]
    method: str
    content_type: str
    identifier_type: IdentifierType
    score: float | None = None
    alternatives: list[dict[str, Any]] = field(default_factory=lambda: list[dict[str, Any]]())
    schema: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": self.content,
            "discoveredFields": self.discovered_fields,
            "method": self.method,
            "contentType": self.content_type,
            "identifierType": self.identifier_type.value,
        }
        if self.score is not None:
            payload["score"] = self.score
        if self.alternatives:
            payload["alternatives"] = self.alternatives
        if self.schema is not None:
            payload["schema"] = self.schema
        return payload
