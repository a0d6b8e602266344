"""GraphQL documents built as graphql-core AST nodes.

The helpers below are thin constructors over ``graphql.language.ast`` so
builders read close to the query they produce. ``render()`` prints with
``print_ast`` and ``validate()`` re-parses the printed text, so malformed
output fails before it hits the network.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from graphql import GraphQLSyntaxError, parse, parse_type, print_ast
from graphql.language.ast import (
    ArgumentNode,
    BooleanValueNode,
    DefinitionNode,
    DocumentNode,
    EnumValueNode,
    FieldNode,
    FloatValueNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    IntValueNode,
    ListTypeNode,
    ListValueNode,
    NamedTypeNode,
    NameNode,
    Node,
    NonNullTypeNode,
    NullValueNode,
    ObjectFieldNode,
    ObjectValueNode,
    OperationDefinitionNode,
    OperationType,
    SelectionNode,
    SelectionSetNode,
    StringValueNode,
    ValueNode,
    VariableDefinitionNode,
    VariableNode,
)

from cmsgraph.errors import QuerySynthesisError


def name(value: str) -> NameNode:
    return NameNode(value=value)


def _selection_set(children: Iterable[SelectionNode]) -> SelectionSetNode | None:
    selections = tuple(children)
    return SelectionSetNode(selections=selections) if selections else None


def field(
    field_name: str,
    children: Iterable[SelectionNode] = (),
    *,
    alias: str | None = None,
    arguments: Mapping[str, Any] | None = None,
) -> FieldNode:
    """A field selection; argument values go through ``to_value``."""
    return FieldNode(
        alias=name(alias) if alias else None,
        name=name(field_name),
        arguments=tuple(ArgumentNode(name=name(k), value=to_value(v)) for k, v in (arguments or {}).items()),
        directives=(),
        selection_set=_selection_set(children),
    )


def field_names(*names: str) -> list[SelectionNode]:
    return [field(n) for n in names]


def inline_fragment(type_condition: str, children: Iterable[SelectionNode]) -> InlineFragmentNode:
    return InlineFragmentNode(
        type_condition=NamedTypeNode(name=name(type_condition)),
        directives=(),
        selection_set=SelectionSetNode(selections=tuple(children)),
    )


def fragment_spread(fragment_name: str) -> FragmentSpreadNode:
    return FragmentSpreadNode(name=name(fragment_name), directives=())


def fragment_definition(
    fragment_name: str, type_condition: str, children: Iterable[SelectionNode]
) -> FragmentDefinitionNode:
    return FragmentDefinitionNode(
        name=name(fragment_name),
        variable_definitions=(),
        type_condition=NamedTypeNode(name=name(type_condition)),
        directives=(),
        selection_set=SelectionSetNode(selections=tuple(children)),
    )


def enum_value(value: str) -> EnumValueNode:
    return EnumValueNode(value=value)


# -- Variables ----------------------------------------------------------------


def variable(var_name: str, type_name: str = "String") -> VariableDefinitionNode:
    """``$var_name: type_name``; the type is parsed, so ``[Locales!]`` works."""
    return VariableDefinitionNode(
        variable=VariableNode(name=name(var_name)),
        type=parse_type(type_name, no_location=True),
        directives=(),
    )


def variable_name(definition: VariableDefinitionNode) -> str:
    return definition.variable.name.value


def is_list_variable(definition: VariableDefinitionNode) -> bool:
    type_node = definition.type
    if isinstance(type_node, NonNullTypeNode):
        type_node = type_node.type
    return isinstance(type_node, ListTypeNode)


def to_value(value: Any) -> ValueNode:
    """Python value to a GraphQL value node.

    A variable definition stands for a reference to that variable.
    """
    if isinstance(value, ValueNode):
        return value
    if isinstance(value, VariableDefinitionNode):
        return value.variable
    if isinstance(value, bool):
        return BooleanValueNode(value=value)
    if value is None:
        return NullValueNode()
    if isinstance(value, int):
        return IntValueNode(value=str(value))
    if isinstance(value, float):
        return FloatValueNode(value=repr(value))
    if isinstance(value, str):
        return StringValueNode(value=value)
    if isinstance(value, Mapping):
        return ObjectValueNode(
            fields=tuple(ObjectFieldNode(name=name(k), value=to_value(v)) for k, v in value.items())
        )
    if isinstance(value, (list, tuple)):
        return ListValueNode(values=tuple(to_value(v) for v in value))
    raise TypeError(f"Cannot convert {type(value).__name__} to a GraphQL value")


# -- Documents ----------------------------------------------------------------


def operation(
    operation_name: str,
    selections: Iterable[SelectionNode],
    variables: Iterable[VariableDefinitionNode] = (),
) -> OperationDefinitionNode:
    return OperationDefinitionNode(
        operation=OperationType.QUERY,
        name=name(operation_name),
        variable_definitions=tuple(variables),
        directives=(),
        selection_set=SelectionSetNode(selections=tuple(selections)),
    )


def document(*definitions: DefinitionNode) -> DocumentNode:
    return DocumentNode(definitions=tuple(definitions))


def parse_definitions(text: str) -> list[DefinitionNode]:
    """Definitions from already rendered text, such as a cached fragment."""
    try:
        return list(parse(text, no_location=True).definitions)
    except GraphQLSyntaxError as e:
        raise QuerySynthesisError(
            f"Fragment text does not parse: {e.message}",
            details={"document": text},
        ) from e


def render(node: Node) -> str:
    return print_ast(node)


def render_selection_set(children: Iterable[SelectionNode]) -> str:
    """Compact one-line form, e.g. ``{ url { default } text }``; ``""`` when empty."""
    selection_set = _selection_set(children)
    if selection_set is None:
        return ""
    return " ".join(print_ast(selection_set).split())


def validate(text: str) -> str:
    """Parse *text* with graphql-core; raise ``QuerySynthesisError`` if it fails."""
    try:
        parse(text)
    except GraphQLSyntaxError as e:
        raise QuerySynthesisError(
            f"Synthesized document does not parse: {e.message}",
            details={"document": text},
        ) from e
    return text
