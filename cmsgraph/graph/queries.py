"""Query synthesis: search, locate and content documents built from the schema.

Documents are graphql-core AST nodes printed by ``document.render`` and
re-parsed by ``document.validate``; nothing here concatenates braces by hand.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
import math
from typing import Any

from graphql.language.ast import DefinitionNode, SelectionNode, VariableDefinitionNode

from cmsgraph.graph.classifier import is_composition_field, project_field
from cmsgraph.graph.document import (
    document,
    enum_value,
    field,
    field_names,
    inline_fragment,
    is_list_variable,
    operation,
    parse_definitions,
    render,
    validate,
    variable,
    variable_name,
)
from cmsgraph.graph.fragments import FragmentGenerator, build_composition_selection
from cmsgraph.graph.introspector import SchemaIntrospector
from cmsgraph.graph.types import FieldDescriptor, GraphQLQuery

logger = logging.getLogger(__name__)

SEARCHABLE_SHARE = 0.7
DEFAULT_LOCALE_TYPE = "[Locales]"


def select_fields(
    names: list[str],
    searchable_fields: Iterable[str],
    max_fields: int,
) -> list[str]:
    """Trim *names* to *max_fields* by priority.

    Metadata (underscore) fields first, then searchable fields up to 70% of
    the remaining slots, then everything else; searchable fields backfill any
    slots the others leave empty.
    """
    if len(names) <= max_fields:
        return list(names)

    searchable_set = set(searchable_fields)
    metadata = [f for f in names if f.startswith("_")]
    searchable = [f for f in names if not f.startswith("_") and f in searchable_set]
    others = [f for f in names if not f.startswith("_") and f not in searchable_set]

    selected = metadata[:max_fields]
    remaining = max_fields - len(selected)

    quota = math.floor(remaining * SEARCHABLE_SHARE)
    picked_searchable = searchable[:quota]
    remaining -= len(picked_searchable)

    picked_others = others[:remaining]
    remaining -= len(picked_others)

    backfill = searchable[len(picked_searchable) : len(picked_searchable) + remaining]
    return selected + picked_searchable + picked_others + backfill


# -- Shared selections --------------------------------------------------------


def search_metadata_selection() -> SelectionNode:
    return field(
        "_metadata",
        [
            *field_names("key", "displayName", "types"),
            field("url", field_names("default", "hierarchical")),
            *field_names("published", "lastModified", "status", "locale"),
        ],
    )


def facets_selection() -> SelectionNode:
    return field(
        "facets",
        [
            field(
                "_metadata",
                [field("types", field_names("name", "count")), field("locale", field_names("name", "count"))],
            )
        ],
    )


def typename_alias() -> SelectionNode:
    return field("__typename", alias="_type")


def key_filter(key: VariableDefinitionNode) -> dict[str, Any]:
    return {"_metadata": {"key": {"eq": key}}}


def path_filter(path: VariableDefinitionNode) -> dict[str, Any]:
    return {
        "_or": [
            {"_metadata": {"url": {"default": {"eq": path}}}},
            {"_metadata": {"url": {"hierarchical": {"eq": path}}}},
        ]
    }


class QuerySynthesizer:
    """Builds every document the service sends to the content graph."""

    def __init__(
        self,
        introspector: SchemaIntrospector,
        fragments: FragmentGenerator,
        default_locale: str = "en",
    ):
        self._introspector = introspector
        self._fragments = fragments
        self._default_locale = default_locale

    # -- helpers --

    async def _content_root(self) -> str:
        return await self._introspector.find_content_query_field() or "_Content"

    async def _locale_variable(self, root_field: str) -> VariableDefinitionNode | None:
        """The ``$locale`` variable, typed as the root field declares it; ``None`` if it takes no locale."""
        root = None
        for f in await self._introspector.get_query_fields():
            if f.name == root_field:
                root = f
                break
        if root is None:
            return variable("locale", DEFAULT_LOCALE_TYPE)
        for arg in root.args:
            if arg.name == "locale":
                return variable("locale", arg.type_name)
        return None

    def _locale_value(self, locale: str | None, var: VariableDefinitionNode) -> Any:
        value = locale or self._default_locale
        return [value] if is_list_variable(var) else value

    def _finish(
        self,
        definitions: list[DefinitionNode],
        variables: dict[str, Any],
        root_field: str,
    ) -> GraphQLQuery:
        text = validate(render(document(*definitions)))
        logger.debug("Synthesized %s on %s", definitions[0].name.value, root_field)
        return GraphQLQuery(document=text, variables=variables, root_field=root_field)

    async def _locate(
        self,
        name: str,
        var: VariableDefinitionNode,
        where: dict[str, Any],
        value: str,
        locale: str | None,
    ) -> GraphQLQuery:
        root = await self._content_root()
        args: dict[str, Any] = {"where": where}
        variables: dict[str, Any] = {variable_name(var): value}
        declared = [var]
        locale_var = await self._locale_variable(root)
        if locale_var is not None:
            args["locale"] = locale_var
            declared.append(locale_var)
            variables["locale"] = self._locale_value(locale, locale_var)
        args["limit"] = 1
        items = field("items", [search_metadata_selection(), typename_alias()])
        op = operation(name, [field(root, [items], arguments=args)], declared)
        return self._finish([op], variables, root)

    # -- public builders --

    async def build_search_query(
        self,
        term: str,
        *,
        content_types: list[str] | None = None,
        locale: str | None = None,
        limit: int = 10,
        skip: int = 0,
        include_score: bool = True,
    ) -> GraphQLQuery:
        root = await self._content_root()
        query_var = variable("query", "String")
        limit_var = variable("limit", "Int")
        skip_var = variable("skip", "Int")
        declared = [query_var]
        variables: dict[str, Any] = {"query": term, "limit": limit, "skip": skip}

        where: dict[str, Any] = {"_fulltext": {"match": query_var}}
        if content_types:
            types_var = variable("types", "[String]")
            declared.append(types_var)
            variables["types"] = content_types
            where["_metadata"] = {"types": {"in": types_var}}

        args: dict[str, Any] = {"where": where}
        locale_var = await self._locale_variable(root)
        if locale_var is not None:
            declared.append(locale_var)
            args["locale"] = locale_var
            variables["locale"] = self._locale_value(locale, locale_var)
        declared += [limit_var, skip_var]
        args["limit"] = limit_var
        args["skip"] = skip_var
        if include_score:
            args["orderBy"] = {"_ranking": enum_value("RELEVANCE")}

        item_children: list[SelectionNode] = [search_metadata_selection(), typename_alias()]
        if include_score:
            item_children.append(field("_score"))

        body = field(
            root,
            [field("items", item_children), field("total"), facets_selection()],
            arguments=args,
        )
        return self._finish([operation("SearchContent", [body], declared)], variables, root)

    async def build_locate_by_key(self, key: str, locale: str | None = None) -> GraphQLQuery:
        var = variable("key", "String")
        return await self._locate("LocateByKey", var, key_filter(var), key, locale)

    async def build_locate_by_path(self, path: str, locale: str | None = None) -> GraphQLQuery:
        var = variable("path", "String")
        return await self._locate("LocateByPath", var, path_filter(var), path, locale)

    async def build_content_query(
        self,
        content_type: str,
        fields: list[FieldDescriptor],
        *,
        key: str | None = None,
        path: str | None = None,
        locale: str | None = None,
    ) -> tuple[GraphQLQuery, list[str]]:
        """Fetch one item of *content_type* by key or path with the given fields.

        Fields go inside ``... on <content_type>`` only when the queryable
        root differs from the type itself. Metadata always comes back as the
        ``_metadata`` block, so other underscore fields are ignored. Returns
        the query and the names of the fields actually selected.
        """
        if (key is None) == (path is None):
            raise ValueError("build_content_query needs exactly one of key or path")

        root = await self._introspector.get_queryable_root(content_type)
        info = await self._introspector.get_content_type(content_type)

        discovered: list[str] = ["_metadata"]
        typed: list[SelectionNode] = []
        for f in fields:
            if f.name.startswith("_"):
                continue
            selection = project_field(f)
            if selection is None:
                continue
            typed.append(selection)
            discovered.append(f.name)

        composition_fields = [f for f in (info.fields if info else []) if is_composition_field(f)]
        for f in composition_fields:
            typed.append(build_composition_selection(f.name, self._introspector))
            discovered.append(f.name)

        item_children: list[SelectionNode] = [search_metadata_selection(), typename_alias()]
        if typed:
            if root != content_type:
                item_children.append(inline_fragment(content_type, typed))
            else:
                item_children.extend(typed)

        if key is not None:
            var = variable("key", "String")
            name, value, where = "GetContentByKey", key, key_filter(var)
        else:
            var = variable("path", "String")
            name, value, where = "GetContentByPath", path, path_filter(var)

        args: dict[str, Any] = {"where": where}
        declared = [var]
        variables: dict[str, Any] = {variable_name(var): value}
        locale_var = await self._locale_variable(root)
        if locale_var is not None:
            args["locale"] = locale_var
            declared.append(locale_var)
            variables["locale"] = self._locale_value(locale, locale_var)
        args["limit"] = 1

        definitions: list[DefinitionNode] = [
            operation(name, [field(root, [field("items", item_children)], arguments=args)], declared)
        ]
        if composition_fields:
            definitions += parse_definitions(await self._fragments.get_all_components_fragment())
        return self._finish(definitions, variables, root), discovered
