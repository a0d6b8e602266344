"""CLI entry point for cms-graph."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import functools
import sys
from typing import Any

import click

from cmsgraph.config import Settings, load_settings
from cmsgraph.errors import CmsGraphError
from cmsgraph.graph.types import IdentifierType
from cmsgraph.helpers.console import console, err_console, print_json
from cmsgraph.helpers.logs import setup_logging
from cmsgraph.service import ContentService, GetOptions


@click.group()
@click.version_option(version="0.1.0", prog_name="cms-graph")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Load settings from this .env file")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def cli(ctx: click.Context, env_file: str | None, log_level: str | None):
    """Query a headless CMS content graph, or serve it over MCP."""
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file
    ctx.obj["log_level"] = log_level


def _settings(ctx: click.Context) -> Settings:
    try:
        settings = load_settings(ctx.obj.get("env_file"))
    except CmsGraphError as e:
        err_console.print(f"[red]{e.message}[/red]")
        sys.exit(1)
    setup_logging(ctx.obj.get("log_level") or settings.log_level)
    return settings


def with_service(fn: Callable[..., Awaitable[Any]]) -> Callable[..., None]:
    """Build the service from settings, run the coroutine and print its result as JSON."""

    @click.pass_context
    @functools.wraps(fn)
    def wrapper(ctx: click.Context, *args: Any, **kwargs: Any) -> None:
        service = ContentService.from_settings(_settings(ctx))
        try:
            result = asyncio.run(fn(service, *args, **kwargs))
        except CmsGraphError as e:
            err_console.print(f"[red]{e.message}[/red]")
            print_json(e.as_dict())
            sys.exit(1)
        if isinstance(result, str):
            console.print(result, markup=False, highlight=False)
        else:
            print_json(result)

    return wrapper


@cli.command()
@click.pass_context
def serve(ctx: click.Context):
    """Run the MCP server on stdio."""
    from cmsgraph.server import create_server

    service = ContentService.from_settings(_settings(ctx))
    create_server(service).run()


@cli.command()
@click.argument("identifier")
@click.option(
    "--type",
    "identifier_type",
    default="auto",
    type=click.Choice([t.value for t in IdentifierType]),
    help="How to interpret IDENTIFIER (auto-detected by default)",
)
@click.option("--locale", default=None, help="Content locale")
@click.option("--field", "fields", multiple=True, help="Only query these fields (repeatable)")
@click.option("--max-fields", default=None, type=click.IntRange(1, 100), help="Field budget")
@click.option("--schema/--no-schema", "include_schema", default=False, help="Include the content type schema")
@with_service
async def get(
    service: ContentService,
    identifier: str,
    identifier_type: str,
    locale: str | None,
    fields: tuple[str, ...],
    max_fields: int | None,
    include_schema: bool,
):
    """Get content by search term, URL path, key or GUID."""
    options = GetOptions(
        identifier_type=IdentifierType(identifier_type),
        include_fields=list(fields),
        include_schema=include_schema,
        max_fields=max_fields or service.max_fields,
    )
    enriched = await service.resolve_and_enrich(identifier, locale, options)
    return enriched.as_dict()


@cli.command()
@click.argument("type_name")
@with_service
async def schema(service: ContentService, type_name: str):
    """Show the fields and interfaces of a content type."""
    return await service.get_content_type_schema(type_name)


@cli.command()
@click.argument("term")
@click.option("--content-type", "content_types", multiple=True, help="Restrict to these types (repeatable)")
@click.option("--locale", default=None, help="Content locale")
@click.option("--limit", default=10, show_default=True, help="Maximum results")
@click.option("--skip", default=0, show_default=True, help="Results to skip")
@with_service
async def search(
    service: ContentService,
    term: str,
    content_types: tuple[str, ...],
    locale: str | None,
    limit: int,
    skip: int,
):
    """Full-text search."""
    return await service.search(
        term, content_types=list(content_types) or None, locale=locale, limit=limit, skip=skip
    )


@cli.command()
@click.argument("identifier")
@click.option(
    "--type",
    "identifier_type",
    default="auto",
    type=click.Choice([IdentifierType.AUTO.value, IdentifierType.PATH.value, IdentifierType.KEY.value]),
    help="How to interpret IDENTIFIER (auto-detected by default)",
)
@click.option("--locale", default=None, help="Content locale")
@with_service
async def locate(service: ContentService, identifier: str, identifier_type: str, locale: str | None):
    """Show metadata for content by URL path, key or GUID."""
    return await service.locate(identifier, identifier_type, locale)


@cli.command()
@with_service
async def health(service: ContentService):
    """Check that the content graph answers schema introspection."""
    return await service.health()


@cli.command()
@with_service
async def fragment(service: ContentService):
    """Print the generated AllComponents fragment."""
    return await service.get_all_components_fragment()


if __name__ == "__main__":
    cli()
