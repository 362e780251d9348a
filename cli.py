# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Antigravity Workflows CLI - install workflows from the remote registry"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import httpx
from pydantic import ValidationError

# Force UTF-8 encoding for Windows
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from agworkflows import __version__
from agworkflows.core.config import AGWConfig, RegistryConfig, load_config
from agworkflows.core.exceptions import (
    AGWError,
    ConfigError,
    EmptySelection,
    RegistryUnavailable,
    retry_on_error,
)
from agworkflows.core.http import create_client
from agworkflows.core.installer import InstallPlanner
from agworkflows.core.logger import configure_logging
from agworkflows.core.models import (
    InstallResult,
    InstallStatus,
    Registry,
    SelectionRequest,
    WorkflowItem,
)
from agworkflows.core.registry import RegistryResolver

logger = logging.getLogger("agw.cli")

PROG_NAME = "antigravity-workflows"


# =============================================================================
# Helpers
# =============================================================================


def build_client(settings: AGWConfig) -> httpx.AsyncClient:
    """HTTP client for one command invocation"""
    return create_client(
        timeout=settings.http.timeout, verify_ssl=settings.http.verify_ssl
    )


async def fetch_registry(settings: AGWConfig, client: httpx.AsyncClient) -> Registry:
    """Fetch the registry, retrying unavailability as configured"""
    resolver = RegistryResolver(
        settings.registry.base_url,
        settings.registry.registry_path,
        client=client,
    )
    fetch = retry_on_error(
        max_retries=settings.http.retries,
        delay_ms=settings.http.retry_delay_ms,
        exceptions=(RegistryUnavailable,),
    )(resolver.fetch)
    return await fetch()


def load_registry(settings: AGWConfig) -> Registry:
    async def _load():
        async with build_client(settings) as client:
            return await fetch_registry(settings, client)

    return asyncio.run(_load())


def fail(title: str, error: AGWError, hint: Optional[str] = None):
    """Report a command-level failure and exit non-zero"""
    logger.debug(f"{title}: {error.to_dict()}")
    click.echo(click.style(f"✖ {title}", fg="red"), err=True)
    click.echo(click.style(error.message, fg="red"), err=True)
    for problem in error.details.get("errors", []):
        click.echo(click.style(f"  - {problem}", fg="red"), err=True)
    if hint:
        click.echo(click.style(hint, dim=True), err=True)
    sys.exit(1)


def item_to_dict(item: WorkflowItem) -> Dict[str, Any]:
    return {"name": item.name, **item.entry.model_dump()}


def echo_json(data: Any):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def echo_result(result: InstallResult):
    """One human-readable status line per install result"""
    if result.status is InstallStatus.NOT_FOUND:
        click.echo(
            click.style(
                f'⚠ Workflow "{result.name}" not found in registry, skipping',
                fg="yellow",
            )
        )
    elif result.status is InstallStatus.DOWNLOAD_FAILED:
        click.echo(
            click.style(f"✖ Failed to download {result.name}: {result.reason}", fg="red")
        )
    elif result.status is InstallStatus.WRITE_FAILED:
        click.echo(
            click.style(f"✖ Failed to write {result.name}: {result.reason}", fg="red")
        )
    else:
        if result.status is InstallStatus.OVERWRITTEN:
            click.echo(
                click.style(
                    f"⚠ Overwriting existing workflow: {result.name}", fg="yellow"
                )
            )
        click.echo(
            click.style(f"✓ Installed {result.name} ({result.description})", fg="green")
        )


# =============================================================================
# CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name=PROG_NAME)
@click.option("--base-url", help="Registry base URL (overrides config)")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (YAML)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging on stderr")
@click.pass_context
def cli(ctx, base_url: Optional[str], config_file: Optional[Path], verbose: bool):
    """Install workflows for the Antigravity AI assistant.

    Workflows are markdown files published in a remote registry.
    Installed workflows land in .agent/workflows of the current project.

    Examples:
        antigravity-workflows list
        antigravity-workflows search deploy
        antigravity-workflows install code-review
        antigravity-workflows install --category testing
    """
    try:
        settings = load_config(config_file)
    except ConfigError as e:
        fail("Invalid configuration", e)

    if base_url:
        try:
            settings.registry = RegistryConfig(
                base_url=base_url, registry_path=settings.registry.registry_path
            )
        except ValidationError as e:
            raise click.BadParameter(str(e), param_hint="--base-url")

    configure_logging(
        level="DEBUG" if verbose else settings.observability.log_level,
        log_to_file=settings.observability.log_to_file,
        log_dir=settings.observability.log_dir,
    )
    ctx.obj = settings


# =============================================================================
# Commands
# =============================================================================


@cli.command()
@click.argument("workflows", nargs=-1)
@click.option("--category", "-c", help="Install all workflows from a category")
@click.option("--all", "-a", "install_all", is_flag=True, help="Install all workflows")
@click.option(
    "--dir",
    "-d",
    "target_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Install directory (default: .agent/workflows)",
)
@click.option("--output", "-o", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
def install(
    settings: AGWConfig,
    workflows: tuple,
    category: Optional[str],
    install_all: bool,
    target_dir: Optional[Path],
    output: str,
):
    """Install one or more workflows.

    --all takes precedence over --category, which takes precedence over
    the names given. Existing workflow files are overwritten.

    Examples:
        antigravity-workflows install code-review debug
        antigravity-workflows install --category git
        antigravity-workflows install --all
    """
    request = SelectionRequest(
        explicit_names=tuple(workflows),
        category_filter=category,
        all_flag=install_all,
    )
    target = target_dir or settings.install.target_dir
    if not target.is_absolute():
        target = Path.cwd() / target

    text = output == "text"

    async def _install():
        async with build_client(settings) as client:
            registry = await fetch_registry(settings, client)
            planner = InstallPlanner(
                settings.registry.base_url,
                client=client,
                max_concurrency=settings.install.max_concurrency,
            )
            selection = planner.resolve_selection(request, registry)
            if text:
                click.echo(f"Installing {len(selection)} workflow(s)...")
            results = await planner.execute_install(
                selection, registry, target, on_result=echo_result if text else None
            )
            return selection, results

    try:
        selection, results = asyncio.run(_install())
    except EmptySelection:
        if category and not install_all:
            message = f'No workflows found in category "{category}".'
        else:
            message = "No workflows specified."
        if text:
            click.echo(click.style(f"⚠ {message}", fg="yellow"))
        else:
            echo_json({"results": [], "warning": message})
        return
    except AGWError as e:
        fail("Installation failed", e)

    if not text:
        echo_json({"target": str(target), "results": [r.to_dict() for r in results]})
        return

    installed = [r for r in results if r.ok]
    failed = len(results) - len(installed)
    summary = f"Done! {len(installed)} installed"
    if failed:
        summary += f", {failed} skipped or failed"
    click.echo(click.style(f"\n{summary}", bold=True))

    first = installed[0].name if installed else selection[0]
    click.echo(click.style(f"\nTry it now: Type /{first} in Antigravity", dim=True))


@cli.command("list")
@click.option("--category", "-c", help="Filter by category")
@click.option("--output", "-o", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
def list_workflows(settings: AGWConfig, category: Optional[str], output: str):
    """List available workflows, grouped by category."""
    try:
        registry = load_registry(settings)
    except AGWError as e:
        fail(
            "Failed to list workflows",
            e,
            hint="(If this is a new registry, has registry.json been published yet?)",
        )

    groups = registry.list_by_category(category)

    if output == "json":
        data: Dict[str, Any] = {}
        for key, items in groups.items():
            meta = registry.category_meta(key)
            data[key] = {
                "name": meta.name,
                "emoji": meta.emoji,
                "workflows": [item_to_dict(item) for item in items],
            }
        echo_json({"categories": data, "total": len(registry)})
        return

    click.echo(click.style("\n📦 Available Workflows\n", bold=True))

    if not groups:
        click.echo("No workflows found.")
        return

    for key, items in groups.items():
        meta = registry.category_meta(key)
        click.echo(click.style(f"{meta.emoji} {meta.name}", fg="blue", bold=True))
        for item in items:
            name = click.style(item.name.ljust(22), fg="green")
            click.echo(f"  {name} {click.style(item.entry.description, dim=True)}")
        click.echo("")

    click.echo(
        click.style(
            f"Total: {len(registry)} workflows in {len(groups)} categories", dim=True
        )
    )


@cli.command()
@click.argument("query")
@click.option("--output", "-o", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
def search(settings: AGWConfig, query: str, output: str):
    """Search workflows by name, description or tag."""
    try:
        registry = load_registry(settings)
    except AGWError as e:
        fail("Search failed", e)

    results: List[WorkflowItem] = registry.search(query)

    if output == "json":
        echo_json([item_to_dict(item) for item in results])
        return

    if not results:
        click.echo(click.style(f'No workflows found matching "{query}"', fg="yellow"))
        return

    click.echo(click.style(f'\nFound {len(results)} result(s) for "{query}":\n', bold=True))

    for item in results:
        name = click.style(item.name, fg="green", bold=True)
        click.echo(f"{name}  {click.style(f'({item.entry.category})', dim=True)}")
        click.echo(item.entry.description)
        click.echo(click.style(f"Tags: {', '.join(item.entry.tags)}", dim=True))
        click.echo("")


@cli.command()
@click.argument("workflow")
@click.option("--output", "-o", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
def info(settings: AGWConfig, workflow: str, output: str):
    """Show details about a workflow."""
    try:
        registry = load_registry(settings)
    except AGWError as e:
        fail("Failed to get info", e)

    entry = registry.lookup(workflow)

    if output == "json":
        echo_json(item_to_dict(WorkflowItem(workflow, entry)) if entry else None)
        return

    if entry is None:
        click.echo(click.style(f'Workflow "{workflow}" not found.', fg="red"))
        return

    click.echo(click.style(f"\n{workflow}", fg="green", bold=True))
    click.echo("=" * len(workflow))
    click.echo(f"\n{click.style('Description:', bold=True)} {entry.description}")
    click.echo(f"{click.style('Category:', bold=True)}    {entry.category}")
    click.echo(f"{click.style('Tags:', bold=True)}        {', '.join(entry.tags)}")
    click.echo(f"\n{click.style('Install command:', bold=True)}")
    click.echo(click.style(f"  {PROG_NAME} install {workflow}", fg="cyan"))
    click.echo("")


if __name__ == "__main__":
    cli()
