"""pluginsync CLI — extract handler registrations and sync them to a registry."""

import sys
from typing import NoReturn

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from pluginsync import __version__
from pluginsync.errors import PluginSyncError

console = Console()


def _load_settings(ctx: click.Context, registry_dir: str | None):
    from pluginsync.config import load_config
    from pluginsync.utils.logger import set_level

    config = load_config(ctx.obj.get("config_path"))
    if registry_dir:
        config.registry_path = registry_dir
    set_level("DEBUG" if ctx.obj.get("verbose") else config.log_level)
    return config


def _processor(ctx: click.Context, registry_dir: str | None):
    from pluginsync.processor import PluginProcessor
    from pluginsync.registry.local_registry import LocalRegistry

    config = _load_settings(ctx, registry_dir)
    return PluginProcessor(LocalRegistry(config.registry_path), config)


def _fail(error: PluginSyncError) -> NoReturn:
    console.print(f"[red]Error:[/] {error}")
    sys.exit(1)


def _model_tree(assembly) -> Tree:
    tree = Tree(f"[bold cyan]{assembly.name}[/] {assembly.version} [dim]{assembly.id}[/]")
    for handler in assembly.handlers:
        label = "activity" if handler.is_workflow_activity else "plugin"
        branch = tree.add(f"[green]{handler.type_name}[/] [dim]({label})[/]")
        for step in handler.steps:
            state = "" if step.enabled else " [yellow]disabled[/]"
            leaf = branch.add(
                f"{step.name} [dim]{step.stage.name.lower()} {step.mode.name.lower()} rank {step.rank}[/]{state}"
            )
            for image in step.images:
                leaf.add(f"{image.name} [dim]{image.attributes or 'all attributes'}[/]")
    return tree


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to pluginsync.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """pluginsync — keep a handler registry in step with handler source.

    Extracts plugins, workflow activities, steps and images from a Python
    handler module (or an XML registration descriptor) and reconciles them
    with the registry.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# ── Extract ──────────────────────────────────────────────────────────


@main.command()
@click.argument("source")
@click.option("--descriptor", "-d", default=None, help="XML registration descriptor")
@click.option("--unsecure-config", "-u", default=None, help="XML file of step configuration items")
@click.option("--registry", "-r", "registry_dir", default=None, help="Registry directory")
@click.pass_context
def extract(ctx: click.Context, source: str, descriptor: str | None, unsecure_config: str | None, registry_dir: str | None):
    """Show the registrations extracted from SOURCE without syncing."""
    console.print(f"\n[bold blue]pluginsync[/] — Extracting: {source}\n")

    try:
        assembly = _processor(ctx, registry_dir).extract(source, descriptor, unsecure_config)
    except PluginSyncError as e:
        _fail(e)

    console.print(_model_tree(assembly))


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("source")
@click.option("--descriptor", "-d", default=None, help="XML registration descriptor")
@click.option("--unsecure-config", "-u", default=None, help="XML file of step configuration items")
@click.option("--registry", "-r", "registry_dir", default=None, help="Registry directory")
@click.option("--dry-run", is_flag=True, help="Show the planned changes without writing")
@click.pass_context
def sync(
    ctx: click.Context,
    source: str,
    descriptor: str | None,
    unsecure_config: str | None,
    registry_dir: str | None,
    dry_run: bool,
):
    """Register, update and unregister handlers so the registry matches SOURCE."""
    from pluginsync.sync.reconciler import SyncOperation

    console.print(f"\n[bold blue]pluginsync[/] — Syncing: {source}\n")

    try:
        result = _processor(ctx, registry_dir).sync(source, descriptor, unsecure_config, dry_run=dry_run)
    except PluginSyncError as e:
        _fail(e)

    if dry_run:
        table = Table(title=f"Planned changes for {result.assembly_name}")
        table.add_column("Action", style="bold")
        table.add_column("Handler", style="cyan")
        if result.create_assembly:
            table.add_row("[green]create assembly[/]", result.assembly_name)
        for handler in result.to_register:
            table.add_row("[green]register[/]", handler.type_name)
        for handler in result.to_remove:
            table.add_row("[red]unregister[/]", handler.type_name)
        for handler, _ in result.to_update:
            table.add_row("[yellow]compare[/]", handler.type_name)
        console.print(table)
    else:
        table = Table(title=f"Sync Report ({len(result.actions)} decisions)")
        table.add_column("Operation", style="bold")
        table.add_column("Kind")
        table.add_column("Name", style="cyan")
        for action in result.actions:
            if action.operation in (SyncOperation.SKIP, SyncOperation.SET_STATE):
                continue
            table.add_row(action.operation.value, action.kind, action.name)
        console.print(table)
        console.print(Panel(result.summary(), title="Result"))

    for warning in result.warnings:
        console.print(f"  [yellow]![/] {warning}")


# ── Show ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("name")
@click.option("--registry", "-r", "registry_dir", default=None, help="Registry directory")
@click.pass_context
def show(ctx: click.Context, name: str, registry_dir: str | None):
    """Show the registrations held for assembly NAME."""
    try:
        assembly = _processor(ctx, registry_dir).show(name)
    except PluginSyncError as e:
        _fail(e)

    if assembly is None:
        console.print(f"[yellow]Assembly not registered:[/] {name}")
        return

    console.print(_model_tree(assembly))


# ── Catalog ──────────────────────────────────────────────────────────


@main.group()
def catalog():
    """Manage the messages and entity filters of the local registry."""


@catalog.command(name="add-message")
@click.argument("name")
@click.option("--registry", "-r", "registry_dir", default=None, help="Registry directory")
@click.option("--private", is_flag=True, help="Hide the message from step registration")
@click.pass_context
def add_message(ctx: click.Context, name: str, registry_dir: str | None, private: bool):
    """Add message NAME to the catalog."""
    from pluginsync.registry.local_registry import LocalRegistry

    config = _load_settings(ctx.find_root(), registry_dir)
    message = LocalRegistry(config.registry_path).add_message(name, is_private=private)
    console.print(f"  Message: {message.name} ({message.id})")


@catalog.command(name="add-filter")
@click.argument("message")
@click.argument("entity")
@click.option("--secondary", default=None, help="Secondary entity name")
@click.option("--registry", "-r", "registry_dir", default=None, help="Registry directory")
@click.pass_context
def add_filter(ctx: click.Context, message: str, entity: str, secondary: str | None, registry_dir: str | None):
    """Allow steps on MESSAGE for ENTITY."""
    from pluginsync.registry.local_registry import LocalRegistry

    config = _load_settings(ctx.find_root(), registry_dir)
    entry = LocalRegistry(config.registry_path).add_filter(message, entity, secondary)
    console.print(f"  Filter: {message} on {entry.primary_entity_name} ({entry.id})")


@catalog.command(name="list")
@click.option("--registry", "-r", "registry_dir", default=None, help="Registry directory")
@click.pass_context
def list_catalog(ctx: click.Context, registry_dir: str | None):
    """List public messages and the entities they can be registered on."""
    from pluginsync.registry.adapter import RegistryAdapter
    from pluginsync.registry.local_registry import LocalRegistry

    config = _load_settings(ctx.find_root(), registry_dir)
    loaded = RegistryAdapter(LocalRegistry(config.registry_path)).load_catalog()

    if not loaded.messages:
        console.print("[yellow]Catalog is empty.[/]")
        return

    table = Table(title="Message Catalog")
    table.add_column("Message", style="cyan")
    table.add_column("Entities")
    for message in loaded.messages:
        entities = sorted(f.primary_entity_name for f in loaded.filters if f.message_id == message.id)
        table.add_row(message.name, ", ".join(entities))
    console.print(table)


if __name__ == "__main__":
    main()
