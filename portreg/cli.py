"""portreg CLI: inspect registry resolution from the command line."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from portreg import __version__
from portreg.errors import RegistryError

console = Console()

DEFAULT_CONFIG_NAME = "vcpkg-configuration.json"


class CliState:
    """Lazily built session and registry set shared by the subcommands."""

    def __init__(self, root: str | None, config: str | None, cache: str | None, lockfile: str | None):
        self.root = root
        self.config = config
        self.cache = cache
        self.lockfile = lockfile
        self._session = None
        self._registries = None

    @property
    def session(self):
        from portreg.paths import RegistryPaths, RegistrySession

        if self._session is None:
            paths = RegistryPaths.from_env(root=self.root, cache=self.cache, lockfile=self.lockfile)
            self._session = RegistrySession(paths)
        return self._session

    @property
    def registries(self):
        from portreg.config import RegistryConfig, build_registry_set, load_registry_config

        if self._registries is None:
            config_path = Path(self.config) if self.config else Path.cwd() / DEFAULT_CONFIG_NAME
            if self.config or config_path.is_file():
                config = load_registry_config(config_path)
            else:
                config = RegistryConfig()
            self._registries = build_registry_set(config, self.session)
        return self._registries

    def close(self) -> None:
        if self._session is not None and self._session.close():
            console.print(f"[dim]Updated lock file {self._session.paths.lockfile_path}[/]")


def _fail(ctx: click.Context, exc: RegistryError) -> None:
    console.print(f"[red]error:[/] {escape(str(exc))}", highlight=False, soft_wrap=True)
    ctx.exit(1)


def _check_port_name(ctx: click.Context, param: click.Parameter, value: str) -> str:
    from portreg.registry.patterns import is_port_name

    if not is_port_name(value):
        raise click.BadParameter(
            f"{value!r} is not a port name (lowercase letters, digits and '-')"
        )
    return value


@click.group()
@click.version_option(version=__version__)
@click.option("--root", default=None, help="Builtin ports tree (default: $PORTREG_ROOT or cwd)")
@click.option("--config", "-c", default=None, help="Registry configuration file (JSON or YAML)")
@click.option("--cache", default=None, help="Cache directory (default: $PORTREG_CACHE)")
@click.option("--lockfile", default=None, help="Lock file path (default: <cache>/vcpkg-lock.json)")
@click.option("--verbose", "-v", is_flag=True, help="Log registry activity")
@click.pass_context
def main(ctx, root, config, cache, lockfile, verbose):
    """portreg: find out where a port version comes from.

    Resolves port names to the registry that owns them, lists the versions
    each registry offers, and materializes a version to a local directory.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    state = CliState(root, config, cache, lockfile)
    ctx.obj = state
    ctx.call_on_close(state.close)


# ── Which ────────────────────────────────────────────────────────────


@main.command()
@click.argument("port", callback=_check_port_name)
@click.pass_context
def which(ctx, port: str):
    """Show the registry that owns PORT and every other candidate."""
    from portreg.registry.implementation import describe

    try:
        registries = ctx.obj.registries
    except RegistryError as exc:
        _fail(ctx, exc)
        return

    owner = registries.registry_for_port(port)
    if owner is None:
        console.print(f"[yellow]No registry is configured for {port}.[/]")
        ctx.exit(1)
        return
    console.print(f"[bold]{port}[/] -> [cyan]{escape(describe(owner))}[/]", soft_wrap=True)

    candidates = registries.registries_for_port(port)
    if len(candidates) > 1:
        table = Table(title="Candidates (highest priority first)")
        table.add_column("#", style="dim", width=3)
        table.add_column("Registry", style="cyan")
        for i, candidate in enumerate(candidates):
            table.add_row(str(i + 1), escape(describe(candidate)))
        console.print(table)


# ── Versions ─────────────────────────────────────────────────────────


@main.command()
@click.argument("port", callback=_check_port_name)
@click.pass_context
def versions(ctx, port: str):
    """List the versions of PORT offered by its registry."""
    from portreg.registry.implementation import get_port_entry

    try:
        owner = ctx.obj.registries.registry_for_port(port)
        entry = get_port_entry(owner, port) if owner is not None else None
    except RegistryError as exc:
        _fail(ctx, exc)
        return

    if entry is None:
        console.print(f"[yellow]Port {port} was not found.[/]")
        ctx.exit(1)
        return
    for version in entry.get_port_versions():
        console.print(str(version), highlight=False)


# ── Resolve ──────────────────────────────────────────────────────────


@main.command()
@click.argument("port", callback=_check_port_name)
@click.argument("version")
@click.pass_context
def resolve(ctx, port: str, version: str):
    """Materialize VERSION of PORT and print where it lives."""
    from portreg.registry.implementation import get_port_entry
    from portreg.versions import Version

    try:
        requested = Version.parse(version)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="VERSION") from exc

    try:
        owner = ctx.obj.registries.registry_for_port(port)
        entry = get_port_entry(owner, port) if owner is not None else None
        if entry is None:
            console.print(f"[yellow]Port {port} was not found.[/]")
            ctx.exit(1)
            return
        resolved = entry.get_version(requested)
    except RegistryError as exc:
        _fail(ctx, exc)
        return

    console.print(f"[green]path:[/] {escape(str(resolved.path))}", highlight=False, soft_wrap=True)
    console.print(f"[green]location:[/] {escape(resolved.spdx_location)}", highlight=False, soft_wrap=True)


# ── Baseline ─────────────────────────────────────────────────────────


@main.command()
@click.argument("port", callback=_check_port_name)
@click.pass_context
def baseline(ctx, port: str):
    """Print the baseline version of PORT."""
    try:
        version = ctx.obj.registries.baseline_for_port(port)
    except RegistryError as exc:
        _fail(ctx, exc)
        return
    console.print(str(version), highlight=False)


# ── Ports ────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def ports(ctx):
    """List every port known to any configured registry."""
    try:
        names = ctx.obj.registries.get_all_port_names()
    except RegistryError as exc:
        _fail(ctx, exc)
        return
    if not names:
        console.print("[yellow]No ports found.[/]")
        return
    for name in names:
        console.print(name, highlight=False)


# ── Lock ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--refresh", is_flag=True, help="Re-resolve every locked reference")
@click.pass_context
def lock(ctx, refresh: bool):
    """Show the locked git references."""
    try:
        lockfile = ctx.obj.session.lockfile
        if refresh:
            lockfile.mark_all_stale()
            for entry in lockfile.entries():
                entry.ensure_up_to_date()
    except RegistryError as exc:
        _fail(ctx, exc)
        return

    entries = lockfile.entries()
    if not entries:
        console.print("[yellow]The lock file is empty.[/]")
        return

    table = Table(title=f"Locked references ({len(entries)})")
    table.add_column("Repository", style="cyan")
    table.add_column("Reference")
    table.add_column("Commit", style="green")
    table.add_column("Stale", justify="center")
    for entry in entries:
        table.add_row(entry.uri, entry.reference, entry.commit_id[:12], "yes" if entry.stale else "")
    console.print(table)
