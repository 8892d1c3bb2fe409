"""cmplocator CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import click

from cmplocator import __version__

if TYPE_CHECKING:
    from collections.abc import Callable

    from cmplocator.index.source_index import IndexHandle
    from cmplocator.infrastructure.config import LocatorConfig
    from cmplocator.infrastructure.editor import EditorDispatcher
    from cmplocator.infrastructure.watcher import RebuildOutcome, RebuildScheduler

_PROJECT_OPTION = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)


def _load(project: Path | None) -> tuple[Path, LocatorConfig]:
    """Resolve the project root and read its config, exiting on bad config."""
    from cmplocator.infrastructure.config import ConfigError, load_config

    project_root = (project or Path.cwd()).resolve()
    try:
        return project_root, load_config(project_root)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _dispatcher(config: LocatorConfig) -> EditorDispatcher:
    from cmplocator.infrastructure.editor import EditorDispatcher

    return EditorDispatcher.from_settings(config.editor, config.fallback_editor)


@click.group()
@click.version_option(version=__version__, prog_name="cmplocator")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """cmplocator - open the source of a rendered Angular component."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="[%(name)s] %(levelname)s: %(message)s")


@main.command()
@_PROJECT_OPTION
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing config.")
def init(*, project: Path | None, force: bool) -> None:
    """Write a default .cmplocator/config.yml."""
    from cmplocator.infrastructure.config import config_path_for, write_default_config

    project_root = (project or Path.cwd()).resolve()
    path = config_path_for(project_root)
    if path.exists() and not force:
        click.echo(f"Error: {path} already exists. Use --force to overwrite.", err=True)
        sys.exit(1)
    written = write_default_config(project_root)
    click.echo(f"Config: {written.relative_to(project_root)}")
    click.echo("Next: cmplocator scan && cmplocator serve --watch")


@main.command()
@_PROJECT_OPTION
@click.option("--force", is_flag=True, default=False, help="Rebuild even if nothing changed.")
def scan(*, project: Path | None, force: bool) -> None:
    """Scan sources and rebuild the component map if anything changed."""
    from cmplocator.index.builder import run_scan

    project_root, config = _load(project)
    try:
        result = run_scan(project_root, config, force=force)
    except OSError as exc:
        click.echo(f"Error: failed to write index: {exc}", err=True)
        sys.exit(1)

    if result.nothing_changed:
        click.echo("No changes detected. Index is up to date.")
    else:
        click.echo(f"Files:      {result.files_found}")
        click.echo(f"Scanned:    {result.files_scanned}")
        click.echo(f"Components: {result.components_indexed}")
        if result.index_path is not None:
            click.echo(f"Saved to {result.index_path.relative_to(project_root)}")
    if result.warnings:
        click.echo("")
        for warn in result.warnings:
            click.echo(f"  [warn] {warn}")
    if result.errors:
        click.echo("")
        for err in result.errors:
            click.echo(f"  [ERR] {err}")
        sys.exit(1)


@main.command()
@click.argument("name")
@click.option("--nav-path", default="", help="URL path of the page being inspected.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_PROJECT_OPTION
def locate(*, name: str, nav_path: str, output_json: bool, project: Path | None) -> None:
    """Resolve a runtime component class NAME to its source file."""
    from cmplocator.index.source_index import index_path_for, load_index
    from cmplocator.resolve.resolver import resolve_component

    project_root, config = _load(project)
    index = load_index(index_path_for(project_root))
    if index is None:
        click.echo("Error: component map not found. Run `cmplocator scan` first.", err=True)
        sys.exit(1)

    record = resolve_component(index, name, nav_path, config.relevance)
    if record is None:
        click.echo(f"Error: component '{name}' not found.", err=True)
        sys.exit(1)

    if output_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return
    click.echo(f"{record.identifier_name}  {record.file_path}:{record.line}")
    if record.template_reference:
        click.echo(f"template  {record.template_reference}")


@main.command()
@click.argument("file", type=click.Path(path_type=Path))
@click.argument("clues", nargs=-1, required=True)
@click.option("--open", "do_open", is_flag=True, help="Open the best line in the editor.")
@_PROJECT_OPTION
def search(*, file: Path, clues: tuple[str, ...], do_open: bool, project: Path | None) -> None:
    """Find the line of FILE that best matches CLUES (most specific first)."""
    from cmplocator.infrastructure.editor import OpenRequest
    from cmplocator.resolve.search import find_best_line

    _project_root, config = _load(project)
    line = find_best_line(file, list(clues), config.search)
    click.echo(f"{file}:{line}")
    if do_open:
        request = OpenRequest(str(file.resolve()), line=line, search_clues=clues)
        if not _dispatcher(config).open(request):
            click.echo("Error: failed to launch editor.", err=True)
            sys.exit(1)


@main.command("open")
@click.argument("file", type=click.Path(path_type=Path))
@click.option("--line", default=1, type=click.IntRange(min=1), help="1-based line.")
@click.option("--col", default=1, type=click.IntRange(min=1), help="1-based column.")
@_PROJECT_OPTION
def open_cmd(*, file: Path, line: int, col: int, project: Path | None) -> None:
    """Open FILE at LINE:COL in the configured editor."""
    from cmplocator.infrastructure.editor import OpenRequest

    _project_root, config = _load(project)
    request = OpenRequest(str(file.resolve()), line=line, column=col)
    if not _dispatcher(config).open(request):
        click.echo("Error: failed to launch editor. Check PATH or set EDITOR_CMD.", err=True)
        sys.exit(1)
    click.echo(f"Opened {request.target}")


@main.command()
@_PROJECT_OPTION
def editors(*, project: Path | None) -> None:
    """Show detected editor CLIs and the launch chain."""
    from cmplocator.infrastructure.editor import CliLookup, EditorDispatcher, detect_editors

    _project_root, config = _load(project)
    has_cli = CliLookup()
    detected = detect_editors(has_cli)
    if detected:
        click.echo("Detected editors:")
        for name in detected:
            click.echo(f"  {name} (precise line navigation)")
    else:
        click.echo("No editor CLI found on PATH.")

    dispatcher = EditorDispatcher.from_settings(
        config.editor, config.fallback_editor, has_cli=has_cli
    )
    chain = " -> ".join(s.label for s in dispatcher.strategies)
    click.echo(f"Launch chain: {chain}")


def _reload_on_success(handle: IndexHandle) -> Callable[[RebuildOutcome], None]:
    """Completion callback that picks up a freshly written index immediately."""

    def on_complete(outcome: RebuildOutcome) -> None:
        if outcome.ok:
            handle.reload()

    return on_complete


def _start_watch_thread(
    project_root: Path,
    config: LocatorConfig,
    debounce: int,
    on_complete: Callable[[RebuildOutcome], None] | None = None,
) -> tuple[RebuildScheduler, threading.Event]:
    from cmplocator.index.globs import watch_roots
    from cmplocator.infrastructure.watcher import RebuildScheduler, scan_subprocess, watch

    workspace = config.workspace_path(project_root)
    scheduler = RebuildScheduler(
        lambda: scan_subprocess(project_root), debounce_ms=debounce, on_complete=on_complete
    )
    stop_event = threading.Event()
    roots = watch_roots(config.include_globs, workspace)

    thread = threading.Thread(
        target=watch,
        args=(roots, scheduler),
        kwargs={
            "workspace_root": workspace,
            "debounce_ms": debounce,
            "stop_event": stop_event,
        },
        name="cmplocator-watch",
        daemon=True,
    )
    thread.start()
    return scheduler, stop_event


@main.command()
@_PROJECT_OPTION
@click.option("--port", default=None, type=int, help="Port (default: config or 4123).")
@click.option("--watch", "watch_enabled", is_flag=True, help="Rescan when sources change.")
@click.option("--debounce", default=None, type=int, help="Debounce delay in ms.")
def serve(
    *,
    project: Path | None,
    port: int | None,
    watch_enabled: bool,
    debounce: int | None,
) -> None:
    """Serve the component map and editor endpoints over HTTP."""
    import uvicorn

    from cmplocator.index.source_index import IndexHandle, index_path_for
    from cmplocator.services.server import create_app

    project_root, config = _load(project)
    port = port or config.port
    handle = IndexHandle(index_path_for(project_root))
    dispatcher = _dispatcher(config)
    app = create_app(handle, dispatcher, search_weights=config.search)

    click.echo(f"cmplocator http://localhost:{port}")
    click.echo(f" - map: {handle.path.relative_to(project_root)}")
    click.echo(f" - editors: {' -> '.join(s.label for s in dispatcher.strategies)}")

    stop_event = None
    scheduler = None
    if watch_enabled:
        scheduler, stop_event = _start_watch_thread(
            project_root,
            config,
            debounce or config.debounce_ms,
            on_complete=_reload_on_success(handle),
        )

    try:
        uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
    finally:
        if stop_event is not None:
            stop_event.set()
        if scheduler is not None:
            scheduler.close()


@main.command("watch")
@_PROJECT_OPTION
@click.option("--debounce", default=None, type=int, help="Debounce delay in ms.")
def watch_cmd(*, project: Path | None, debounce: int | None) -> None:
    """Watch sources and rescan on changes, without serving."""
    from cmplocator.index.globs import watch_roots
    from cmplocator.infrastructure.watcher import RebuildScheduler, scan_subprocess, watch

    project_root, config = _load(project)
    debounce = debounce or config.debounce_ms
    workspace = config.workspace_path(project_root)
    scheduler = RebuildScheduler(lambda: scan_subprocess(project_root), debounce_ms=debounce)
    roots = watch_roots(config.include_globs, workspace)

    try:
        watch(roots, scheduler, workspace_root=workspace, debounce_ms=debounce)
    except KeyboardInterrupt:
        click.echo("\nWatch stopped.")
    finally:
        scheduler.close()
