"""File watcher: debounce source changes into out-of-process rescans."""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from rich.console import Console

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500
POLL_INTERVAL_S = 5.0


@dataclass(frozen=True)
class RebuildOutcome:
    """Result of one rebuild cycle, reported to the scheduler's callback."""

    reason: str
    ok: bool


def scan_subprocess(project_root: Path) -> bool:
    """Run ``cmplocator scan`` in a child interpreter; ``True`` on exit code 0."""
    completed = subprocess.run(  # noqa: S603
        [sys.executable, "-m", "cmplocator", "scan", "--project", str(project_root)],
        cwd=project_root,
        check=False,
    )
    return completed.returncode == 0


class RebuildScheduler:
    """Debounced, single-flight rebuild trigger.

    ``request()`` (re)starts a quiet-window timer. When it fires, one rebuild
    runs on a worker thread. Requests that arrive while a rebuild is running
    set a single pending flag, which schedules exactly one more rebuild once
    the current one finishes.
    """

    def __init__(
        self,
        runner: Callable[[], bool],
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        on_complete: Callable[[RebuildOutcome], None] | None = None,
    ) -> None:
        self._runner = runner
        self._debounce_s = debounce_ms / 1000
        self._on_complete = on_complete
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._running = False
        self._pending = False
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False
        self.runs = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def request(self, reason: str = "") -> None:
        """Ask for a rebuild after the quiet window."""
        with self._lock:
            if self._closed:
                return
            self._idle.clear()
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(
                self._debounce_s, self._fire, args=(self._generation, reason)
            )
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int, reason: str) -> None:
        with self._lock:
            if generation != self._generation:
                # Superseded by a later request; its own timer will fire.
                return
            self._timer = None
            if self._running:
                self._pending = True
                return
            self._running = True
        worker = threading.Thread(target=self._run, args=(reason,), name="cmplocator-rebuild")
        worker.daemon = True
        worker.start()

    def _run(self, reason: str) -> None:
        label = f" ({reason})" if reason else ""
        logger.info("Scan started%s", label)
        try:
            ok = self._runner()
        except Exception:  # noqa: BLE001
            logger.exception("Scan crashed%s", label)
            ok = False
        if ok:
            logger.info("Scan completed%s", label)
        else:
            logger.warning("Scan failed%s; keeping the previous index", label)

        with self._lock:
            self.runs += 1
            self._running = False
            rerun = self._pending and not self._closed
            self._pending = False

        if self._on_complete is not None:
            self._on_complete(RebuildOutcome(reason=reason, ok=ok))
        if rerun:
            self.request("queued")
            return
        with self._lock:
            if not self._running and self._timer is None:
                self._idle.set()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no rebuild is scheduled, running, or queued."""
        return self._idle.wait(timeout)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if not self._running:
                self._idle.set()


def _is_relevant(path_str: str, root: Path) -> bool:
    """Ignore temp files and anything inside hidden directories."""
    p = Path(path_str)
    if p.name.startswith("~") or p.name.endswith(".tmp"):
        return False
    try:
        rel = p.relative_to(root)
    except ValueError:
        return True
    return not any(part.startswith(".") for part in rel.parts[:-1])


def filter_relevant(changes: Iterable[tuple[object, str]], root: Path) -> list[str]:
    """Paths from a watchfiles batch that should trigger a rescan."""
    return [path_str for _change, path_str in changes if _is_relevant(path_str, root)]


def _format_time() -> str:
    """Return current time as ``HH:MM:SS`` string."""
    return datetime.now(tz=timezone.utc).strftime("%H:%M:%S")


def poll(
    scheduler: RebuildScheduler,
    stop_event: threading.Event,
    interval: float = POLL_INTERVAL_S,
) -> None:
    """Request a rescan every *interval* seconds; the scan cache keeps it cheap."""
    while not stop_event.wait(interval):
        scheduler.request("poll")


def watch(
    roots: list[Path],
    scheduler: RebuildScheduler,
    *,
    workspace_root: Path,
    debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    stop_event: threading.Event | None = None,
    console: Console | None = None,
) -> None:
    """Feed file-system changes under *roots* to *scheduler* until stopped.

    Requests an initial rebuild first. Falls back to polling when the native
    watcher cannot start.
    """
    from rich.console import Console
    from watchfiles import watch as fs_watch

    console = console or Console()
    stop_event = stop_event or threading.Event()

    scheduler.request("initial")
    if not roots:
        console.print("[yellow]No directories to watch, polling instead.[/yellow]")
        poll(scheduler, stop_event)
        return

    names = ", ".join(str(r) for r in roots)
    console.print(f"[bold blue]Watching:[/bold blue] {names}")
    console.print(f"[dim]Debounce: {debounce_ms}ms  |  Press Ctrl+C to stop[/dim]")

    try:
        for batch in fs_watch(*roots, debounce=debounce_ms, step=50, stop_event=stop_event):
            changed = filter_relevant(batch, workspace_root)
            if not changed:
                continue
            logger.debug("Changes: %s", ", ".join(changed[:5]))
            console.print(
                f"[dim]{_format_time()}[/dim] "
                f"[green]rescan queued[/green] "
                f"({len(changed)} file{'s' if len(changed) != 1 else ''} changed)"
            )
            if scheduler.running:
                console.print("[dim]scan in progress, one more rescan queued[/dim]")
            scheduler.request(f"{len(changed)} changed")
    except OSError as exc:
        logger.warning("Native watcher failed (%s), polling every %.0fs", exc, POLL_INTERVAL_S)
        console.print("[yellow]Watcher unavailable, polling for changes.[/yellow]")
        poll(scheduler, stop_event)
