"""Interactive mode.

A line-oriented browser over the live inventory. Each command is turned
into one dispatched action; scans keep streaming into the inventory in
the background while the prompt waits for input.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from rich.markup import escape
from rich.prompt import Confirm

from scope.cli.display import create_view_table, print_package_details, print_scan_warnings
from scope.core.app import (
    Action,
    ActionError,
    MoveSelection,
    Quit,
    RequestCheckUpdates,
    RequestRefresh,
    RequestUninstall,
    RequestUpdate,
    ScopeApp,
    SetKindFilter,
    SetSearchText,
    SetSortKey,
    SetSourceFilter,
    ToggleSortDirection,
    ViewSnapshot,
)
from scope.core.config import ScopeConfig
from scope.core.query import SortDirection, SortKey
from scope.models.package import PackageSource, format_bytes
from scope.utils.formatting import console, print_error, print_info

logger = logging.getLogger(__name__)

# Rows shown around the selection
PAGE_SIZE = 20

HELP_TEXT = """\
[bold_header]Navigation[/]
  [info]j[/] / [info]k[/] [muted]\\[n][/]      move selection down / up
  [info]n[/] / [info]p[/]          next / previous page
  [info]g[/] / [info]G[/]          first / last row
  [info]/[/][muted]text[/]          fuzzy search ([info]/[/] alone clears)
[bold_header]View[/]
  [info]s[/]              cycle sort key (size, name, source)
  [info]r[/]              reverse sort direction
  [info]f[/]              cycle type filter (all, GUI, CLI)
  [info]src[/] [muted]name…[/]     show only these sources ([info]src all[/] resets)
[bold_header]Actions[/]
  [info]R[/]              rescan all sources
  [info]i[/]              details of the selected package
  [info]c[/]              check visible packages for updates
  [info]u[/]              update the selected package
  [info]x[/]              uninstall the selected package
  [info]q[/]              quit"""


@dataclass(frozen=True, slots=True)
class Command:
    """A parsed prompt line: one action, a local view command, or an error."""

    action: Action | None = None
    local: str | None = None
    error: str | None = None


def _page_start(snapshot: ViewSnapshot) -> int:
    return (snapshot.selected // PAGE_SIZE) * PAGE_SIZE


def parse_command(line: str, snapshot: ViewSnapshot) -> Command:
    """Translate one prompt line into an action.

    Args:
        line: Raw user input.
        snapshot: The view the user is looking at.

    Returns:
        Command describing what to do.
    """
    text = line.strip()
    if not text:
        return Command(local="show")

    if text.startswith("/"):
        return Command(action=SetSearchText(text[1:].strip()))

    word, _, rest = text.partition(" ")
    rest = rest.strip()
    selected = snapshot.selected_package

    if word in ("j", "k"):
        count = int(rest) if rest.isdigit() else 1
        return Command(action=MoveSelection(count if word == "j" else -count))
    if word == "n":
        return Command(action=MoveSelection(PAGE_SIZE))
    if word == "p":
        return Command(action=MoveSelection(-PAGE_SIZE))
    if word == "g":
        return Command(action=MoveSelection(-snapshot.selected))
    if word == "G":
        return Command(action=MoveSelection(len(snapshot.rows)))
    if word == "s":
        keys = list(SortKey)
        next_key = keys[(keys.index(snapshot.config.sort_key) + 1) % len(keys)]
        return Command(action=SetSortKey(next_key))
    if word == "r":
        return Command(action=ToggleSortDirection())
    if word == "f":
        return Command(action=SetKindFilter(snapshot.config.kind_filter.next()))
    if word == "src":
        return _parse_sources(rest)
    if word == "R":
        return Command(action=RequestRefresh())
    if word == "c":
        return Command(action=RequestCheckUpdates())
    if word in ("i", "u", "x"):
        if selected is None:
            return Command(error="Nothing is selected.")
        if word == "i":
            return Command(local="details")
        if word == "u":
            return Command(action=RequestUpdate(selected.identity))
        return Command(action=RequestUninstall(selected.identity))
    if word in ("q", "quit", "exit"):
        return Command(action=Quit())
    if word in ("?", "h", "help"):
        return Command(local="help")

    return Command(error=f"Unknown command: {text!r} (type ? for help)")


def _parse_sources(rest: str) -> Command:
    names = rest.replace(",", " ").split()
    if not names or names == ["all"]:
        return Command(action=SetSourceFilter(None))
    try:
        sources = frozenset(PackageSource(name.lower()) for name in names)
    except ValueError:
        valid = ", ".join(s.value for s in PackageSource)
        return Command(error=f"Unknown source in {rest!r}; choose from {valid} or all")
    return Command(action=SetSourceFilter(sources))


def render(snapshot: ViewSnapshot) -> None:
    """Print the page of rows around the selection and the status line."""
    config = snapshot.config
    arrow = "↓" if config.sort_direction == SortDirection.DESC else "↑"
    sources = (
        "all sources"
        if config.source_filter is None
        else ", ".join(s.label for s in sorted(config.source_filter, key=lambda s: s.rank))
    )
    title = f"scope · {sources} · {config.kind_filter.value} · {config.sort_key.value} {arrow}"
    if config.search_text:
        title += f" · /{escape(config.search_text)}"

    start = _page_start(snapshot)
    console.print(
        create_view_table(
            snapshot,
            title=title,
            start=start,
            limit=PAGE_SIZE,
            numbered=True,
            highlight_selection=True,
        )
    )

    scan = snapshot.scan
    if scan.settled:
        scan_text = f"scan {scan.generation} done"
    else:
        scanning = ", ".join(s.label for s in sorted(scan.pending, key=lambda s: s.rank))
        scan_text = f"scanning {scanning}…"

    page = start // PAGE_SIZE + 1
    pages = max(1, -(-len(snapshot.rows) // PAGE_SIZE))
    console.print(
        f"[dim]{len(snapshot.rows)} shown · {format_bytes(snapshot.total_size)} · "
        f"page {page}/{pages} · {scan_text}[/]"
    )
    if snapshot.message:
        print_info(snapshot.message)


async def _prompt(text: str) -> str:
    # Reading stdin blocks; keep the event loop free for scans
    return await asyncio.to_thread(console.input, text)


async def _confirm(text: str) -> bool:
    return await asyncio.to_thread(Confirm.ask, text, console=console, default=False)


async def run_interactive_session(app: ScopeApp) -> None:
    """Drive a started ScopeApp from the terminal until the user quits."""
    await app.dispatch(RequestRefresh())
    snapshot = app.snapshot()
    render(snapshot)
    print_info("Scanning package managers… type ? for help.")
    warned_generation = 0

    while not snapshot.quit:
        try:
            line = await _prompt("[bold_header]scope>[/] ")
        except EOFError:
            break

        snapshot = app.snapshot()
        command = parse_command(line, snapshot)

        if command.error is not None:
            print_error(command.error)
            continue
        if command.local == "help":
            console.print(HELP_TEXT)
            continue
        if command.local == "details":
            selected = snapshot.selected_package
            if selected is not None:
                print_package_details(selected)
            continue

        action = command.action
        if isinstance(action, RequestUninstall | RequestUpdate):
            target = app.store.get(action.identity)
            verb, progress = (
                ("Uninstall", "Uninstalling")
                if isinstance(action, RequestUninstall)
                else ("Update", "Updating")
            )
            if target is None or not await _confirm(f"{verb} {escape(target.name)}?"):
                continue
            print_info(f"{progress} {escape(target.name)}…")

        if action is not None:
            result = await app.dispatch(action)
            if isinstance(result, ActionError):
                print_error(result.message)
                snapshot = app.snapshot()
            else:
                snapshot = result

        if snapshot.scan.settled and snapshot.scan.generation != warned_generation:
            print_scan_warnings(snapshot.scan)
            warned_generation = snapshot.scan.generation

        if not snapshot.quit:
            render(snapshot)


def run(config: ScopeConfig) -> None:
    """Run interactive mode until the user quits."""

    async def main() -> None:
        async with ScopeApp(config) as app:
            await run_interactive_session(app)
            logger.debug("Leaving interactive mode")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print()
