#!/usr/bin/env python3
"""Refactor Workbench - explore refactor index sessions from the terminal.

Entry point for the CLI application.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .address import DrillInAddress, FileAddress, parse_address
from .cache import SelectionCache
from .providers import DEFAULT_PROVIDER, ProviderError, WorkbenchProvider, get_provider, get_provider_names
from .search import DEFAULT_LIMIT, UnifiedSearch, group_hits, normalize_type
from .sessions import DOMAIN_LABELS, DOMAINS, SessionContext, load_session_context
from .tree import DirectoryTree, HydrationStatus, TreeHydrator

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def make_provider(args) -> Optional[WorkbenchProvider]:
    options = {}
    if args.provider == "http" and args.api_url:
        options["base_url"] = args.api_url
    elif args.provider == "snapshot" and args.snapshot:
        options["path"] = args.snapshot
    return get_provider(args.provider, **options)


async def resolve_workspace_id(provider: WorkbenchProvider, args) -> Optional[str]:
    """Explicit --workspace, then the remembered one, then the first listed."""
    if args.workspace:
        return args.workspace
    cached = SelectionCache().workspace_id
    if cached:
        return cached
    workspaces = await provider.list_workspaces()
    if workspaces:
        logger.info(f"No workspace selected, using {workspaces[0].id}")
        return workspaces[0].id
    return None


async def resolve_context(provider: WorkbenchProvider, args, session_id: Optional[str] = None) -> SessionContext:
    workspace_id = await resolve_workspace_id(provider, args)
    if session_id is None:
        session_id = args.session
    if session_id is None and workspace_id:
        session_id = SelectionCache().session_id(workspace_id)
    return await load_session_context(provider, workspace_id, session_id)


def render_tree(tree: DirectoryTree, title: str) -> Tree:
    """Render the loaded part of a directory tree, expanded dirs opened."""
    root = Tree(Text(title, style="bold"))

    def add(node: Tree, prefix: str):
        for entry in tree.children.get(prefix, []):
            if entry.is_directory:
                label = Text(f"{entry.name}/", style="bold blue")
                expanded = tree.is_expanded(entry.path)
                if not expanded and entry.child_count is not None:
                    label.append(f" ({entry.child_count})", style="dim")
                child = node.add(label)
                if expanded:
                    add(child, entry.path)
            else:
                style = "reverse green" if entry.path == tree.selected_path else ""
                node.add(Text(entry.name, style=style))

    add(root, "")
    return root


async def cmd_providers(provider: WorkbenchProvider, args) -> int:
    """List registered providers."""
    print("Providers:")
    for name in get_provider_names():
        p = get_provider(name)
        status = "✓" if p.is_available() else "✗"
        active = " (active)" if name == args.provider else ""
        print(f"  {status} {p.display_name} ({p.name}){active}: {p.describe()}")
        await p.close()
    return 0


async def cmd_workspaces(provider: WorkbenchProvider, args) -> int:
    """List workspaces."""
    workspaces = await provider.list_workspaces()
    if not workspaces:
        print("No workspaces configured.")
        return 0

    active = SelectionCache().workspace_id
    table = Table(title="Workspaces")
    table.add_column("")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Repo root", style="dim")
    for ws in workspaces:
        table.add_row("*" if ws.id == active else "", ws.id, ws.name, ws.repo_root or "")
    console.print(table)
    return 0


async def cmd_sessions(provider: WorkbenchProvider, args) -> int:
    """List the sessions of the selected workspace."""
    context = await resolve_context(provider, args)
    if not context.workspace_id:
        print("No workspace selected. Pass --workspace or run `use`.")
        return 1
    if not context.sessions:
        print(f"No sessions for workspace {context.workspace_id}.")
        return 0

    table = Table(title=f"Sessions in {context.workspace_id}")
    table.add_column("")
    table.add_column("ID", style="cyan")
    table.add_column("Range")
    table.add_column("Domains")
    table.add_column("Runs", style="dim")
    table.add_column("Updated", style="dim")
    for session in context.sessions:
        marker = "*" if session is context.active_session else ""
        runs = ", ".join(f"{d}={session.runs[d]}" for d in DOMAINS if d in session.runs)
        table.add_row(
            marker,
            session.id,
            session.label,
            f"{session.available_count}/{len(DOMAINS)}",
            runs,
            session.last_updated or "",
        )
    console.print(table)

    if args.domains and context.active_session:
        print(f"\nDomains for {context.active_session.id}:")
        for domain in DOMAINS:
            mark = "✓" if context.is_available(domain) else "✗"
            run_id = context.run_ids.get(domain)
            suffix = f" (run {run_id})" if run_id is not None else " (unavailable for this session)"
            print(f"  {mark} {DOMAIN_LABELS[domain]:<12}{suffix}")
    return 0


async def cmd_use(provider: WorkbenchProvider, args) -> int:
    """Remember a workspace (and optionally a session) for later commands."""
    sessions = await provider.list_sessions(args.workspace_id)
    if args.session_id and not any(s.id == args.session_id for s in sessions):
        err_console.print(f"Session {args.session_id} not found in {args.workspace_id}; the first session will be used.")

    cache = SelectionCache()
    cache.select(args.workspace_id, args.session_id)
    cache.save()
    print(f"Active workspace: {args.workspace_id}")
    if args.session_id:
        print(f"Active session: {args.session_id}")
    return 0


async def cmd_search(provider: WorkbenchProvider, args) -> int:
    """Run a unified search and print deep links."""
    context = await resolve_context(provider, args)
    if not context.workspace_id:
        print("No workspace selected. Pass --workspace or run `use`.")
        return 1
    if not context.has_session:
        print(f"No sessions for workspace {context.workspace_id}; search is unavailable.")
        return 1

    types = None
    if args.type:
        types = [t for t in (normalize_type(name) for name in args.type) if t]

    hits = await UnifiedSearch(provider, context).search(args.query, types=types, limit=args.limit)
    if not hits:
        print(f"No matches found for: {args.query}")
        return 0

    print(f"Found {len(hits)} results in session {context.active_session.id}:\n")
    for kind, kind_hits in group_hits(hits).items():
        console.print(Text(f"{kind.value} ({len(kind_hits)})", style="bold"))
        for hit in kind_hits:
            result = hit.result
            location = f"{result.path}:{result.line}" if result.path and result.line else (result.path or "")
            print(f"  {result.primary_label}  {location}".rstrip())
            if hit.address:
                print(f"    {hit.address}")
            else:
                print("    (no link: result is missing its identifier)")
        print()
    return 0


async def reveal(provider: WorkbenchProvider, workspace_id: str, path: str, line=None) -> int:
    hydrator = TreeHydrator(provider, workspace_id)
    if not await hydrator.load_root():
        err_console.print(hydrator.tree.error or "Unable to load the file tree")
        return 1

    state = await hydrator.hydrate(path)
    console.print(render_tree(hydrator.tree, workspace_id))
    if state.status is HydrationStatus.FAILED:
        err_console.print(str(state.error))
        return 1

    entry = hydrator.tree.find(state.target)
    if entry is None:
        err_console.print(f"Target file {state.target} could not be found in the current scope.")
        return 1
    suffix = f" (line {line})" if line is not None else ""
    print(f"\nSelected: {state.target}{suffix}")
    return 0


async def cmd_reveal(provider: WorkbenchProvider, args) -> int:
    """Expand the file tree down to a path."""
    workspace_id = await resolve_workspace_id(provider, args)
    if not workspace_id:
        print("No workspace selected. Pass --workspace or run `use`.")
        return 1
    return await reveal(provider, workspace_id, args.path, args.line)


def print_address(address: DrillInAddress):
    print(f"View: {address.base_path}")
    for key, value in address.defined().items():
        print(f"  {key.rstrip('_')}: {value}")


async def cmd_open(provider: WorkbenchProvider, args) -> int:
    """Re-enter a deep link."""
    address = parse_address(args.link)
    if address is None:
        err_console.print(f"Not a workbench link: {args.link}")
        return 2

    print_address(address)
    context = await resolve_context(provider, args, session_id=args.session or address.session_id)
    if context.active_session is not None:
        note = ""
        if address.session_id and context.active_session.id != address.session_id:
            note = " (link session not found, using default)"
        print(f"Session: {context.active_session.id}{note}")

    if isinstance(address, FileAddress) and address.path and context.workspace_id:
        print()
        return await reveal(provider, context.workspace_id, address.path, address.line)
    return 0


COMMANDS = {
    "providers": cmd_providers,
    "workspaces": cmd_workspaces,
    "sessions": cmd_sessions,
    "use": cmd_use,
    "search": cmd_search,
    "reveal": cmd_reveal,
    "open": cmd_open,
}


async def run_command(provider: WorkbenchProvider, args) -> int:
    async with provider:
        try:
            return await COMMANDS[args.command](provider, args)
        except ProviderError as e:
            err_console.print(f"Error: {e}")
            return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse refactor index sessions, search results and files",
        prog="refactor-workbench",
    )
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--verbose", "-v", action="count", default=0, help="More logging (-vv for debug)")
    parser.add_argument(
        "--provider", "-P",
        default=DEFAULT_PROVIDER,
        help=f"Data provider: {', '.join(get_provider_names())} (default: {DEFAULT_PROVIDER})",
    )
    parser.add_argument("--api-url", help="Workbench API base URL (http provider)")
    parser.add_argument("--snapshot", help="Snapshot JSON file (snapshot provider)")
    parser.add_argument("--workspace", "-w", help="Workspace id")
    parser.add_argument("--session", "-s", help="Session id")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("providers", help="List data providers")
    subparsers.add_parser("workspaces", help="List workspaces")

    sessions_parser = subparsers.add_parser("sessions", help="List sessions of a workspace")
    sessions_parser.add_argument("--domains", "-d", action="store_true", help="Show domain availability")

    use_parser = subparsers.add_parser("use", help="Remember the active workspace/session")
    use_parser.add_argument("workspace_id", help="Workspace id")
    use_parser.add_argument("session_id", nargs="?", help="Session id")

    search_parser = subparsers.add_parser("search", help="Unified search with deep links")
    search_parser.add_argument("query", help="Search query (supports type:, path:, pkg:, kind:, term:)")
    search_parser.add_argument("--type", "-t", action="append", help="Restrict to a result type (repeatable)")
    search_parser.add_argument("--limit", "-l", type=int, default=DEFAULT_LIMIT, help="Max results per type")

    reveal_parser = subparsers.add_parser("reveal", help="Expand the file tree down to a path")
    reveal_parser.add_argument("path", help="File path relative to the repository root")
    reveal_parser.add_argument("--line", type=int, help="Line to report")

    open_parser = subparsers.add_parser("open", help="Open a deep link")
    open_parser.add_argument("link", help="Link such as /files?path=pkg/x.go&line=3")

    return parser


def main(argv=None):
    """Main entry point for refactor-workbench CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(f"refactor-workbench {__version__}")
        return

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return

    provider = make_provider(args)
    if provider is None:
        err_console.print(f"Unknown provider {args.provider!r}; choose from {', '.join(get_provider_names())}")
        sys.exit(2)

    code = asyncio.run(run_command(provider, args))
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
