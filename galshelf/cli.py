"""Command-line interface for galshelf."""

import sys
import logging
import argparse
import asyncio
import httpx
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)

from galshelf import __version__
from galshelf.catalog.client import VndbClient
from galshelf.catalog.errors import CatalogClientError
from galshelf.catalog.selection import pick_display_title
from galshelf.config.loader import load_config, ConfigError
from galshelf.config.validator import validate_config, ValidationError
from galshelf.launcher import GameLauncher, LaunchError, PlaytimeRecorder
from galshelf.library.database import DatabaseError, LibraryDatabase
from galshelf.library.models import EntryValidationError, LibraryEntry
from galshelf.media.downloader import ImageDownloader
from galshelf.media.storage import MediaStore
from galshelf.scanner.folder_scanner import ScannerError, list_game_folders, scan_folders
from galshelf.translation.tag_cache import TagTranslationCache
from galshelf.translation.translator import ChatTranslator
from galshelf.workflow.enrichment import EnrichmentAggregator
from galshelf.workflow.event_bus import EventBus
from galshelf.workflow.events import MatchProgressEvent, NoticeEvent
from galshelf.workflow.importer import CREDENTIAL_SETTING, ImportPipeline, ImportStatus
from galshelf.workflow.rematch import EntryRematcher


STATUS_STYLES = {
    ImportStatus.MATCHED: "green",
    ImportStatus.FAILED: "red",
    ImportStatus.DONE: "cyan",
}


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog='galshelf',
        description='Visual novel library manager with VNDB metadata import',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import two game folders (each folder is one game)
  galshelf import "D:/Games/Summer Pockets" "D:/Games/Clannad"

  # Import every game folder below a library root, review only
  galshelf import --children D:/Games --dry-run

  # Store the translation API key (checked before saving)
  galshelf set-key sk-...

  # Search the library and launch an entry
  galshelf list --search key
  galshelf launch 3f2a
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=Path,
        metavar='PATH',
        help='Path to config.yaml (default: ./config.yaml, then built-in defaults)'
    )

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    import_parser = subparsers.add_parser('import', help='Scan folders, match them on VNDB and import them')
    import_parser.add_argument('paths', nargs='+', type=Path, metavar='PATH', help='Game folders')
    import_parser.add_argument(
        '--children',
        action='store_true',
        help='Treat each PATH as a library root and import its subfolders'
    )
    import_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Match and show the review table without writing to the library'
    )

    list_parser = subparsers.add_parser('list', help='List library entries')
    list_parser.add_argument('--search', metavar='TEXT', help='Only entries matching TEXT')

    launch_parser = subparsers.add_parser('launch', help='Launch a game and record the play session')
    launch_parser.add_argument('entry_id', metavar='ENTRY_ID', help='Entry id or unique id prefix')

    rematch_parser = subparsers.add_parser('rematch', help='Link an entry to a different VNDB record')
    rematch_parser.add_argument('entry_id', metavar='ENTRY_ID', help='Entry id or unique id prefix')
    rematch_parser.add_argument('vn_id', metavar='VN_ID', help='VNDB id, e.g. v17')

    key_parser = subparsers.add_parser('set-key', help='Store the translation API key')
    key_parser.add_argument('key', metavar='KEY')
    key_parser.add_argument(
        '--no-test',
        action='store_true',
        help='Store the key without a test request'
    )

    tags_parser = subparsers.add_parser('tags', help='Show or edit cached tag translations')
    tags_parser.add_argument('--delete', metavar='TAG', help='Forget the cached translation of TAG')

    return parser


def _setup_logging(config: dict) -> None:
    """
    Setup logging configuration from config.

    Args:
        config: Configuration dictionary
    """
    logging_config = config.get('logging', {})

    level_str = logging_config.get('level', 'INFO').upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers = []

    if logging_config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        handlers.append(console_handler)

    log_file = logging_config.get('file')
    if log_file:
        try:
            log_path = Path(log_file).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
            handlers.append(file_handler)
        except OSError as e:
            print(f"Error: Could not create log file '{log_file}': {e}", file=sys.stderr)
            sys.exit(1)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True
    )

    # Request logging from the HTTP stack would echo API keys in headers at DEBUG
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)

    # Pillow logs every PNG chunk at DEBUG
    logging.getLogger('PIL').setLevel(logging.INFO)


def _create_http_client(config: dict) -> httpx.AsyncClient:
    """Shared HTTP client for catalog requests and image downloads."""
    max_connections = config.get('media', {}).get('max_concurrent_downloads', 4) + 2
    timeout = config.get('catalog', {}).get('request_timeout', 30)

    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_connections,
        keepalive_expiry=90.0,
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(connect=5.0, read=timeout, write=5.0, pool=5.0),
        transport=httpx.AsyncHTTPTransport(limits=limits, retries=0),
        headers={'User-Agent': f'galshelf/{__version__}'},
        follow_redirects=True,
    )


@dataclass
class Services:
    """Everything a command may need, wired together."""
    config: dict
    store: LibraryDatabase
    event_bus: EventBus
    catalog: VndbClient
    translator: ChatTranslator
    tag_cache: TagTranslationCache
    aggregator: EnrichmentAggregator


@asynccontextmanager
async def open_services(config: dict, console: Console):
    """
    Build the object graph for one command and tear it down afterwards.

    Yields:
        Services
    """
    paths = config['paths']
    media_config = config.get('media', {})

    store = LibraryDatabase(Path(paths['database']).expanduser())
    event_bus = EventBus()
    event_bus.subscribe(
        NoticeEvent,
        lambda e: console.print(f"[yellow]{e.level}:[/yellow] {e.message}")
    )
    event_bus.start()

    async with _create_http_client(config) as client:
        downloader = ImageDownloader(
            client,
            timeout=media_config.get('request_timeout', 30),
            max_retries=media_config.get('max_retries', 2),
            validation_mode=media_config.get('validation_mode', 'normal'),
        )
        media_store = MediaStore(
            paths['media'],
            downloader=downloader,
            download_semaphore=asyncio.Semaphore(media_config.get('max_concurrent_downloads', 4)),
        )
        translator = ChatTranslator(config)
        tag_cache = TagTranslationCache(store, translator)
        services = Services(
            config=config,
            store=store,
            event_bus=event_bus,
            catalog=VndbClient(config, client=client),
            translator=translator,
            tag_cache=tag_cache,
            aggregator=EnrichmentAggregator(config, media_store, translator, tag_cache, event_bus),
        )
        try:
            yield services
        finally:
            await event_bus.stop()
            store.close()


async def _resolve_entry(store: LibraryDatabase, entry_id: str) -> Optional[LibraryEntry]:
    """Find an entry by full id or unique id prefix."""
    entry = await store.get_entry(entry_id)
    if entry is not None:
        return entry

    matches = [e for e in await store.get_all_entries() if e.id.startswith(entry_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        logger.error(f"Entry id prefix '{entry_id}' is ambiguous ({len(matches)} entries)")
    return None


def _review_table(pipeline: ImportPipeline) -> Table:
    table = Table(title="Import review", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Folder")
    table.add_column("Match")
    table.add_column("VNDB")
    table.add_column("Engine", style="dim")
    table.add_column("Status")

    for index, item in enumerate(pipeline.items, 1):
        style = STATUS_STYLES.get(item.status, "")
        status = item.status.value if not item.error else f"{item.status.value}: {item.error}"
        table.add_row(
            str(index),
            item.title,
            pick_display_title(item.record) if item.record else "-",
            item.record.id if item.record else "-",
            item.detected.engine or "",
            f"[{style}]{status}[/{style}]" if style else status,
        )
    return table


def _library_table(entries: List[LibraryEntry]) -> Table:
    table = Table(box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Developer")
    table.add_column("Status")
    table.add_column("Playtime", justify="right")
    table.add_column("VNDB", justify="right")

    for entry in entries:
        table.add_row(
            entry.id[:8],
            entry.title,
            entry.developer,
            entry.play_status,
            entry.format_playtime(),
            f"{entry.vndb_rating_display}/10" if entry.vndb_rating else "-",
        )
    return table


async def run_import(services: Services, args: argparse.Namespace, console: Console) -> int:
    """Scan, match, review and (unless dry-run) commit."""
    folders: List[Path] = []
    if args.children:
        for root in args.paths:
            try:
                folders.extend(list_game_folders(root))
            except ScannerError as e:
                console.print(f"[red]{e}[/red]")
                return 1
    else:
        folders = list(args.paths)

    games = scan_folders(folders)
    if not games:
        console.print("No games detected.")
        return 1

    pipeline = ImportPipeline(
        services.config,
        services.catalog,
        services.aggregator,
        services.store,
        services.event_bus,
    )

    existing = {entry.install_path for entry in await services.store.get_all_entries()}
    new_games = [game for game in games if game.install_path not in existing]
    skipped = len(games) - len(new_games)
    if skipped:
        console.print(f"Skipping {skipped} folders already in the library.")
    if not new_games:
        return 0
    pipeline.add_detected(new_games)

    services.event_bus.subscribe(
        MatchProgressEvent,
        lambda e: console.print(f"[dim]({e.completed + 1}/{e.total})[/dim] {e.current_title}")
        if e.current_title else None
    )
    await pipeline.match_all()

    console.print(_review_table(pipeline))

    if args.dry_run:
        console.print("Dry run: nothing imported.")
        return 0

    try:
        entries = await pipeline.commit()
    except (EntryValidationError, DatabaseError) as e:
        console.print(f"[red]Import failed:[/red] {e}")
        return 1

    console.print(f"Imported {len(entries)} games.")
    return 0


async def run_list(services: Services, args: argparse.Namespace, console: Console) -> int:
    if args.search:
        entries = await services.store.search_entries(args.search)
    else:
        entries = await services.store.get_all_entries()

    if not entries:
        console.print("Library is empty." if not args.search else "No matching entries.")
        return 0

    console.print(_library_table(entries))
    return 0


async def run_launch(services: Services, args: argparse.Namespace, console: Console) -> int:
    entry = await _resolve_entry(services.store, args.entry_id)
    if entry is None:
        console.print(f"[red]No entry found for '{args.entry_id}'[/red]")
        return 1

    recorder = PlaytimeRecorder(services.store, services.event_bus)
    launcher = GameLauncher(services.event_bus)
    try:
        task = await launcher.launch(entry)
    except LaunchError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    console.print(f"Playing [bold]{entry.title}[/bold]... (waiting for the game to exit)")
    session = await task
    # Let the recorder persist the session before the bus shuts down
    await services.event_bus.stop()
    recorder.close()

    updated = await services.store.get_entry(entry.id)
    console.print(
        f"Session: {session.duration}s. Total playtime: "
        f"{updated.format_playtime() if updated else '?'}"
    )
    return 0


async def run_rematch(services: Services, args: argparse.Namespace, console: Console) -> int:
    entry = await _resolve_entry(services.store, args.entry_id)
    if entry is None:
        console.print(f"[red]No entry found for '{args.entry_id}'[/red]")
        return 1

    rematcher = EntryRematcher(services.config, services.catalog, services.aggregator, services.store)
    try:
        updated = await rematcher.rematch(entry.id, args.vn_id)
    except (CatalogClientError, EntryValidationError, DatabaseError) as e:
        console.print(f"[red]Re-match failed:[/red] {e}")
        return 1

    if updated is None:
        console.print(f"[red]VNDB record {args.vn_id} not found[/red]")
        return 1

    console.print(f"Linked [bold]{updated.title}[/bold] to {updated.vndb_id}.")
    return 0


async def run_set_key(services: Services, args: argparse.Namespace, console: Console) -> int:
    key = args.key.strip()
    if not args.no_test and not await services.translator.test_credential(key):
        console.print("[red]The translation API rejected this key; not saved.[/red]")
        return 1

    await services.store.set_setting(CREDENTIAL_SETTING, key)
    console.print("Translation API key saved.")
    return 0


async def run_tags(services: Services, args: argparse.Namespace, console: Console) -> int:
    if args.delete:
        await services.store.delete_tag_translation(args.delete)
        console.print(f"Forgot translation of '{args.delete}'.")
        return 0

    translations = await services.store.get_all_tag_translations()
    table = Table(box=box.ROUNDED)
    table.add_column("Tag")
    table.add_column("Translation")
    for translation in translations:
        table.add_row(translation.source, translation.translated)
    console.print(table)
    return 0


COMMANDS = {
    'import': run_import,
    'list': run_list,
    'launch': run_launch,
    'rematch': run_rematch,
    'set-key': run_set_key,
    'tags': run_tags,
}


async def run_command(config: dict, args: argparse.Namespace, console: Optional[Console] = None) -> int:
    """
    Run one subcommand (async).

    Args:
        config: Loaded configuration
        args: Parsed command-line arguments
        console: Optional rich Console for output

    Returns:
        Exit code
    """
    console = console or Console()
    async with open_services(config, console) as services:
        return await COMMANDS[args.command](services, args, console)


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for galshelf CLI.

    Args:
        argv: Command-line arguments (default: sys.argv)

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        validate_config(config)
    except (ConfigError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    _setup_logging(config)

    try:
        return asyncio.run(run_command(config, args))
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        return 130
    except DatabaseError as e:
        print(f"\nLibrary error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
