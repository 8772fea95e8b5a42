"""RegConf command line interface."""

import argparse
import logging
import sys
from typing import List, Optional

from .exceptions import RegConfError
from .importer import import_entries, write_entry
from .settings import RegistrySettings, load_settings
from .store import EntryStore
from .utils import format_value, load_yaml

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one sub-command per operation."""
    parser = argparse.ArgumentParser(prog="regconf", description="RegConf registry administration")
    parser.add_argument("--database", help="SQLite database file (overrides settings)")
    parser.add_argument("--settings", help="YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    import_cmd = commands.add_parser("import", help="Import entries from a YAML file")
    import_cmd.add_argument("source", help="YAML file to import")
    import_cmd.add_argument("--purge", action="store_true", help="Delete all entries and history first")
    import_cmd.add_argument("--environment", help="Top-level section to import")

    get_cmd = commands.add_parser("get", help="Print the value or subtree at a key path")
    get_cmd.add_argument("path", help="Dot-separated key path")

    set_cmd = commands.add_parser("set", help="Write a value (mappings become folders)")
    set_cmd.add_argument("path", help="Dot-separated key path")
    set_cmd.add_argument("value", help="Value in YAML")

    commands.add_parser("export", help="Print the whole registry as YAML")

    history_cmd = commands.add_parser("history", help="Print recorded values of a leaf")
    history_cmd.add_argument("path", help="Dot-separated key path")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line interface.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.settings)
        if args.database:
            settings = RegistrySettings(database=args.database, environment=settings.environment)
        with EntryStore(settings.database) as store:
            _run(args, settings, store)
    except RegConfError as e:
        print(f"regconf: {e}", file=sys.stderr)
        return 1
    return 0


def _run(args: argparse.Namespace, settings: RegistrySettings, store: EntryStore) -> None:
    logger.debug("Running '%s' against %r", args.command, store)
    if args.command == "import":
        environment = args.environment or settings.environment
        written = import_entries(store, args.source, purge=args.purge, environment=environment)
        print(f"Imported {written} value(s) from {args.source}")
    elif args.command == "get":
        entry = _find(store, args.path)
        print(format_value(store.export(entry) if entry.folder else store.decode_value(entry)), end="")
    elif args.command == "set":
        write_entry(store, args.path, load_yaml(args.value))
    elif args.command == "export":
        print(format_value(store.export()), end="")
    elif args.command == "history":
        entry = _find(store, args.path)
        if entry.folder:
            raise RegConfError(f"'{args.path}' is a folder and has no history")
        for version in store.versions(entry):
            print(f"{version.created_at}  {format_value(load_yaml(version.value)).strip()}")


def _find(store: EntryStore, path: str):
    entry = store.find(path)
    if entry is None:
        raise RegConfError(f"No entry at '{path}'")
    return entry


if __name__ == "__main__":
    sys.exit(main())
