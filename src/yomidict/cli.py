"""
Command-line interface for importing and browsing dictionaries.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from yomidict import __version__
from yomidict.config import load_config
from yomidict.exceptions import (
    ConfigError,
    DictionaryImportError,
    DictionaryNotFoundError,
    StoreError,
)
from yomidict.manager import DictionaryManager


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the yomidict CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"\n  [CONFIG ERROR] {e}")
        return 1

    try:
        manager = DictionaryManager(args.db, args.cache_dir, config=config)
    except StoreError as e:
        print(f"\n  [DATABASE ERROR] {e}")
        return 1

    with manager:
        try:
            return args.func(args, manager)
        except StoreError as e:
            print(f"\n  [DATABASE ERROR] {e}")
            return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="yomidict",
        description="Import and search dictionary archives",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Database file (overrides the config file)",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        help="Extraction cache directory (overrides the config file)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Log progress (repeat for debug output)",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import a dictionary archive",
    )
    import_parser.add_argument(
        "archive",
        type=Path,
        help="Zip archive containing index.json and the word shards",
    )
    import_parser.set_defaults(func=cmd_import)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List imported dictionaries",
    )
    list_parser.set_defaults(func=cmd_list)

    # search command
    search_parser = subparsers.add_parser(
        "search",
        help="Search words by reading or written form",
    )
    search_parser.add_argument(
        "text",
        help="Text the reading or written form must contain",
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of results (default: from config)",
    )
    search_parser.set_defaults(func=cmd_search)

    # remove command
    remove_parser = subparsers.add_parser(
        "remove",
        help="Remove a dictionary and its words",
    )
    remove_parser.add_argument(
        "dictionary_id",
        help="Dictionary ID (see 'yomidict list')",
    )
    remove_parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    remove_parser.set_defaults(func=cmd_remove)

    # sweep command
    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Clear the cache and remove unfinished imports "
             "(not while an import is running)",
    )
    sweep_parser.set_defaults(func=cmd_sweep)

    return parser


def cmd_import(
    args: argparse.Namespace,
    manager: DictionaryManager,
) -> int:
    """Handle import command."""
    print(f"\nImporting {args.archive}...")

    def show_progress(percentage: float) -> None:
        print(f"\r  Progress: {percentage:7.2%}", end="", flush=True)

    try:
        dictionary = manager.import_dictionary(args.archive, on_progress=show_progress)
    except DictionaryImportError as e:
        print(f"\n  [ERROR] {e.user_message}")
        print(f"          {e}")
        return 1

    print(f"\n\nImported {dictionary.title}")
    if dictionary.revision:
        print(f"  Revision: {dictionary.revision}")
    print(f"  Words:    {dictionary.word_count}")
    print(f"  ID:       {dictionary.id}")
    return 0


def cmd_list(
    args: argparse.Namespace,
    manager: DictionaryManager,
) -> int:
    """Handle list command."""
    dictionaries = manager.list_dictionaries()
    if not dictionaries:
        print("No dictionaries imported.")
        return 0

    print(f"\n{'ID':<34} {'Title':<30} {'Revision':<12} {'Words'}")
    print("-" * 86)
    for d in dictionaries:
        title = (d.title[:27] + "...") if len(d.title) > 30 else d.title
        print(f"{d.id:<34} {title:<30} {d.revision or '-':<12} {d.word_count}")
    return 0


def cmd_search(
    args: argparse.Namespace,
    manager: DictionaryManager,
) -> int:
    """Handle search command."""
    words = manager.search_words(args.text, limit=args.limit)
    if not words:
        print(f"No words found for {args.text!r}.")
        return 0

    for word in words:
        print(f"\n{word.original_form} [{word.reading}]")
        for i, definition in enumerate(word.definitions, 1):
            print(f"  {i}. {definition}")
    return 0


def cmd_remove(
    args: argparse.Namespace,
    manager: DictionaryManager,
) -> int:
    """Handle remove command."""
    try:
        dictionary = manager.get_dictionary(args.dictionary_id)
    except DictionaryNotFoundError as e:
        print(f"\n  [ERROR] {e}")
        return 1

    if not args.yes:
        response = input(
            f"\nRemove {dictionary.title} ({dictionary.word_count} words)? [y/N] "
        )
        if response.lower() not in ("y", "yes"):
            print("Aborted.")
            return 1

    words_removed = manager.delete_dictionary(dictionary.id)
    print(f"\nRemoved {dictionary.title} ({words_removed} words).")
    return 0


def cmd_sweep(
    args: argparse.Namespace,
    manager: DictionaryManager,
) -> int:
    """Handle sweep command."""
    sweep_result = manager.start()
    print("\nSweep results:")
    print(f"  Cache items:  {sweep_result.cache_entries_removed}")
    print(f"  Dictionaries: {sweep_result.dictionaries_removed}")
    print(f"  Words:        {sweep_result.words_removed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
