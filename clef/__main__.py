"""
Clef Metadata Store - Entry Point

Run with: python -m clef
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from clef import __version__
from clef.config import ClefConfig, get_config, load_config
from clef.core.catalog import MetadataCatalog
from clef.core.errors import CatalogError, InvalidBatchInputError
from clef.core.metadata_db import MetadataDb

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="clef",
        description="Clef - metadata store for cataloged musical works",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a clef.toml config file (default: bundled defaults)",
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (overrides the config file)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create or migrate the schema")
    init.add_argument(
        "--reset",
        action="store_true",
        help="Drop all tables first (deletes every row)",
    )

    lookup = sub.add_parser("lookup", help="Look up joined work metadata as JSON lines")
    lookup.add_argument("datasets", help="Comma-delimited dataset names")
    lookup.add_argument("filenames", help="Comma-delimited filenames")
    lookup.add_argument(
        "--include-untagged",
        action="store_true",
        default=None,
        help="Also return works without tags (tag is null)",
    )

    sub.add_parser("stats", help="Print row counts per table")

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace, config: ClefConfig) -> int:
    """Open the store, run one command, close the store."""
    db_path = args.db if args.db is not None else config.db_path
    db = MetadataDb(db_path)
    await db.open()
    try:
        if args.command == "init":
            if args.reset:
                await db.reset_schema()
                logger.info("Schema reset at %s", db_path)
            else:
                await db.ensure_schema()
                logger.info("Schema ready at %s", db_path)
            return 0

        catalog = MetadataCatalog(
            db=db,
            max_batch_length=config.max_batch_length,
            include_untagged=config.include_untagged,
        )
        await catalog.initialize()

        if args.command == "lookup":
            rows = await catalog.get_joined_metadata(
                args.datasets, args.filenames, include_untagged=args.include_untagged
            )
            for row in rows:
                print(json.dumps(asdict(row), ensure_ascii=False))
            logger.info("%d row(s)", len(rows))
            return 0

        if args.command == "stats":
            counts = await db.table_counts()
            print(json.dumps(counts))
            return 0

        raise CatalogError(f"Unknown command: {args.command}")
    finally:
        await db.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config = load_config(args.config) if args.config is not None else get_config()
    except (OSError, ValueError) as e:
        logger.error("Could not load config: %s", e)
        return 1

    try:
        return asyncio.run(run_command(args, config))
    except InvalidBatchInputError as e:
        logger.error("%s", e)
        return 2
    except RuntimeError as e:
        # CatalogError, and store failures such as a schema newer than this release.
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
