"""
Command line entry point.

Run without arguments to materialize the configured layout (the bundled
``react_dashboard`` layout by default) into the current directory.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from treeforge import __version__
from treeforge.scaffold.layout_loader import (
    LayoutLoadError,
    list_bundled_layouts,
    load_bundled_layout,
    load_layout,
)
from treeforge.scaffold.materializer import FilesystemError, TreeMaterializer
from treeforge.scaffold.models import DirectoryNode
from treeforge.utils.logger import get_logger
from treeforge.utils.settings import Settings, get_settings

EXIT_OK = 0
EXIT_FILESYSTEM_ERROR = 1
EXIT_LAYOUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treeforge",
        description="Create a declared directory/file layout, skipping entries that already exist",
    )
    parser.add_argument(
        "--base-path",
        type=Path,
        default=None,
        help="Directory to create the layout in (default: current directory)",
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--layout",
        dest="layout_path",
        type=Path,
        default=None,
        help="JSON layout file to materialize",
    )
    source.add_argument(
        "--bundled",
        dest="layout_name",
        default=None,
        help="Name of a bundled layout to materialize",
    )

    parser.add_argument("--dry-run", action="store_true", help="List what would be created and exit")
    parser.add_argument("--list-layouts", action="store_true", help="List bundled layouts and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_layout(args: argparse.Namespace, app_settings: Settings) -> DirectoryNode:
    """Command line choice first, then TREEFORGE_LAYOUT_PATH, then the configured bundled name."""
    if args.layout_path is not None:
        return load_layout(args.layout_path)
    if args.layout_name is not None:
        return load_bundled_layout(args.layout_name)
    if app_settings.layout_path is not None:
        return load_layout(app_settings.layout_path)
    return load_bundled_layout(app_settings.layout_name)


def main(argv: Optional[List[str]] = None, app_settings: Optional[Settings] = None) -> int:
    app_settings = app_settings or get_settings()
    args = build_parser().parse_args(argv)
    logger = get_logger("treeforge", app_settings)

    if args.list_layouts:
        for name in list_bundled_layouts():
            print(name)
        return EXIT_OK

    try:
        layout = resolve_layout(args, app_settings)
    except LayoutLoadError as e:
        logger.error(f"Layout error: {e}")
        return EXIT_LAYOUT_ERROR

    base_path = args.base_path if args.base_path is not None else app_settings.base_path
    materializer = TreeMaterializer(logger=logger)

    if args.dry_run:
        try:
            planned = materializer.plan(base_path, layout)
        except FilesystemError as e:
            logger.error(f"Dry run found a conflict: {e}")
            return EXIT_FILESYSTEM_ERROR

        for entry in planned:
            print(f"Would create {entry.kind.value}: {entry.path}")
        return EXIT_OK

    try:
        materializer.materialize(base_path, layout)
    except FilesystemError as e:
        logger.error(f"Scaffolding aborted: {e}")
        return EXIT_FILESYSTEM_ERROR

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
