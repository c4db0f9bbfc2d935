"""
Layout Loading Utilities

This module provides utilities for:
- Reading tree descriptions from JSON layout files
- Locating the layouts bundled with the package
- Validating raw layouts into DirectoryNode descriptions
"""

import json
from importlib import resources
from pathlib import Path
from typing import Any, List, Union

from treeforge.scaffold.models import DirectoryNode, TreeDescriptionError, build_tree
from treeforge.utils.logger import get_logger

logger = get_logger(__name__)

BUNDLED_PACKAGE = "treeforge.layouts"
LAYOUT_SUFFIX = ".json"


class LayoutLoadError(Exception):
    """Raised when a layout cannot be read or is not a valid tree description."""
    pass


def parse_layout(text: str, source: str = "<string>") -> DirectoryNode:
    """
    Parse JSON layout text into a tree description.

    Args:
        text: JSON document whose root is an object
        source: Name used in error messages

    Returns:
        DirectoryNode: Validated description

    Raises:
        LayoutLoadError: If the text is not JSON or not a valid description
    """
    try:
        raw: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise LayoutLoadError(f"Layout {source} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise LayoutLoadError(
            f"Layout {source} must be a JSON object, got {type(raw).__name__}"
        )

    try:
        return build_tree(raw)
    except TreeDescriptionError as e:
        raise LayoutLoadError(f"Layout {source} is invalid: {e}") from e


def load_layout(file_path: Union[str, Path]) -> DirectoryNode:
    """
    Load a tree description from a JSON file.

    Raises:
        LayoutLoadError: If the file is missing, unreadable or invalid
    """
    file_path = Path(file_path)

    if not file_path.is_file():
        raise LayoutLoadError(f"Layout file not found: {file_path}")

    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LayoutLoadError(f"Failed to read layout {file_path}: {e}") from e

    node = parse_layout(text, source=str(file_path))
    logger.debug(
        f"Loaded layout {file_path}: {node.directory_count} directories, "
        f"{node.file_count} files"
    )
    return node


def list_bundled_layouts() -> List[str]:
    """Names of the layouts shipped with the package, sorted."""
    return sorted(
        entry.name[:-len(LAYOUT_SUFFIX)]
        for entry in resources.files(BUNDLED_PACKAGE).iterdir()
        if entry.name.endswith(LAYOUT_SUFFIX)
    )


def load_bundled_layout(name: str) -> DirectoryNode:
    """
    Load one of the layouts shipped with the package.

    Raises:
        LayoutLoadError: If no bundled layout has that name
    """
    available = list_bundled_layouts()
    if name not in available:
        raise LayoutLoadError(
            f"Unknown bundled layout {name!r}; available: {', '.join(available)}"
        )

    text = resources.files(BUNDLED_PACKAGE).joinpath(name + LAYOUT_SUFFIX).read_text(encoding="utf-8")
    return parse_layout(text, source=f"bundled:{name}")
