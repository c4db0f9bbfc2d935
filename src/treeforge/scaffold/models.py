"""
Tree Description Models for Scaffolding

This module defines Pydantic v2 models for the declarative file-tree
description that the materializer walks:
- FileNode: a leaf placeholder, always created as an empty file
- DirectoryNode: a mapping from child name to TreeNode
- TreeNode: the tagged union of the two, discriminated by ``kind``

Raw nested mappings (the JSON layout form) are turned into the tagged
union once, by ``build_tree``.
"""

from enum import Enum
from pathlib import PurePath
from types import MappingProxyType
from typing import Annotated, Any, Dict, Iterator, Literal, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class NodeKind(str, Enum):
    """Kinds of entities a tree description can declare."""
    DIRECTORY = "directory"
    FILE = "file"


class TreeDescriptionError(Exception):
    """Raised when a raw mapping cannot be turned into a tree description."""
    pass


_FORBIDDEN_NAMES = {"", ".", ".."}
_FORBIDDEN_CHARS = {"/", "\\", "\x00"}


def validate_entry_name(name: str) -> str:
    """Ensure a child name is exactly one path segment."""
    if name in _FORBIDDEN_NAMES:
        raise ValueError(f"Invalid entry name: {name!r}")
    if any(char in name for char in _FORBIDDEN_CHARS):
        raise ValueError(f"Entry name must be a single path segment: {name!r}")
    return name


class FileNode(BaseModel):
    """
    Represents a file placeholder in a tree description.

    Files are materialized with zero length; ``content`` exists so the
    raw form round-trips, and must stay empty.
    """

    kind: Literal["file"] = Field(
        default="file",
        description="Discriminator tag"
    )
    content: str = Field(
        default="",
        description="Placeholder payload (always empty)"
    )

    @field_validator("content")
    @classmethod
    def validate_empty(cls, v: str) -> str:
        if v:
            raise ValueError("File contents are not supported; use an empty string")
        return v

    model_config = ConfigDict(frozen=True)


class DirectoryNode(BaseModel):
    """
    Represents a directory in a tree description.

    Children keep their insertion order, which is the order the
    materializer visits them in.
    """

    kind: Literal["directory"] = Field(
        default="directory",
        description="Discriminator tag"
    )
    children: Mapping[str, "TreeNode"] = Field(
        default_factory=dict,
        validate_default=True,
        description="Child entries keyed by single path segment"
    )

    @field_validator("children")
    @classmethod
    def validate_names(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        for name in v:
            validate_entry_name(name)
        # Read-only view; frozen alone leaves the dict mutable
        return MappingProxyType(dict(v))

    model_config = ConfigDict(frozen=True)

    def iter_entries(
        self,
        prefix: PurePath = PurePath()
    ) -> Iterator[Tuple[PurePath, NodeKind]]:
        """
        Walk the description depth-first, parents before children.

        Args:
            prefix: Relative path the walk starts from

        Yields:
            (relative_path, kind) for every described entry
        """
        for name, child in self.children.items():
            child_path = prefix / name
            if isinstance(child, DirectoryNode):
                yield child_path, NodeKind.DIRECTORY
                yield from child.iter_entries(child_path)
            else:
                yield child_path, NodeKind.FILE

    @property
    def directory_count(self) -> int:
        """Number of directories below this node."""
        return sum(1 for _, kind in self.iter_entries() if kind is NodeKind.DIRECTORY)

    @property
    def file_count(self) -> int:
        """Number of files below this node."""
        return sum(1 for _, kind in self.iter_entries() if kind is NodeKind.FILE)

    def to_mapping(self) -> Dict[str, Any]:
        """Convert back to the raw nested mapping form."""
        return {
            name: child.to_mapping() if isinstance(child, DirectoryNode) else child.content
            for name, child in self.children.items()
        }


TreeNode = Annotated[Union[DirectoryNode, FileNode], Field(discriminator="kind")]

DirectoryNode.model_rebuild()


# -------------------------------------------------------------------
# Raw Mapping Conversion
# -------------------------------------------------------------------

def _convert(value: Any, location: str) -> Dict[str, Any]:
    if isinstance(value, Mapping):
        children = {}
        for name, child in value.items():
            if not isinstance(name, str):
                raise TreeDescriptionError(f"Entry names must be strings at {location}: {name!r}")
            children[name] = _convert(child, f"{location}/{name}")
        return {"kind": NodeKind.DIRECTORY.value, "children": children}

    if value is None:
        return {"kind": NodeKind.FILE.value}

    if isinstance(value, str):
        return {"kind": NodeKind.FILE.value, "content": value}

    raise TreeDescriptionError(
        f"Unsupported value at {location}: expected a mapping or a string, "
        f"got {type(value).__name__}"
    )


def build_tree(mapping: Mapping[str, Any]) -> DirectoryNode:
    """
    Build a tree description from a raw nested mapping.

    Mappings become directories; strings (which must be empty) and nulls
    become files.

    Args:
        mapping: Root mapping of the description

    Returns:
        DirectoryNode: Root of the validated description

    Raises:
        TreeDescriptionError: If the mapping holds unsupported values,
            invalid names or non-empty file contents
    """
    if not isinstance(mapping, Mapping):
        raise TreeDescriptionError(
            f"Tree description root must be a mapping, got {type(mapping).__name__}"
        )

    raw = _convert(mapping, "")

    try:
        return DirectoryNode.model_validate(raw)
    except ValidationError as e:
        raise TreeDescriptionError(f"Invalid tree description: {e}") from e
