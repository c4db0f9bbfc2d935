"""
Tree Materializer

Creates the directories and empty files declared by a tree description
under a base path. Existing entries are skipped, never truncated; the
walk recurses into existing directories so partial trees are completed
on a re-run.
"""

import logging
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from treeforge.scaffold.models import DirectoryNode, NodeKind
from treeforge.utils.logger import get_logger


class FilesystemError(Exception):
    """Raised when a directory or file cannot be created."""

    def __init__(self, message: str, path: Path, operation: str):
        super().__init__(message)
        self.path = path
        self.operation = operation


class CreatedEntry(BaseModel):
    """A filesystem entity created during a run."""

    path: Path
    kind: NodeKind


class PlannedEntry(BaseModel):
    """A filesystem entity a run would create."""

    path: Path
    kind: NodeKind


class MaterializationReport(BaseModel):
    """Outcome of one materialize() call."""

    base_path: Path
    created: List[CreatedEntry] = Field(default_factory=list)
    skipped_count: int = Field(
        default=0,
        description="Described entries that already existed"
    )
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def directories_created(self) -> int:
        return sum(1 for entry in self.created if entry.kind is NodeKind.DIRECTORY)

    @property
    def files_created(self) -> int:
        return sum(1 for entry in self.created if entry.kind is NodeKind.FILE)

    @property
    def mutation_count(self) -> int:
        return len(self.created)


class TreeMaterializer:
    """
    Materializes tree descriptions onto the filesystem.

    Example:
        >>> materializer = TreeMaterializer()
        >>> report = materializer.materialize(Path("."), build_tree({"a": {"b.txt": ""}}))
        >>> print(f"Created {report.mutation_count} entries")
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Args:
            logger: Sink for creation lines (defaults to the package logger)
        """
        self.logger = logger or get_logger(__name__)

    def materialize(
        self,
        base_path: Union[str, Path],
        node: DirectoryNode
    ) -> MaterializationReport:
        """
        Create every missing entry of ``node`` below ``base_path``.

        Args:
            base_path: Directory the description is rooted at; it is not
                checked or created up front
            node: Root of the tree description

        Returns:
            MaterializationReport: Entries created, in creation order

        Raises:
            FilesystemError: On the first failed or colliding create; the
                remaining traversal is abandoned
        """
        report = MaterializationReport(base_path=Path(base_path))
        self._materialize(Path(base_path), node, report)
        report.finished_at = datetime.now(timezone.utc)

        self.logger.debug(
            f"Materialized {report.base_path}: {report.directories_created} directories, "
            f"{report.files_created} files created, {report.skipped_count} skipped"
        )
        return report

    def plan(self, base_path: Union[str, Path], node: DirectoryNode) -> List[PlannedEntry]:
        """
        Entries a materialize() call would create right now; nothing is written.

        Raises:
            FilesystemError: On the collision or stat failure that would
                abort the real run
        """
        planned: List[PlannedEntry] = []
        self._plan(Path(base_path), node, planned)
        return planned

    def _plan(self, base_path: Path, node: DirectoryNode, planned: List[PlannedEntry]) -> None:
        for name, child in node.children.items():
            child_path = base_path / name

            if isinstance(child, DirectoryNode):
                if not self._check_existing(child_path, NodeKind.DIRECTORY):
                    planned.append(PlannedEntry(path=child_path, kind=NodeKind.DIRECTORY))
                self._plan(child_path, child, planned)
            elif not self._check_existing(child_path, NodeKind.FILE):
                planned.append(PlannedEntry(path=child_path, kind=NodeKind.FILE))

    def _materialize(
        self,
        base_path: Path,
        node: DirectoryNode,
        report: MaterializationReport
    ) -> None:
        for name, child in node.children.items():
            child_path = base_path / name

            if isinstance(child, DirectoryNode):
                self._ensure_directory(child_path, report)
                self._materialize(child_path, child, report)
            else:
                self._ensure_file(child_path, report)

    def _check_existing(self, path: Path, expected: NodeKind) -> bool:
        """
        Whether ``path`` already exists as the expected kind.

        Raises:
            FilesystemError: If the path cannot be inspected or exists as
                the other kind
        """
        operation = "mkdir" if expected is NodeKind.DIRECTORY else "create"

        try:
            mode = path.stat().st_mode
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise FilesystemError(
                f"Cannot inspect {path}: {e}",
                path=path,
                operation=operation,
            ) from e

        if expected is NodeKind.DIRECTORY and not stat.S_ISDIR(mode):
            raise FilesystemError(
                f"Cannot create directory, a non-directory exists at: {path}",
                path=path,
                operation=operation,
            )
        if expected is NodeKind.FILE and stat.S_ISDIR(mode):
            raise FilesystemError(
                f"Cannot create file, a directory exists at: {path}",
                path=path,
                operation=operation,
            )
        return True

    def _ensure_directory(self, path: Path, report: MaterializationReport) -> None:
        if self._check_existing(path, NodeKind.DIRECTORY):
            report.skipped_count += 1
            self.logger.debug(f"Directory exists, skipping: {path}")
            return

        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Failed to create directory {path}: {e}",
                path=path,
                operation="mkdir",
            ) from e

        report.created.append(CreatedEntry(path=path, kind=NodeKind.DIRECTORY))
        self.logger.info(f"Directory created: {path}")

    def _ensure_file(self, path: Path, report: MaterializationReport) -> None:
        if self._check_existing(path, NodeKind.FILE):
            report.skipped_count += 1
            self.logger.debug(f"File exists, skipping: {path}")
            return

        try:
            # Exclusive create: an entry appearing in the meantime is never truncated
            path.touch(exist_ok=False)
        except OSError as e:
            raise FilesystemError(
                f"Failed to create file {path}: {e}",
                path=path,
                operation="create",
            ) from e

        report.created.append(CreatedEntry(path=path, kind=NodeKind.FILE))
        self.logger.info(f"File created: {path}")
