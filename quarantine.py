#!/usr/bin/env python3
"""
Quarantine Mover Module

Relocates selected files under a quarantine root, mirroring each file's path
relative to the crawl root. Files are renamed into place: never copied then
deleted, never written over an existing destination file.
"""

import logging
import os
import pathlib
from dataclasses import dataclass, field
from typing import Callable, Optional

from path_tree import FileRecord, PathTree

logger = logging.getLogger(__name__)


@dataclass
class FileMove:
    """A planned relocation of one file"""

    record: FileRecord
    source_path: pathlib.Path
    target_path: pathlib.Path
    identifier: str = ""  # Relative path, used for reporting

    def __post_init__(self):
        if not self.identifier:
            self.identifier = self.source_path.name


@dataclass
class MoveResult:
    """Result of a single relocation"""

    move: FileMove
    success: bool
    skipped: bool = False
    error_message: Optional[str] = None


@dataclass
class RelocationResult:
    """Outcome of relocating a selection"""

    moved: list[MoveResult] = field(default_factory=list)
    skipped: list[MoveResult] = field(default_factory=list)
    failed: list[MoveResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def processed_count(self) -> int:
        return len(self.moved) + len(self.skipped) + len(self.failed)


class QuarantineMover:
    """Moves selected files from the crawl root into the quarantine root"""

    def __init__(
        self,
        tree: PathTree,
        destination_root: pathlib.Path,
        shutdown_requested: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        self.tree = tree
        self.destination_root = pathlib.Path(destination_root)
        self.shutdown_requested = shutdown_requested
        self.progress_callback = progress_callback

    def plan_move(self, record: FileRecord) -> FileMove:
        """Create the source -> target mapping for a record"""
        parts = self.tree.relative_parts(record)
        return FileMove(
            record=record,
            source_path=pathlib.Path(self.tree.root_path, *parts),
            target_path=self.destination_root.joinpath(*parts),
            identifier=str(pathlib.PurePath(*parts)),
        )

    def execute_move(self, move: FileMove) -> MoveResult:
        """Rename one file into the quarantine tree"""
        # The checkpoint can be stale relative to the disk
        if not move.source_path.is_file():
            logger.info("Skipping file, source no longer present: %s", move.source_path)
            return MoveResult(move=move, success=False, skipped=True, error_message="source no longer present")

        # lexists: a dangling symlink at the target still counts as occupied.
        # A target created between this check and the rename is not detected;
        # on POSIX rename would replace it, on Windows it fails below.
        if os.path.lexists(move.target_path):
            logger.warning("Not moving %s, destination already exists: %s", move.source_path, move.target_path)
            return MoveResult(move=move, success=False, error_message="destination already exists")

        try:
            move.target_path.parent.mkdir(parents=True, exist_ok=True)
            move.source_path.rename(move.target_path)
        except OSError as e:
            logger.warning("Unable to move %s: %s", move.source_path, e)
            return MoveResult(move=move, success=False, error_message=str(e))

        return MoveResult(move=move, success=True)

    def relocate(self, records: list[FileRecord]) -> RelocationResult:
        """Move every record in order, stopping early on cancellation"""
        result = RelocationResult()

        for i, record in enumerate(records):
            if self.shutdown_requested and self.shutdown_requested():
                result.cancelled = True
                break

            move = self.plan_move(record)
            if self.progress_callback:
                self.progress_callback(f"Moving ({i + 1}/{len(records)}) {move.source_path}")

            outcome = self.execute_move(move)
            if outcome.success:
                result.moved.append(outcome)
            elif outcome.skipped:
                result.skipped.append(outcome)
            else:
                result.failed.append(outcome)

        return result
