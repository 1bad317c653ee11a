#!/usr/bin/env python3
"""
Incremental Crawler Module

Walks the live filesystem breadth-first and reconciles it against a PathTree:
files the tree does not know yet are inserted as pending records and handed
back to the caller. Files already present (for example from a loaded
checkpoint) are left untouched, so re-running a crawl is always safe.
"""

import collections
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from path_tree import FileRecord, PathTree, is_same_or_under

logger = logging.getLogger(__name__)


@dataclass
class CrawlResult:
    """Outcome of one reconciliation pass"""

    discovered: list[FileRecord] = field(default_factory=list)
    directories_scanned: int = 0
    skipped_directories: list[tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def discovered_count(self) -> int:
        return len(self.discovered)


class IncrementalCrawler:
    """Reconciles a PathTree with the directory tree under its root"""

    def __init__(
        self,
        tree: PathTree,
        exclude_root: Optional[str] = None,
        shutdown_requested: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        """Initialize crawler

        Args:
            tree: Tree to reconcile; its root path is where the crawl starts
            exclude_root: Directory whose subtree is never crawled (the quarantine root)
            shutdown_requested: Callable that returns True once cancellation was requested
            progress_callback: Optional callback receiving progress strings
        """
        self.tree = tree
        self.exclude_root = os.path.abspath(exclude_root) if exclude_root else None
        self.shutdown_requested = shutdown_requested
        self.progress_callback = progress_callback

    def _should_stop(self) -> bool:
        return bool(self.shutdown_requested and self.shutdown_requested())

    def _is_excluded(self, directory: str) -> bool:
        return self.exclude_root is not None and is_same_or_under(directory, self.exclude_root)

    def crawl(self) -> CrawlResult:
        """Walk the tree root breadth-first and insert unseen files

        Returns:
            CrawlResult with the newly inserted (pending) records
        """
        result = CrawlResult()
        directories = collections.deque([self.tree.root_path])

        while directories:
            if self._should_stop():
                result.cancelled = True
                break

            directory = directories.popleft()
            if self._is_excluded(directory):
                logger.debug("Skipping quarantine directory: %s", directory)
                continue

            try:
                subdirectories, files = self._list_directory(directory)
            except (PermissionError, FileNotFoundError) as e:
                logger.info("Unable to read folder '%s': %s", directory, e.strerror or e)
                result.skipped_directories.append((directory, str(e)))
                continue
            except OSError as e:
                logger.warning("Unable to enumerate folder '%s': %s", directory, e)
                result.skipped_directories.append((directory, str(e)))
                continue

            result.directories_scanned += 1
            directories.extend(subdirectories)

            for file_path in files:
                if self._should_stop():
                    result.cancelled = True
                    break

                if self.tree.contains_file(file_path):
                    continue

                record = self.tree.insert_file(file_path)
                result.discovered.append(record)

                if self.progress_callback:
                    self.progress_callback(f"New files added: {result.discovered_count:,} → {file_path}")

            if result.cancelled:
                break

        return result

    def _list_directory(self, directory: str) -> tuple[list[str], list[str]]:
        """Split a directory's entries into subdirectory and file paths

        Symbolic links are skipped so a crawl cannot loop or escape the root.
        """
        subdirectories: list[str] = []
        files: list[str] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                try:
                    if entry.is_symlink():
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        subdirectories.append(entry.path)
                    elif entry.is_file(follow_symlinks=False):
                        files.append(entry.path)
                except OSError:
                    continue  # Entry vanished or cannot be stat'ed
        return subdirectories, files
