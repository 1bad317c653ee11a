#!/usr/bin/env python3
"""
Path Tree Module

In-memory mirror of the discovered directory tree. Directories own their
children through name-keyed mappings; children keep weak references to their
parent so the full path of any node can be rebuilt without reference cycles.

Each file carries an optional fingerprint: None while the file is pending,
a Signature or Digest once it has been classified.
"""

import os
import weakref
from dataclasses import dataclass
from typing import Iterator, Optional, Union


@dataclass(frozen=True)
class Signature:
    """Binary-format match result"""

    matched: bool


@dataclass(frozen=True)
class Digest:
    """Content hash result"""

    value: bytes

    @property
    def hex(self) -> str:
        return self.value.hex().upper()


Fingerprint = Union[Signature, Digest]


def is_same_or_under(path: str, root: str) -> bool:
    """True if path equals root or lies below it (separator-aware prefix check)"""
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


class DirectoryNode:
    """One directory relative to the crawl root"""

    def __init__(self, name: str, parent: Optional["DirectoryNode"] = None):
        self.name = name
        self.children_dirs: dict[str, DirectoryNode] = {}
        self.children_files: dict[str, FileRecord] = {}
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def parent(self) -> Optional["DirectoryNode"]:
        return self._parent() if self._parent is not None else None

    def __repr__(self) -> str:
        return f"DirectoryNode({self.name!r}, dirs={len(self.children_dirs)}, files={len(self.children_files)})"


class FileRecord:
    """One discovered file and its classification state"""

    def __init__(self, name: str, parent: DirectoryNode, classification: Optional[Fingerprint] = None):
        self.name = name
        self._parent = weakref.ref(parent)
        self.classification = classification

    @property
    def parent(self) -> Optional[DirectoryNode]:
        return self._parent()

    @property
    def is_pending(self) -> bool:
        return self.classification is None

    def __repr__(self) -> str:
        return f"FileRecord({self.name!r}, classification={self.classification!r})"


class PathTree:
    """Hierarchical store of directories and files under one crawl root"""

    def __init__(self, root_path: Union[str, os.PathLike]):
        """Initialize an empty tree

        Args:
            root_path: Crawl root; made absolute, trailing separators removed
        """
        self.root_path = os.path.abspath(os.fspath(root_path))
        self.root = DirectoryNode("")

    def _normalize(self, path: str) -> str:
        path = os.fspath(path)
        if os.altsep:
            path = path.replace(os.altsep, os.sep)
        return path

    def split_path(self, path: Union[str, os.PathLike]) -> tuple[list[str], str]:
        """Split an absolute file path into directory components and file name

        Lookup and insertion both go through here so they agree on identity.

        Args:
            path: Absolute path of a file under the crawl root

        Returns:
            Tuple of (directory components relative to the root, file name)

        Raises:
            ValueError: If the path is outside the root or names no file
        """
        path = self._normalize(path)
        root = self._normalize(self.root_path)
        if not is_same_or_under(path, root):
            raise ValueError(f"Path is outside the crawl root: {path}")

        working = path[len(root) :]
        if working.startswith(os.sep):
            working = working[1:]

        file_name = os.path.basename(working)
        if not file_name:
            raise ValueError(f"Path does not name a file: {path}")

        working = working[: len(working) - len(file_name)]
        components = [component for component in working.split(os.sep) if component]
        return components, file_name

    def ensure_directory_path(self, components: list[str]) -> DirectoryNode:
        """Return the node for a directory path, creating missing segments"""
        current = self.root
        for component in components:
            if not component:
                continue
            child = current.children_dirs.get(component)
            if child is None:
                child = DirectoryNode(component, current)
                current.children_dirs[component] = child
            current = child
        return current

    def find_directory(self, components: list[str]) -> Optional[DirectoryNode]:
        current = self.root
        for component in components:
            if not component:
                continue
            current = current.children_dirs.get(component)
            if current is None:
                return None
        return current

    def contains_file(self, path: Union[str, os.PathLike]) -> bool:
        """Check whether a file path is already known"""
        components, file_name = self.split_path(path)
        directory = self.find_directory(components)
        if directory is None:
            return False
        return file_name in directory.children_files

    def insert_file(self, path: Union[str, os.PathLike]) -> FileRecord:
        """Insert a freshly discovered file as a pending record

        Any existing record with the same name is replaced, so callers check
        contains_file() first.
        """
        components, file_name = self.split_path(path)
        directory = self.ensure_directory_path(components)
        record = FileRecord(file_name, directory)
        directory.children_files[file_name] = record
        return record

    def relative_parts(self, item: Union[DirectoryNode, FileRecord]) -> list[str]:
        """Names from the root (exclusive) down to the given node or record"""
        parts: list[str] = []
        if isinstance(item, FileRecord):
            parts.append(item.name)
            node = item.parent
        else:
            node = item

        while node is not None and node.parent is not None:
            parts.append(node.name)
            node = node.parent

        parts.reverse()
        return parts

    def relative_path(self, item: Union[DirectoryNode, FileRecord]) -> str:
        parts = self.relative_parts(item)
        return os.path.join(*parts) if parts else ""

    def absolute_path(self, record: FileRecord) -> str:
        return os.path.join(self.root_path, *self.relative_parts(record))

    def iter_files(self, node: Optional[DirectoryNode] = None) -> Iterator[FileRecord]:
        """Yield every file record depth-first in insertion order"""
        stack = [node or self.root]
        while stack:
            current = stack.pop()
            yield from current.children_files.values()
            stack.extend(reversed(list(current.children_dirs.values())))

    @property
    def file_count(self) -> int:
        return sum(1 for _ in self.iter_files())

    @property
    def is_empty(self) -> bool:
        return not self.root.children_dirs and not self.root.children_files
