#!/usr/bin/env python3
"""
Quarantine Selection Rules

Collects resolved file records as they are classified and derives the set of
files to relocate:

- MatchAllSelection: every file whose signature matched
- KeepFirstPerDigestSelection: every duplicate except the first file seen
  for each digest (first = bucket insertion order, i.e. classification order)
"""

from abc import ABC, abstractmethod

from path_tree import Digest, FileRecord, Signature


class Selection(ABC):
    """Accumulates resolved records and picks the ones to relocate"""

    @abstractmethod
    def add(self, record: FileRecord):
        """Feed one resolved record"""

    @abstractmethod
    def select(self) -> list[FileRecord]:
        """Records to relocate, in relocation order"""


class MatchAllSelection(Selection):
    """Relocates every positively classified file"""

    def __init__(self):
        self._matches: list[FileRecord] = []

    def add(self, record: FileRecord):
        if isinstance(record.classification, Signature) and record.classification.matched:
            self._matches.append(record)

    def select(self) -> list[FileRecord]:
        return list(self._matches)


class KeepFirstPerDigestSelection(Selection):
    """Groups files by digest and relocates all but one per group"""

    def __init__(self):
        self._buckets: dict[bytes, list[FileRecord]] = {}

    def add(self, record: FileRecord):
        if not isinstance(record.classification, Digest):
            return
        self._buckets.setdefault(record.classification.value, []).append(record)

    def duplicate_groups(self) -> list[list[FileRecord]]:
        """Buckets with more than one member, in bucket insertion order"""
        return [bucket for bucket in self._buckets.values() if len(bucket) > 1]

    def select(self) -> list[FileRecord]:
        selected: list[FileRecord] = []
        for bucket in self.duplicate_groups():
            # The first member stays in place as the retained original
            selected.extend(bucket[1:])
        return selected
