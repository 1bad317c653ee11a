#!/usr/bin/env python3
"""
File Classification Module

Pluggable classification strategies that turn a file's bytes into a
fingerprint. Exactly one strategy is used per run:

- SignatureClassifier: PE executable header detection (match / no match)
- DigestClassifier: streaming content hash for duplicate grouping

Each strategy also knows how to store its fingerprint in a checkpoint element
and which selection rule applies to its results.
"""

import hashlib
import pathlib
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

import xxhash

from path_tree import Digest, Fingerprint, FileRecord, Signature
from pe_inspector import is_valid_pe
from selection import KeepFirstPerDigestSelection, MatchAllSelection, Selection

HASH_ALGORITHMS = ("md5", "sha256", "xxhash64")


class Classifier(ABC):
    """Strategy computing a fingerprint from file content"""

    kind: str = ""

    @abstractmethod
    def classify(self, stream: BinaryIO) -> Fingerprint:
        """Classify an open binary stream"""

    def classify_file(self, file_path: pathlib.Path) -> Fingerprint:
        """Open and classify a file

        Raises:
            OSError: If the file cannot be opened or read
        """
        with pathlib.Path(file_path).open("rb") as f:
            return self.classify(f)

    @abstractmethod
    def create_selection(self) -> Selection:
        """Selection rule matching this classifier's results"""

    @abstractmethod
    def write_payload(self, element: ET.Element, record: FileRecord):
        """Store the record's fingerprint on its checkpoint element"""

    @abstractmethod
    def read_payload(self, element: ET.Element) -> Optional[Fingerprint]:
        """Read a fingerprint back from a checkpoint element, None if pending"""

    def state_attributes(self) -> dict[str, str]:
        """Attributes identifying this classifier on the checkpoint root"""
        return {"Classifier": self.kind}

    def describe(self) -> str:
        return self.kind


class SignatureClassifier(Classifier):
    """Detects files carrying a valid PE executable header"""

    kind = "signature"

    def classify(self, stream: BinaryIO) -> Fingerprint:
        return Signature(is_valid_pe(stream))

    def create_selection(self) -> Selection:
        return MatchAllSelection()

    def write_payload(self, element: ET.Element, record: FileRecord):
        fingerprint = record.classification
        inspected = isinstance(fingerprint, Signature)
        element.set("Inspected", str(inspected))
        element.set("HasPEHeader", str(inspected and fingerprint.matched))

    def read_payload(self, element: ET.Element) -> Optional[Fingerprint]:
        if not _parse_bool(element.get("Inspected")):
            return None
        return Signature(_parse_bool(element.get("HasPEHeader")))


class DigestClassifier(Classifier):
    """Streams whole files through a hash function"""

    kind = "digest"

    def __init__(self, hash_algorithm: str = "md5", chunk_size: int = 65536):
        """Initialize digest classifier

        Args:
            hash_algorithm: Hash algorithm to use ('md5', 'sha256', or 'xxhash64')
            chunk_size: Chunk size for streaming hash calculation
        """
        self.hash_algorithm = hash_algorithm.lower()
        self.chunk_size = chunk_size

        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError("Hash algorithm must be 'md5', 'sha256', or 'xxhash64'")

        if self.hash_algorithm == "md5":
            self._hash_func = hashlib.md5
        elif self.hash_algorithm == "sha256":
            self._hash_func = hashlib.sha256
        else:
            self._hash_func = xxhash.xxh64

        self.digest_size = self._hash_func().digest_size

    def classify(self, stream: BinaryIO) -> Fingerprint:
        hash_obj = self._hash_func()
        while chunk := stream.read(self.chunk_size):
            hash_obj.update(chunk)
        return Digest(hash_obj.digest())

    def create_selection(self) -> Selection:
        return KeepFirstPerDigestSelection()

    def write_payload(self, element: ET.Element, record: FileRecord):
        if isinstance(record.classification, Digest):
            element.text = record.classification.hex

    def read_payload(self, element: ET.Element) -> Optional[Fingerprint]:
        text = (element.text or "").strip()
        if not text:
            return None
        try:
            value = bytes.fromhex(text)
        except ValueError:
            return None
        # A digest of the wrong width came from another algorithm; rehash it
        if len(value) != self.digest_size:
            return None
        return Digest(value)

    def state_attributes(self) -> dict[str, str]:
        return {"Classifier": self.kind, "Algorithm": self.hash_algorithm}

    def describe(self) -> str:
        return f"{self.kind} ({self.hash_algorithm})"


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def create_classifier(kind: str, hash_algorithm: str = "md5", chunk_size: int = 65536) -> Classifier:
    """Build the classifier for a kind name ('signature' or 'digest')"""
    if kind == SignatureClassifier.kind:
        return SignatureClassifier()
    if kind == DigestClassifier.kind:
        return DigestClassifier(hash_algorithm=hash_algorithm, chunk_size=chunk_size)
    raise ValueError(f"Unknown classifier: {kind}")
