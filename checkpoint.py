#!/usr/bin/env python3
"""
Checkpoint Persistence Module

Saves a PathTree to a tree-shaped XML document and rebuilds it on resume.

Layout:
    <State GeneratedAt="..." Classifier="digest" Algorithm="md5">
      <Folder Name="photos">
        <File Name="a.jpg">9E107D9D372BB6826BD81D3542A419D6</File>
        <File Name="b.jpg" />
      </Folder>
    </State>

Folders without any file below them are pruned from the document. Files are
always written; a file without payload is pending and gets re-queued on load.
The classifier owns the per-file payload format.
"""

import logging
import os
import pathlib
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional

from classifiers import Classifier
from path_tree import DirectoryNode, FileRecord, PathTree

logger = logging.getLogger(__name__)

STATE_TAG = "State"
FOLDER_TAG = "Folder"
FILE_TAG = "File"


class CheckpointError(Exception):
    """Raised when a checkpoint document cannot be used"""


class CheckpointStore:
    """Reads and writes the checkpoint file for one crawl root"""

    def __init__(self, state_path: pathlib.Path, classifier: Classifier):
        """Initialize checkpoint store

        Args:
            state_path: Location of the checkpoint document
            classifier: Classifier whose payload format is written and read
        """
        self.state_path = pathlib.Path(state_path)
        self.classifier = classifier

    def exists(self) -> bool:
        return self.state_path.is_file()

    # -- saving --------------------------------------------------------------

    def build_document(self, tree: PathTree) -> ET.ElementTree:
        root_element = ET.Element(STATE_TAG)
        root_element.set("GeneratedAt", datetime.now(timezone.utc).isoformat())
        for key, value in self.classifier.state_attributes().items():
            root_element.set(key, value)

        self._add_children(tree.root, root_element)
        ET.indent(root_element)
        return ET.ElementTree(root_element)

    def _add_children(self, directory: DirectoryNode, parent_element: ET.Element):
        for child in directory.children_dirs.values():
            folder_element = ET.Element(FOLDER_TAG)
            self._add_children(child, folder_element)

            # Nothing below this folder was discovered, no point persisting it
            if len(folder_element) == 0:
                continue

            folder_element.set("Name", child.name)
            parent_element.append(folder_element)

        for record in directory.children_files.values():
            file_element = ET.SubElement(parent_element, FILE_TAG)
            file_element.set("Name", record.name)
            self.classifier.write_payload(file_element, record)

    def save(self, tree: PathTree):
        """Write the checkpoint atomically

        The document goes to a sibling temporary file first and replaces the
        previous checkpoint only once it is complete.

        Raises:
            OSError: If the checkpoint cannot be written
        """
        document = self.build_document(tree)
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.state_path.with_name(self.state_path.name + ".tmp")
        with temp_path.open("wb") as f:
            document.write(f, encoding="utf-8", xml_declaration=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, self.state_path)
        logger.debug("Checkpoint saved to %s", self.state_path)

    # -- loading -------------------------------------------------------------

    def read(self, root_path: str) -> PathTree:
        """Parse the checkpoint into a new tree rooted at root_path

        Raises:
            CheckpointError: If the document is unreadable, malformed, or
                was written by a different classifier
        """
        try:
            document = ET.parse(self.state_path)
        except (ET.ParseError, OSError) as e:
            raise CheckpointError(f"Cannot read checkpoint {self.state_path}: {e}") from e

        root_element = document.getroot()
        if root_element.tag != STATE_TAG:
            raise CheckpointError(f"Unexpected root element <{root_element.tag}>")

        kind = root_element.get("Classifier")
        if kind is not None and kind != self.classifier.kind:
            raise CheckpointError(f"Checkpoint was written by the '{kind}' classifier, not '{self.classifier.kind}'")

        tree = PathTree(root_path)
        self._process_elements(tree.root, root_element)
        return tree

    def _process_elements(self, directory: DirectoryNode, parent_element: ET.Element):
        for element in parent_element:
            if element.tag not in (FOLDER_TAG, FILE_TAG):
                continue
            name = element.get("Name")
            if not _is_safe_name(name):
                logger.warning("Ignoring checkpoint entry with invalid name: %r", name)
                continue

            if element.tag == FOLDER_TAG:
                child = directory.children_dirs.get(name)
                if child is None:
                    child = DirectoryNode(name, directory)
                    directory.children_dirs[name] = child
                self._process_elements(child, element)
            else:
                record = FileRecord(name, directory)
                record.classification = self.classifier.read_payload(element)
                directory.children_files[name] = record

    def load(self, root_path: str) -> Optional[PathTree]:
        """Load the checkpoint, treating any problem as absent state

        Returns:
            Rebuilt tree, or None if the checkpoint is missing or unusable
        """
        if not self.exists():
            return None
        try:
            return self.read(root_path)
        except CheckpointError as e:
            logger.warning("Invalid state file - restarting from clean state (%s)", e)
            return None


def _is_safe_name(name: Optional[str]) -> bool:
    if not name or name in (".", ".."):
        return False
    if os.sep in name or (os.altsep and os.altsep in name):
        return False
    return True
