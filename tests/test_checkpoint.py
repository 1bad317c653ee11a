"""Unit tests for checkpoint save and load."""

import hashlib
import os
import xml.etree.ElementTree as ET

import pytest

from checkpoint import CheckpointError, CheckpointStore
from classifiers import DigestClassifier, SignatureClassifier
from path_tree import Digest, PathTree, Signature


@pytest.fixture
def root(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / "state.xml"


def build_tree(root):
    tree = PathTree(root)
    done = tree.insert_file(os.path.join(root, "photos", "a.jpg"))
    done.classification = Digest(hashlib.md5(b"a").digest())
    tree.insert_file(os.path.join(root, "photos", "b.jpg"))
    tree.insert_file(os.path.join(root, "top.txt")).classification = Digest(hashlib.md5(b"t").digest())
    tree.ensure_directory_path(["empty", "nested"])
    return tree


class TestCheckpointSave:
    """Test the written document."""

    def test_document_layout(self, root, state_path):
        store = CheckpointStore(state_path, DigestClassifier())
        store.save(build_tree(root))

        document = ET.parse(state_path).getroot()
        assert document.tag == "State"
        assert document.get("Classifier") == "digest"
        assert document.get("Algorithm") == "md5"
        assert document.get("GeneratedAt")

        folders = document.findall("Folder")
        assert [folder.get("Name") for folder in folders] == ["photos"]
        files = {element.get("Name"): element.text for element in folders[0].findall("File")}
        assert files["a.jpg"] == hashlib.md5(b"a").hexdigest().upper()
        assert not files["b.jpg"]
        assert [element.get("Name") for element in document.findall("File")] == ["top.txt"]

    def test_empty_folders_are_pruned(self, root, state_path):
        store = CheckpointStore(state_path, DigestClassifier())
        store.save(build_tree(root))

        document = ET.parse(state_path).getroot()
        assert document.find(".//Folder[@Name='empty']") is None

    def test_save_replaces_previous_checkpoint(self, root, state_path):
        store = CheckpointStore(state_path, DigestClassifier())
        tree = build_tree(root)
        store.save(tree)
        tree.insert_file(os.path.join(root, "late.txt"))
        store.save(tree)

        assert store.read(root).file_count == 4
        assert not state_path.with_name("state.xml.tmp").exists()


class TestCheckpointLoad:
    """Test rebuilding a tree from a checkpoint."""

    def test_round_trip_preserves_classification(self, root, state_path):
        store = CheckpointStore(state_path, DigestClassifier())
        original = build_tree(root)
        store.save(original)

        loaded = store.read(root)

        expected = {original.absolute_path(r): r.classification for r in original.iter_files()}
        actual = {loaded.absolute_path(r): r.classification for r in loaded.iter_files()}
        assert actual == expected

    def test_pending_files_come_back_pending(self, root, state_path):
        store = CheckpointStore(state_path, DigestClassifier())
        store.save(build_tree(root))

        loaded = store.read(root)
        pending = [record.name for record in loaded.iter_files() if record.is_pending]
        assert pending == ["b.jpg"]

    def test_signature_round_trip(self, root, state_path):
        store = CheckpointStore(state_path, SignatureClassifier())
        tree = PathTree(root)
        tree.insert_file(os.path.join(root, "bin", "tool.exe")).classification = Signature(True)
        tree.insert_file(os.path.join(root, "bin", "readme")).classification = Signature(False)
        tree.insert_file(os.path.join(root, "bin", "new.dll"))
        store.save(tree)

        loaded = {record.name: record.classification for record in store.read(root).iter_files()}
        assert loaded == {"tool.exe": Signature(True), "readme": Signature(False), "new.dll": None}

    def test_missing_file_loads_nothing(self, root, state_path):
        store = CheckpointStore(state_path, DigestClassifier())
        assert not store.exists()
        assert store.load(root) is None

    def test_corrupt_file(self, root, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("<State><Folder Name='a'>")
        store = CheckpointStore(state_path, DigestClassifier())

        with pytest.raises(CheckpointError):
            store.read(root)
        assert store.load(root) is None

    def test_wrong_root_element(self, root, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("<Index />")
        with pytest.raises(CheckpointError):
            CheckpointStore(state_path, DigestClassifier()).read(root)

    def test_classifier_mismatch(self, root, state_path):
        CheckpointStore(state_path, SignatureClassifier()).save(build_tree(root))

        store = CheckpointStore(state_path, DigestClassifier())
        with pytest.raises(CheckpointError):
            store.read(root)
        assert store.load(root) is None

    def test_unsafe_names_are_skipped(self, root, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(
            '<State Classifier="digest">'
            '<Folder Name=".."><File Name="escape" /></Folder>'
            '<File Name="" />'
            '<File Name="ok.txt" />'
            "</State>"
        )

        tree = CheckpointStore(state_path, DigestClassifier()).read(root)
        assert [record.name for record in tree.iter_files()] == ["ok.txt"]
