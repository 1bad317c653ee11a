"""Unit tests for the in-memory path tree."""

import os

import pytest

from path_tree import Digest, PathTree, Signature, is_same_or_under


@pytest.fixture
def root(tmp_path):
    return str(tmp_path / "data")


class TestSplitPath:
    """Test conversion of absolute paths into tree coordinates."""

    def test_nested_file(self, root):
        tree = PathTree(root)
        components, name = tree.split_path(os.path.join(root, "a", "b", "c.txt"))
        assert components == ["a", "b"]
        assert name == "c.txt"

    def test_file_directly_under_root(self, root):
        tree = PathTree(root)
        assert tree.split_path(os.path.join(root, "x.bin")) == ([], "x.bin")

    def test_root_with_trailing_separator(self, root):
        tree = PathTree(root + os.sep)
        assert tree.root_path == root
        assert tree.split_path(os.path.join(root, "a", "f")) == (["a"], "f")

    def test_sibling_with_common_prefix_is_outside(self, root):
        tree = PathTree(root)
        with pytest.raises(ValueError):
            tree.split_path(root + "base" + os.sep + "f.txt")

    def test_path_without_file_name(self, root):
        tree = PathTree(root)
        with pytest.raises(ValueError):
            tree.split_path(os.path.join(root, "a") + os.sep)


class TestInsertAndLookup:
    """Test insertion, lookup and path reconstruction."""

    def test_contains_after_insert(self, root):
        tree = PathTree(root)
        path = os.path.join(root, "photos", "2020", "img.jpg")
        assert not tree.contains_file(path)

        record = tree.insert_file(path)

        assert tree.contains_file(path)
        assert record.is_pending
        assert tree.absolute_path(record) == path

    def test_directories_are_shared(self, root):
        tree = PathTree(root)
        first = tree.insert_file(os.path.join(root, "a", "one"))
        second = tree.insert_file(os.path.join(root, "a", "two"))

        assert first.parent is second.parent
        assert list(tree.root.children_dirs) == ["a"]

    def test_unknown_directory_is_not_contained(self, root):
        tree = PathTree(root)
        tree.insert_file(os.path.join(root, "a", "one"))
        assert not tree.contains_file(os.path.join(root, "b", "one"))
        assert not tree.contains_file(os.path.join(root, "a", "two"))

    def test_relative_parts(self, root):
        tree = PathTree(root)
        record = tree.insert_file(os.path.join(root, "x", "y", "z.dat"))
        assert tree.relative_parts(record) == ["x", "y", "z.dat"]
        assert tree.relative_parts(record.parent) == ["x", "y"]
        assert tree.relative_path(record) == os.path.join("x", "y", "z.dat")
        assert tree.relative_path(tree.root) == ""

    def test_ensure_directory_path_is_idempotent(self, root):
        tree = PathTree(root)
        node = tree.ensure_directory_path(["a", "b"])
        assert tree.ensure_directory_path(["a", "b"]) is node
        assert tree.find_directory(["a", "b"]) is node
        assert tree.find_directory(["a", "c"]) is None


class TestIteration:
    """Test traversal of file records."""

    def test_iter_files_visits_every_record(self, root):
        tree = PathTree(root)
        paths = [
            os.path.join(root, "top.txt"),
            os.path.join(root, "a", "one"),
            os.path.join(root, "a", "deep", "two"),
            os.path.join(root, "b", "three"),
        ]
        for path in paths:
            tree.insert_file(path)

        found = sorted(tree.absolute_path(record) for record in tree.iter_files())
        assert found == sorted(paths)
        assert tree.file_count == 4
        assert not tree.is_empty

    def test_empty_tree(self, root):
        tree = PathTree(root)
        assert tree.is_empty
        assert tree.file_count == 0
        assert list(tree.iter_files()) == []


class TestFingerprints:
    """Test fingerprint value types."""

    def test_digest_hex_is_uppercase(self):
        assert Digest(bytes([0xAB, 0x01])).hex == "AB01"

    def test_fingerprints_compare_by_value(self):
        assert Signature(True) == Signature(True)
        assert Digest(b"\x01") == Digest(b"\x01")
        assert Digest(b"\x01") != Digest(b"\x02")


class TestIsSameOrUnder:
    """Test the separator-aware prefix check."""

    def test_same_path(self):
        assert is_same_or_under(os.sep + "data", os.sep + "data")

    def test_child_path(self):
        assert is_same_or_under(os.path.join(os.sep + "data", "x"), os.sep + "data")

    def test_prefix_sibling(self):
        assert not is_same_or_under(os.sep + "database", os.sep + "data")
