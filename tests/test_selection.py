"""Unit tests for quarantine selection rules."""

import os

import pytest

from path_tree import Digest, PathTree, Signature
from selection import KeepFirstPerDigestSelection, MatchAllSelection


@pytest.fixture
def tree(tmp_path):
    return PathTree(tmp_path)


def make_record(tree, name, classification):
    record = tree.insert_file(os.path.join(tree.root_path, name))
    record.classification = classification
    return record


class TestMatchAllSelection:
    """Test signature match selection."""

    def test_selects_only_matches(self, tree):
        selection = MatchAllSelection()
        exe = make_record(tree, "a.exe", Signature(True))
        txt = make_record(tree, "b.txt", Signature(False))
        dll = make_record(tree, "c.dll", Signature(True))

        for record in (exe, txt, dll):
            selection.add(record)

        assert selection.select() == [exe, dll]

    def test_ignores_pending_records(self, tree):
        selection = MatchAllSelection()
        selection.add(make_record(tree, "p", None))
        assert selection.select() == []


class TestKeepFirstPerDigestSelection:
    """Test duplicate selection keeping the first file per digest."""

    def test_first_member_is_retained(self, tree):
        selection = KeepFirstPerDigestSelection()
        a = make_record(tree, "a", Digest(b"\x01"))
        b = make_record(tree, "b", Digest(b"\x01"))
        c = make_record(tree, "c", Digest(b"\x01"))
        d = make_record(tree, "d", Digest(b"\x02"))

        for record in (a, b, c, d):
            selection.add(record)

        assert selection.select() == [b, c]
        assert selection.duplicate_groups() == [[a, b, c]]

    def test_unique_files_select_nothing(self, tree):
        selection = KeepFirstPerDigestSelection()
        selection.add(make_record(tree, "a", Digest(b"\x01")))
        selection.add(make_record(tree, "b", Digest(b"\x02")))
        assert selection.select() == []

    def test_groups_in_first_seen_order(self, tree):
        selection = KeepFirstPerDigestSelection()
        records = [
            make_record(tree, "x1", Digest(b"\x0a")),
            make_record(tree, "y1", Digest(b"\x0b")),
            make_record(tree, "y2", Digest(b"\x0b")),
            make_record(tree, "x2", Digest(b"\x0a")),
        ]
        for record in records:
            selection.add(record)

        assert [record.name for record in selection.select()] == ["x2", "y2"]

    def test_ignores_signature_results(self, tree):
        selection = KeepFirstPerDigestSelection()
        selection.add(make_record(tree, "a", Signature(True)))
        selection.add(make_record(tree, "b", Signature(True)))
        assert selection.select() == []
