"""Shared fixtures for Apothesis tests."""

import argparse
import io
import struct

import pytest
from rich.console import Console

from apothesis_config import ConfigManager
from cancellation import CancellationController
from console_ui import ConsoleUI


def build_pe_bytes(machine=0x014C, magic=0x10B, lfanew=64, optional_size=94, trailer=b""):
    """Build a minimal PE image header: DOS header, NT headers, optional header."""
    dos = b"MZ" + b"\0" * 58 + struct.pack("<i", lfanew)
    padding = b"\0" * max(lfanew - len(dos), 0)
    file_header = struct.pack("<HHIIIHH", machine, 1, 0, 0, 0, 224, 0x102)
    optional = struct.pack("<H", magic) + b"\0" * optional_size
    return dos + padding + b"PE\0\0" + file_header + optional + trailer


@pytest.fixture
def pe_bytes():
    """Factory for PE header byte strings."""
    return build_pe_bytes


@pytest.fixture
def make_files(tmp_path):
    """Create files from a {relative path: bytes} mapping under a root."""

    def _make(files, root=None):
        root = root or tmp_path / "root"
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return root

    return _make


@pytest.fixture
def quiet_ui():
    """Console UI that renders into memory."""
    return ConsoleUI(console=Console(file=io.StringIO(), width=120, force_terminal=False))


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(tmp_path / "config")


@pytest.fixture
def cancellation():
    """Controller without process signal handlers."""
    return CancellationController()


@pytest.fixture
def make_args(tmp_path):
    """Build the parsed-argument namespace the application expects."""

    def _make(root, **overrides):
        values = {
            "root": str(root),
            "resume": False,
            "state": tmp_path / "state.xml",
            "skip": False,
            "destination_root": None,
            "classifier": "digest",
            "hash": None,
            "verbose": False,
        }
        values.update(overrides)
        return argparse.Namespace(**values)

    return _make
