#!/usr/bin/env python3
"""
Auxiliary utility functions for Apothesis

Display helpers shared by the console layer and the application.
"""

import os
import pathlib
from typing import Optional


def format_path_for_display(path: str, home_path: Optional[str] = None) -> str:
    """Format file path for display by replacing home directory with ~

    Args:
        path: File path to format
        home_path: Home directory path (defaults to platform home)

    Returns:
        Path with home directory replaced by ~ if applicable
    """
    if home_path is None:
        home_path = str(pathlib.Path.home())

    home = home_path.rstrip(os.sep) or home_path
    if path == home or path.startswith(home + os.sep):
        return "~" + path[len(home) :]
    return path


def trim_start(text: str, max_length: int) -> str:
    """Trim the beginning of a long string so its end stays visible

    Args:
        text: Text to trim (typically a message ending with a file path)
        max_length: Maximum length of the result

    Returns:
        The text itself, or "..." followed by its last characters
    """
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[-max_length:]
    return "..." + text[-(max_length - 3) :]


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as e.g. "42.0s", "3m 05s" or "2h 10m"

    Args:
        seconds: Duration in seconds

    Returns:
        Short human-readable duration
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"
