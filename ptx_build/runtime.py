# -*- coding: utf-8 -*-
"""
Runtime utilities for locating the external toolchain.

A tool name containing a path separator is used as given; any other
name is looked up on PATH.
"""

import os
import shutil
from typing import Optional


def _is_executable(filepath: str) -> bool:
    return os.path.isfile(filepath) and os.access(filepath, os.X_OK)


def find_tool(name: str) -> Optional[str]:
    """Find an external tool executable.

    Args:
        name: Tool name (e.g. "sjasmplus") or an explicit path to it

    Returns:
        Path to the executable, or None if not found
    """
    # Explicit path given (e.g. via --sjasmplus or $SJASMPLUS)
    if os.sep in name or (os.altsep and os.altsep in name):
        return name if _is_executable(name) else None
    return shutil.which(name)
