# -*- coding: utf-8 -*-
"""
PTx Build - Version Information

Central location for all version-related constants.
Update this file when releasing new versions.
"""

# Must stay a plain literal: pyproject.toml reads it statically
__version__ = "0.3.0"

VERSION = __version__

APP_NAME = "PTx Build"
