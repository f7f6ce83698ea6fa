#!/usr/bin/env python3

"""
ghri - Install command-line tools from GitHub releases
Features:
- Release and asset selection by version, glob filters or the running platform
- Side-by-side versions with a 'current' symlink per package
- External links that follow the current version or stay pinned to one
- Relocatable install root: every stored path and symlink is relative
"""

__version__ = "0.1.0"

from .core.manager import PackageManager
from .core.operations import install_package, link_package, list_packages, remove_package
from .utils.cache import clear_cache, get_cache_info
from .cli.cli import run_cli
