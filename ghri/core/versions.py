#!/usr/bin/env python3

import os
import re
from typing import List, Optional

from ..errors import GhriError
from .fs import Filesystem

CURRENT_LINK = "current"
STAGING_PREFIX = ".staging-"


def version_dir(package_dir: str, version: str) -> str:
    return os.path.join(package_dir, version)


def current_link(package_dir: str) -> str:
    return os.path.join(package_dir, CURRENT_LINK)


def staging_dir(package_dir: str, version: str) -> str:
    return os.path.join(package_dir, f"{STAGING_PREFIX}{version}")


def version_sort_key(version: str) -> List:
    return [int(u) if u.isdigit() else u.lower() for u in re.split(r"(\d+)", version)]


def is_populated(package_dir: str, version: str, fs: Optional[Filesystem] = None) -> bool:
    """A version directory counts as installed once it holds at least one entry"""
    fs = fs or Filesystem()
    path = version_dir(package_dir, version)
    return fs.is_dir(path) and not fs.is_symlink(path) and bool(fs.list_dir(path))


def installed_versions(package_dir: str, fs: Optional[Filesystem] = None) -> List[str]:
    """Version directories present on disk, newest-looking first"""
    fs = fs or Filesystem()
    if not fs.is_dir(package_dir):
        return []

    versions = []
    for item in fs.list_dir(package_dir):
        item_path = os.path.join(package_dir, item)
        if (
            item != CURRENT_LINK
            and not item.startswith(".")
            and fs.is_dir(item_path)
            and not fs.is_symlink(item_path)
        ):
            versions.append(item)

    versions.sort(key=version_sort_key, reverse=True)
    return versions


def read_current(package_dir: str, fs: Optional[Filesystem] = None) -> Optional[str]:
    """Version name the 'current' symlink points at, if any"""
    fs = fs or Filesystem()
    link = current_link(package_dir)
    if not fs.is_symlink(link):
        return None
    return os.path.basename(fs.read_link(link).rstrip("/"))


def update_current_link(package_dir: str, version: str, fs: Optional[Filesystem] = None) -> bool:
    """Point 'current' at the sibling directory named version.

    Returns False when the link already pointed there.
    """
    fs = fs or Filesystem()
    link = current_link(package_dir)
    if fs.lexists(link):
        if not fs.is_symlink(link):
            raise GhriError(f"'{link}' exists but is not a symlink")
        if os.path.normpath(fs.read_link(link)) == version:
            return False

    fs.symlink(version, link)
    return True


def remove_version_dir(package_dir: str, version: str, fs: Optional[Filesystem] = None) -> bool:
    fs = fs or Filesystem()
    path = version_dir(package_dir, version)
    if not fs.lexists(path):
        return False
    fs.remove_tree(path)
    return True
