#!/usr/bin/env python3

import json
import os
from typing import List, Optional, Tuple

from ..errors import GhriError, NotInstalled
from .fs import Filesystem
from .models import PackageMeta, Release, sort_releases
from .versions import read_current

META_FILE = "meta.json"


def meta_path(package_dir: str) -> str:
    return os.path.join(package_dir, META_FILE)


def load(package_dir: str, fs: Optional[Filesystem] = None) -> PackageMeta:
    """Load the descriptor of the package living in package_dir"""
    fs = fs or Filesystem()
    path = meta_path(package_dir)
    if not fs.exists(path):
        name = "/".join(os.path.normpath(package_dir).split(os.sep)[-2:])
        raise NotInstalled(name)

    try:
        data = json.loads(fs.read_text(path))
        meta = PackageMeta.from_dict(data)
    except (ValueError, KeyError, TypeError) as e:
        raise GhriError(f"Corrupt metadata file {path}: {e}")

    # Fall back to the 'current' symlink when the field was never written
    if not meta.current_version.strip():
        meta.current_version = read_current(package_dir, fs) or ""

    return meta


def save(package_dir: str, meta: PackageMeta, fs: Optional[Filesystem] = None) -> None:
    """Persist the descriptor; readers never see a partially written file"""
    fs = fs or Filesystem()
    fs.make_dirs(package_dir)
    content = json.dumps(meta.to_dict(), indent=2) + "\n"
    fs.write_atomic(meta_path(package_dir), content)


def refresh_releases(meta: PackageMeta, releases: List[Release], updated_at: str) -> bool:
    """Replace the release list and timestamp, leaving every other field alone.

    Returns True when the stored release list actually changed.
    """
    fresh = sort_releases(list(releases))
    changed = [r.to_dict() for r in fresh] != [r.to_dict() for r in meta.releases]
    meta.releases = fresh
    if updated_at:
        meta.updated_at = updated_at
    return changed


def find_all(root: str, fs: Optional[Filesystem] = None) -> List[Tuple[str, PackageMeta]]:
    """Every installed package under root as (package_dir, descriptor)"""
    fs = fs or Filesystem()
    packages = []
    if not fs.is_dir(root):
        return packages

    for owner in fs.list_dir(root):
        owner_dir = os.path.join(root, owner)
        if owner.startswith(".") or not fs.is_dir(owner_dir):
            continue
        for repo in fs.list_dir(owner_dir):
            package_dir = os.path.join(owner_dir, repo)
            if fs.exists(meta_path(package_dir)):
                packages.append((package_dir, load(package_dir, fs)))

    packages.sort(key=lambda p: p[1].name)
    return packages
