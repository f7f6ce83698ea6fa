#!/usr/bin/env python3

import os
import shutil
import stat
import subprocess
import tempfile

from ..errors import ExtractionError

TAR_FLAGS = {
    ".tar.gz": "xzf",
    ".tgz": "xzf",
    ".tar.xz": "xJf",
    ".txz": "xJf",
    ".tar.bz2": "xjf",
    ".tbz": "xjf",
    ".tar": "xf",
}


def _tar_flags(archive_path: str):
    name = archive_path.lower()
    for suffix, flags in TAR_FLAGS.items():
        if name.endswith(suffix):
            return flags
    return None


def is_archive(archive_path: str) -> bool:
    return _tar_flags(archive_path) is not None or archive_path.lower().endswith(".zip")


def _move_contents(source_dir: str, destination: str) -> None:
    contents = os.listdir(source_dir)
    # A single top-level directory is unwrapped
    if len(contents) == 1 and os.path.isdir(os.path.join(source_dir, contents[0])):
        source_dir = os.path.join(source_dir, contents[0])
        contents = os.listdir(source_dir)
    for item in contents:
        shutil.move(os.path.join(source_dir, item), os.path.join(destination, item))


def extract(archive_path: str, destination: str, asset_name: str = "") -> None:
    """Unpack an asset into destination; plain files are copied as executables"""
    os.makedirs(destination, exist_ok=True)
    name = asset_name or os.path.basename(archive_path)
    flags = _tar_flags(name)

    try:
        if not is_archive(name):
            target = os.path.join(destination, name)
            shutil.copy2(archive_path, target)
            mode = os.stat(target).st_mode
            os.chmod(target, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        elif flags:
            with tempfile.TemporaryDirectory() as temp_dir:
                subprocess.run(
                    ["tar", flags, archive_path, "-C", temp_dir],
                    check=True,
                    capture_output=True,
                )
                _move_contents(temp_dir, destination)
        else:
            with tempfile.TemporaryDirectory() as temp_dir:
                subprocess.run(
                    ["unzip", "-q", archive_path, "-d", temp_dir],
                    check=True,
                    capture_output=True,
                )
                _move_contents(temp_dir, destination)
    except (OSError, subprocess.SubprocessError) as e:
        raise ExtractionError(f"Failed to extract {name}: {e}")
