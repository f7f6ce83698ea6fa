#!/usr/bin/env python3

"""Every filesystem mutation ghri performs goes through Filesystem.

Tests can hand a subclass to PackageManager to observe or sandbox the
mutating calls without touching the resolution logic.
"""

import os
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from typing import List

from ..errors import FilesystemError

# Leaves room for the random suffix within NAME_MAX
TEMP_NAME_LENGTH = 200


@contextmanager
def reporting(action: str, path: str):
    """Turn an OSError into a FilesystemError naming the action and path"""
    try:
        yield
    except OSError as e:
        raise FilesystemError(f"Failed to {action} {path}: {e.strerror or e}") from e


class Filesystem:
    """Thin wrapper over os/shutil for the operations ghri needs"""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def lexists(self, path: str) -> bool:
        return os.path.lexists(path)

    def is_symlink(self, path: str) -> bool:
        return os.path.islink(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def read_link(self, path: str) -> str:
        with reporting("read symlink", path):
            return os.readlink(path)

    def list_dir(self, path: str) -> List[str]:
        with reporting("list", path):
            return sorted(os.listdir(path))

    def read_text(self, path: str) -> str:
        with reporting("read", path):
            with open(path, "r", encoding="utf-8") as f:
                return f.read()

    def make_dirs(self, path: str) -> None:
        with reporting("create directory", path):
            os.makedirs(path, exist_ok=True)

    def write_atomic(self, path: str, content: str) -> None:
        """Write content to a temp file next to path and rename it into place"""
        directory = os.path.dirname(os.path.abspath(path))
        with reporting("write", path):
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(path)[:TEMP_NAME_LENGTH]}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

    def symlink(self, target: str, link_path: str) -> None:
        """Point link_path at target, replacing an existing symlink atomically"""
        directory = os.path.dirname(os.path.abspath(link_path))
        name = os.path.basename(link_path)[:TEMP_NAME_LENGTH]
        tmp_link = os.path.join(directory, f".{name}.{uuid.uuid4().hex[:8]}")
        with reporting("create symlink", link_path):
            os.symlink(target, tmp_link)
            try:
                os.replace(tmp_link, link_path)
            except BaseException:
                os.unlink(tmp_link)
                raise

    def remove_symlink(self, path: str) -> None:
        with reporting("remove symlink", path):
            os.unlink(path)

    def remove_tree(self, path: str) -> None:
        with reporting("remove", path):
            if os.path.islink(path):
                os.unlink(path)
            else:
                shutil.rmtree(path)

    def remove_dir_if_empty(self, path: str) -> bool:
        with reporting("remove directory", path):
            if os.path.isdir(path) and not os.listdir(path):
                os.rmdir(path)
                return True
        return False

    def rename(self, src: str, dst: str) -> None:
        with reporting("rename", src):
            os.rename(src, dst)
