"""Version directories and the 'current' pointer."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from ghri.core import versions
from ghri.errors import GhriError


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    path = tmp_path / "acme" / "tool"
    path.mkdir(parents=True)
    return path


class TestCurrentLink:
    def test_target_is_sibling_name(self, package_dir: Path):
        (package_dir / "v1").mkdir()
        assert versions.update_current_link(str(package_dir), "v1") is True
        assert os.readlink(package_dir / "current") == "v1"
        assert versions.read_current(str(package_dir)) == "v1"

    def test_unchanged_link(self, package_dir: Path):
        versions.update_current_link(str(package_dir), "v1")
        assert versions.update_current_link(str(package_dir), "v1") is False

    def test_repoint(self, package_dir: Path):
        versions.update_current_link(str(package_dir), "v1")
        versions.update_current_link(str(package_dir), "v2")
        assert os.readlink(package_dir / "current") == "v2"
        assert sorted(os.listdir(package_dir)) == ["current"]

    def test_refuses_to_replace_a_directory(self, package_dir: Path):
        (package_dir / "current").mkdir()
        with pytest.raises(GhriError, match="not a symlink"):
            versions.update_current_link(str(package_dir), "v1")

    def test_no_current(self, package_dir: Path):
        assert versions.read_current(str(package_dir)) is None


class TestInstalledVersions:
    def test_skips_current_hidden_and_files(self, package_dir: Path):
        for name in ("v1.9.0", "v1.10.0", ".staging-v2.0.0"):
            (package_dir / name).mkdir()
        (package_dir / "meta.json").write_text("{}")
        os.symlink("v1.10.0", package_dir / "current")

        assert versions.installed_versions(str(package_dir)) == ["v1.10.0", "v1.9.0"]

    def test_missing_package_dir(self, tmp_path: Path):
        assert versions.installed_versions(str(tmp_path / "missing")) == []

    def test_empty_version_dir_is_not_populated(self, package_dir: Path):
        (package_dir / "v1").mkdir()
        assert not versions.is_populated(str(package_dir), "v1")
        (package_dir / "v1" / "tool").write_text("x")
        assert versions.is_populated(str(package_dir), "v1")

    def test_remove_version_dir(self, package_dir: Path):
        (package_dir / "v1" / "bin").mkdir(parents=True)
        assert versions.remove_version_dir(str(package_dir), "v1") is True
        assert versions.remove_version_dir(str(package_dir), "v1") is False
