"""Link rules against a hand-built package directory."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from ghri.core.fs import Filesystem
from ghri.core.links import (
    DRIFTED,
    FAILED,
    MISSING,
    REMOVED,
    SKIPPED,
    VALID,
    LinkRegistry,
    parse_source_spec,
)
from ghri.core.models import LinkRule, PackageMeta
from ghri.errors import DestinationConflict, FilesystemError, LinkRuleNotFound, PathNotFound, UsageError


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    path = tmp_path / "root" / "acme" / "tool"
    (path / "v1" / "bin").mkdir(parents=True)
    (path / "v1" / "bin" / "tool").write_text("v1")
    (path / "v1" / "README.md").write_text("v1")
    (path / "v2").mkdir()
    (path / "v2" / "tool").write_text("v2")
    os.symlink("v2", path / "current")
    return path


@pytest.fixture
def dest_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


class BrokenFilesystem(Filesystem):
    """Fails every symlink change below one directory"""

    def __init__(self, broken_dir: Path):
        self.broken_dir = str(broken_dir)

    def symlink(self, target: str, link_path: str) -> None:
        if link_path.startswith(self.broken_dir):
            raise FilesystemError(f"Failed to create symlink {link_path}: Permission denied")
        super().symlink(target, link_path)

    def remove_symlink(self, path: str) -> None:
        if path.startswith(self.broken_dir):
            raise FilesystemError(f"Failed to remove symlink {path}: Permission denied")
        super().remove_symlink(path)


@pytest.fixture
def registry(package_dir: Path) -> LinkRegistry:
    return LinkRegistry(str(package_dir), PackageMeta(name="acme/tool", current_version="v2"))


class TestSourceSpec:
    def test_version_and_path(self):
        spec = parse_source_spec("acme/tool@v1:bin/tool")
        assert (spec.name, spec.version, spec.path) == ("acme/tool", "v1", "bin/tool")
        assert str(spec) == "acme/tool@v1:bin/tool"

    def test_bare_name(self):
        spec = parse_source_spec("acme/tool")
        assert spec.version is None and spec.path is None

    @pytest.mark.parametrize("text", ["acme/tool@", "acme/tool:", "tool@v1"])
    def test_malformed(self, text):
        with pytest.raises(UsageError):
            parse_source_spec(text)


class TestCreate:
    def test_default_link_to_single_entry(self, registry: LinkRegistry, dest_dir: Path, package_dir: Path):
        rule = registry.create(str(dest_dir / "tool"))

        link = dest_dir / "tool"
        assert not os.path.isabs(os.readlink(link))
        assert link.read_text() == "v2"
        assert rule.version is None
        assert not os.path.isabs(rule.dest)
        assert os.path.normpath(os.path.join(package_dir, rule.dest)) == str(link)

    def test_link_into_directory_uses_source_name(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir), version="v1", path="bin/tool")
        assert (dest_dir / "tool").read_text() == "v1"
        assert registry.meta.versioned_links[0].version == "v1"

    def test_multiple_entries_link_the_version_dir(self, registry: LinkRegistry, dest_dir: Path, package_dir: Path):
        registry.create(str(dest_dir / "tool-v1"), version="v1")
        assert os.path.realpath(dest_dir / "tool-v1") == os.path.realpath(package_dir / "v1")

    def test_one_rule_per_destination(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "tool"))
        registry.create(str(dest_dir / "tool"), version="v1", path="bin/tool")

        assert registry.meta.links == []
        assert len(registry.meta.versioned_links) == 1
        assert (dest_dir / "tool").read_text() == "v1"

    def test_versioned_to_default_move(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "tool"), version="v1", path="bin/tool")
        registry.create(str(dest_dir / "tool"))

        assert registry.meta.versioned_links == []
        assert len(registry.meta.links) == 1
        assert (dest_dir / "tool").read_text() == "v2"

    def test_move_over_symlink_repointed_by_the_user(self, registry: LinkRegistry, dest_dir: Path, tmp_path: Path):
        registry.create(str(dest_dir / "tool"))
        (tmp_path / "other").write_text("other")
        os.unlink(dest_dir / "tool")
        os.symlink(tmp_path / "other", dest_dir / "tool")

        registry.create(str(dest_dir / "tool"), version="v1", path="bin/tool")

        assert registry.meta.links == []
        assert [r.version for r in registry.meta.versioned_links] == ["v1"]
        assert (dest_dir / "tool").read_text() == "v1"
        assert (tmp_path / "other").read_text() == "other"

    def test_failed_move_keeps_existing_rule(self, package_dir: Path, dest_dir: Path):
        meta = PackageMeta(name="acme/tool", current_version="v2")
        LinkRegistry(str(package_dir), meta).create(str(dest_dir / "tool"))

        broken = LinkRegistry(str(package_dir), meta, BrokenFilesystem(dest_dir))
        with pytest.raises(FilesystemError):
            broken.create(str(dest_dir / "tool"), version="v1", path="bin/tool")

        assert len(meta.links) == 1
        assert meta.versioned_links == []
        assert (dest_dir / "tool").read_text() == "v2"

    def test_source_path_is_normalised(self, registry: LinkRegistry, dest_dir: Path):
        rule = registry.create(str(dest_dir / "tool"), version="v1", path="./bin//tool")
        assert rule.path == "bin/tool"

    def test_foreign_file_is_a_conflict(self, registry: LinkRegistry, dest_dir: Path):
        (dest_dir / "tool").write_text("mine")
        with pytest.raises(DestinationConflict):
            registry.create(str(dest_dir / "tool"))
        assert (dest_dir / "tool").read_text() == "mine"
        assert registry.meta.all_rules() == []

    def test_foreign_symlink_is_a_conflict(self, registry: LinkRegistry, dest_dir: Path, tmp_path: Path):
        (tmp_path / "elsewhere").write_text("x")
        os.symlink(tmp_path / "elsewhere", dest_dir / "tool")
        with pytest.raises(DestinationConflict):
            registry.create(str(dest_dir / "tool"))

    def test_missing_path(self, registry: LinkRegistry, dest_dir: Path):
        with pytest.raises(PathNotFound):
            registry.create(str(dest_dir / "tool"), path="bin/nope")

    def test_path_cannot_escape_version_dir(self, registry: LinkRegistry, dest_dir: Path):
        with pytest.raises(PathNotFound):
            registry.create(str(dest_dir / "tool"), version="v1", path="../v2/tool")

    def test_missing_destination_parent(self, registry: LinkRegistry, tmp_path: Path):
        with pytest.raises(PathNotFound):
            registry.create(str(tmp_path / "no" / "such" / "tool"))


class TestRelinkAndPurge:
    def test_relink_follows_current(self, registry: LinkRegistry, dest_dir: Path, package_dir: Path):
        registry.create(str(dest_dir / "tool"), path="tool")
        registry.create(str(dest_dir / "pinned"), version="v1", path="bin/tool")

        (package_dir / "v1" / "tool").write_text("v1 top")
        os.unlink(package_dir / "current")
        os.symlink("v1", package_dir / "current")
        reports = registry.relink_defaults()

        assert [r.status for r in reports] == [VALID]
        assert (dest_dir / "tool").read_text() == "v1 top"
        assert (dest_dir / "pinned").read_text() == "v1"

    def test_purge_only_touches_that_version(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "tool"))
        registry.create(str(dest_dir / "pinned"), version="v1", path="bin/tool")
        registry.create(str(dest_dir / "pinned2"), version="v2")

        reports = registry.purge_version("v1")

        assert [r.status for r in reports] == [REMOVED]
        assert not os.path.lexists(dest_dir / "pinned")
        assert (dest_dir / "tool").exists()
        assert (dest_dir / "pinned2").exists()
        assert [r.version for r in registry.meta.versioned_links] == ["v2"]


class TestUnlink:
    def test_requires_destination_or_all(self, registry: LinkRegistry):
        with pytest.raises(UsageError):
            registry.unlink()

    def test_unknown_destination(self, registry: LinkRegistry, dest_dir: Path):
        with pytest.raises(LinkRuleNotFound):
            registry.unlink(dest=str(dest_dir / "tool"))

    def test_symlink_already_gone(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "tool"))
        os.unlink(dest_dir / "tool")

        reports = registry.unlink(dest=str(dest_dir / "tool"))
        assert [r.status for r in reports] == [MISSING]
        assert registry.meta.all_rules() == []

    def test_replaced_destination_is_left_alone(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "tool"))
        os.unlink(dest_dir / "tool")
        (dest_dir / "tool").write_text("user file")

        reports = registry.unlink(dest=str(dest_dir / "tool"))
        assert [r.status for r in reports] == [SKIPPED]
        assert (dest_dir / "tool").read_text() == "user file"

    def test_all_with_path_filter(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "a"), version="v1", path="bin/tool")
        registry.create(str(dest_dir / "b"), version="v1", path="README.md")

        registry.unlink(path="bin/tool", remove_all=True)
        assert [r.path for r in registry.meta.all_rules()] == ["README.md"]
        assert os.path.lexists(dest_dir / "b")

    def test_path_filter_ignores_spelling(self, registry: LinkRegistry, dest_dir: Path):
        registry.meta.versioned_links.append(LinkRule(dest="../../../bin/a", version="v1", path="bin/tool"))
        registry.unlink(path="./bin/tool", remove_all=True)
        assert registry.meta.all_rules() == []

    def test_symlink_that_cannot_be_removed_keeps_its_rule(self, package_dir: Path, dest_dir: Path):
        meta = PackageMeta(name="acme/tool", current_version="v2")
        LinkRegistry(str(package_dir), meta).create(str(dest_dir / "tool"))

        broken = LinkRegistry(str(package_dir), meta, BrokenFilesystem(dest_dir))
        reports = broken.unlink(dest=str(dest_dir / "tool"))

        assert [r.status for r in reports] == [FAILED]
        assert "Permission denied" in reports[0].actual
        assert len(meta.links) == 1
        assert os.path.lexists(dest_dir / "tool")

    def test_directory_destination(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir))
        registry.unlink(dest=str(dest_dir))
        assert registry.meta.all_rules() == []
        assert os.listdir(dest_dir) == []


class TestCheck:
    def test_states(self, registry: LinkRegistry, dest_dir: Path):
        registry.create(str(dest_dir / "ok"))
        registry.create(str(dest_dir / "gone"))
        registry.create(str(dest_dir / "moved"))
        os.unlink(dest_dir / "gone")
        os.unlink(dest_dir / "moved")
        (dest_dir / "moved").write_text("not a link")

        statuses = {os.path.basename(r.dest): r.status for r in registry.check_all()}
        assert statuses == {"ok": VALID, "gone": MISSING, "moved": DRIFTED}

    def test_rule_pointing_at_removed_version(self, registry: LinkRegistry, dest_dir: Path):
        registry.meta.versioned_links.append(LinkRule(dest="../../../bin/x", version="v9"))
        report = registry.check_all()[0]
        assert report.status == MISSING
        assert report.expected is None
