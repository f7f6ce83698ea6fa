#!/usr/bin/env python3

"""External symlinks registered in a package's descriptor.

Every rule stores its destination relative to the package directory and
every symlink on disk points at its source through a relative path, so the
install root and the link destinations can be moved together.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from ..errors import DestinationConflict, FilesystemError, GhriError, LinkRuleNotFound, PathNotFound, UsageError
from .fs import Filesystem
from .models import LinkRule, PackageMeta, parse_repo
from .versions import read_current, version_dir

VALID = "valid"
MISSING = "missing"
DRIFTED = "drifted"

REMOVED = "removed"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class SourceSpec:
    owner: str
    repo: str
    version: Optional[str] = None
    path: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        text = self.name
        if self.version:
            text += f"@{self.version}"
        if self.path:
            text += f":{self.path}"
        return text


@dataclass
class LinkReport:
    rule: LinkRule
    dest: str
    status: str
    expected: Optional[str] = None
    actual: Optional[str] = None


def parse_source_spec(spec: str) -> SourceSpec:
    """Parse owner/repo[@version][:path]"""
    name_part, has_path, path = spec.partition(":")
    name, has_version, version = name_part.partition("@")
    if has_version and not version:
        raise UsageError(f"Missing version after '@' in {spec}")
    if has_path and not path:
        raise UsageError(f"Missing path after ':' in {spec}")
    owner, repo = parse_repo(name)
    return SourceSpec(owner, repo, version or None, normalize_path(path or None))


def normalize_path(path: Optional[str]) -> Optional[str]:
    """Source paths are compared in normalised form, so ./bin/tool equals bin/tool"""
    return os.path.normpath(path) if path else None


def is_path_under(path: str, directory: str) -> bool:
    path = os.path.normpath(path)
    directory = os.path.normpath(directory)
    return path == directory or path.startswith(directory.rstrip(os.sep) + os.sep)


def relative_link_target(link_path: str, target: str) -> str:
    """Target as seen from the directory holding the symlink"""
    return os.path.relpath(target, os.path.dirname(link_path))


def stored_dest(package_dir: str, dest: str) -> str:
    return os.path.relpath(dest, package_dir)


def absolute_dest(package_dir: str, dest: str) -> str:
    return os.path.normpath(os.path.join(package_dir, dest))


def link_points_to(link_path: str, fs: Filesystem) -> str:
    """Absolute, normalised location a symlink names, without following further links"""
    return os.path.normpath(os.path.join(os.path.dirname(link_path), fs.read_link(link_path)))


class LinkRegistry:
    """Creates, checks and removes the link rules of one package"""

    def __init__(self, package_dir: str, meta: PackageMeta, fs: Optional[Filesystem] = None):
        self.package_dir = os.path.abspath(package_dir)
        self.meta = meta
        self.fs = fs or Filesystem()

    # -- resolution -------------------------------------------------------

    def base_dir(self, version: Optional[str] = None) -> str:
        """Version directory a rule reads from; default rules go through 'current'"""
        if version is None:
            version = read_current(self.package_dir, self.fs) or self.meta.current_version
            if not version:
                raise PathNotFound("current", self.package_dir)
        base = version_dir(self.package_dir, version)
        if not self.fs.is_dir(base):
            raise PathNotFound(version, self.package_dir)
        return base

    def default_source(self, base: str) -> str:
        entries = self.fs.list_dir(base)
        if len(entries) == 1:
            return os.path.join(base, entries[0])
        return base

    def resolve_source(self, version: Optional[str] = None, path: Optional[str] = None) -> str:
        base = self.base_dir(version)
        if not path:
            return self.default_source(base)

        source = os.path.normpath(os.path.join(base, path))
        if not is_path_under(source, base) or not self.fs.lexists(source):
            raise PathNotFound(path, base)
        return source

    def resolve_destination(self, dest: str, source: str) -> str:
        dest = os.path.abspath(os.path.expanduser(dest))
        if self.fs.is_dir(dest) and not self.fs.is_symlink(dest):
            return os.path.join(dest, os.path.basename(source))

        parent = os.path.dirname(dest)
        if not self.fs.is_dir(parent):
            raise PathNotFound(parent)
        return dest

    def rules_at(self, dest: str) -> List[LinkRule]:
        return [
            r for r in self.meta.all_rules()
            if absolute_dest(self.package_dir, r.dest) == os.path.normpath(dest)
        ]

    def owns(self, dest: str) -> bool:
        """Whether the symlink at dest belongs to this package"""
        if not self.fs.is_symlink(dest):
            return False
        if self.rules_at(dest):
            return True
        return is_path_under(link_points_to(dest, self.fs), self.package_dir)

    def expected_target(self, rule: LinkRule) -> Optional[str]:
        try:
            return self.resolve_source(rule.version, rule.path)
        except PathNotFound:
            return None

    # -- mutation ---------------------------------------------------------

    def _write_symlink(self, source: str, dest: str) -> None:
        self.fs.symlink(relative_link_target(dest, source), dest)

    def _place_symlink(self, source: str, dest: str) -> None:
        if self.fs.lexists(dest) and not self.owns(dest):
            raise DestinationConflict(dest)
        self._write_symlink(source, dest)

    def create(self, dest: str, version: Optional[str] = None, path: Optional[str] = None) -> LinkRule:
        """Create or move the rule for dest and its symlink; the caller saves meta"""
        path = normalize_path(path)
        source = self.resolve_source(version, path)
        link_path = self.resolve_destination(dest, source)

        if self.fs.lexists(link_path) and not self.owns(link_path):
            raise DestinationConflict(link_path)
        self._write_symlink(source, link_path)

        # One rule per destination, whichever kind it was
        for existing in self.rules_at(link_path):
            self.meta.drop_rule(existing)

        rule = LinkRule(dest=stored_dest(self.package_dir, link_path), path=path, version=version)
        self.meta.add_rule(rule)
        return rule

    def remove_symlink(self, rule: LinkRule) -> str:
        """Remove the symlink of a rule if it is still ours.

        Returns REMOVED, MISSING, or SKIPPED when something else occupies
        the destination.
        """
        dest = absolute_dest(self.package_dir, rule.dest)
        if not self.fs.lexists(dest):
            return MISSING
        if not self.fs.is_symlink(dest) or not is_path_under(link_points_to(dest, self.fs), self.package_dir):
            return SKIPPED
        self.fs.remove_symlink(dest)
        return REMOVED

    def remove_rule(self, rule: LinkRule) -> LinkReport:
        """Drop a rule with its symlink; a rule whose symlink cannot be removed is kept"""
        dest = absolute_dest(self.package_dir, rule.dest)
        try:
            status = self.remove_symlink(rule)
        except FilesystemError as e:
            return LinkReport(rule, dest, FAILED, actual=str(e))
        self.meta.drop_rule(rule)
        return LinkReport(rule, dest, status)

    def relink_defaults(self) -> List[LinkReport]:
        """Re-point every default rule at the current version"""
        reports = []
        for rule in self.meta.links:
            dest = absolute_dest(self.package_dir, rule.dest)
            try:
                source = self.resolve_source(None, rule.path)
                self._place_symlink(source, dest)
            except GhriError as e:
                reports.append(LinkReport(rule, dest, SKIPPED, actual=str(e)))
                continue
            reports.append(LinkReport(rule, dest, VALID, expected=source))
        return reports

    def purge_version(self, version: str) -> List[LinkReport]:
        """Drop every versioned rule bound to version together with its symlink"""
        bound = [r for r in self.meta.versioned_links if r.version == version]
        return [self.remove_rule(rule) for rule in bound]

    def unlink(self, path: Optional[str] = None, dest: Optional[str] = None, remove_all: bool = False) -> List[LinkReport]:
        """Drop matching rules; their symlinks go too when still present"""
        if bool(dest) == bool(remove_all):
            raise UsageError("Specify either a destination or --all")

        rules = self.meta.all_rules()
        if path:
            path = normalize_path(path)
            rules = [r for r in rules if normalize_path(r.path) == path]
        if dest:
            wanted = os.path.abspath(os.path.expanduser(dest))
            matching = [r for r in rules if absolute_dest(self.package_dir, r.dest) == wanted]
            if not matching and self.fs.is_dir(wanted) and not self.fs.is_symlink(wanted):
                matching = [
                    r for r in rules
                    if os.path.dirname(absolute_dest(self.package_dir, r.dest)) == wanted
                ]
            rules = matching

        if not rules:
            target = dest or "any destination"
            raise LinkRuleNotFound(f"No link rule of {self.meta.name} found for {target}")

        return [self.remove_rule(rule) for rule in rules]

    # -- queries ----------------------------------------------------------

    def check(self, rule: LinkRule) -> LinkReport:
        """Compare a rule with the live filesystem; never mutates anything"""
        dest = absolute_dest(self.package_dir, rule.dest)
        expected = self.expected_target(rule)
        if not self.fs.lexists(dest):
            return LinkReport(rule, dest, MISSING, expected=expected)
        if not self.fs.is_symlink(dest):
            return LinkReport(rule, dest, DRIFTED, expected=expected, actual="not a symlink")

        actual = link_points_to(dest, self.fs)
        if (
            expected is not None
            and self.fs.exists(dest)
            and os.path.realpath(dest) == os.path.realpath(expected)
        ):
            return LinkReport(rule, dest, VALID, expected=expected, actual=actual)
        return LinkReport(rule, dest, DRIFTED, expected=expected, actual=actual)

    def check_all(self) -> List[LinkReport]:
        return [self.check(rule) for rule in self.meta.all_rules()]
