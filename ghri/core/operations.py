#!/usr/bin/env python3

import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from colorama import Fore, Style

from ..errors import CurrentVersionProtected, FilesystemError, GhriError, NotInstalled, UsageError, VersionNotFound
from . import versions
from .links import FAILED, MISSING, REMOVED, VALID, LinkRegistry, LinkReport, parse_source_spec
from .manager import PackageManager
from .models import LinkRule, PackageMeta, parse_repo
from .resolver import Resolution, latest_release, resolve


@dataclass
class Plan:
    """What an operation is about to do, shown before anything changes"""

    title: str
    actions: List[str] = field(default_factory=list)


Confirm = Callable[[Plan], bool]


@dataclass
class InstallResult:
    name: str
    version: str
    previous_version: str
    downloaded: bool
    links: List[LinkReport] = field(default_factory=list)


@dataclass
class UpdateResult:
    name: str
    current_version: str
    latest_version: Optional[str]
    changed: bool

    @property
    def has_update(self) -> bool:
        if not self.latest_version:
            return False
        return self.latest_version.lstrip("v") != self.current_version.lstrip("v")


def split_version(spec: str) -> Tuple[str, Optional[str]]:
    """Split 'owner/repo@version' into its name and optional version"""
    name, _, version = spec.partition("@")
    parse_repo(name)
    return name, version or None


def _proceed(plan: Plan, confirm: Optional[Confirm]) -> bool:
    if confirm is None or confirm(plan):
        return True
    print(f"{Fore.YELLOW}Operation cancelled.{Style.RESET_ALL}")
    return False


def _format_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    if size >= 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size} bytes"


def _print_link_reports(reports: Iterable[LinkReport]) -> None:
    for report in reports:
        if report.status in (VALID, REMOVED):
            print(f"  {Fore.GREEN}🔗 {report.dest} ({report.status}){Style.RESET_ALL}")
        elif report.status == MISSING:
            print(f"  {Fore.YELLOW}🔗 {report.dest} (already gone){Style.RESET_ALL}")
        else:
            reason = f": {report.actual}" if report.actual else ""
            print(f"  {Fore.RED}⚠️ {report.dest} {report.status}{reason}{Style.RESET_ALL}")


def _raise_for_failed_links(reports: Iterable[LinkReport], name: str) -> None:
    failed = [r.dest for r in reports if r.status == FAILED]
    if failed:
        raise FilesystemError(f"Could not remove {len(failed)} link(s) of {name}: {', '.join(failed)}")


def _print_link_checks(reports: Iterable[LinkReport]) -> None:
    for report in reports:
        color = {VALID: Fore.GREEN, MISSING: Fore.YELLOW}.get(report.status, Fore.RED)
        bound = f"@{report.rule.version}" if report.rule.is_versioned else "(current)"
        source = f":{report.rule.path}" if report.rule.path else ""
        print(f"  {report.dest} → {bound}{source} {color}[{report.status}]{Style.RESET_ALL}")


def _installed_version(package_dir: str, meta: PackageMeta, version: str, manager: PackageManager) -> str:
    """Map a requested version onto the name of an installed version directory"""
    installed = versions.installed_versions(package_dir, manager.fs)
    if version in installed:
        return version
    alternative = version[1:] if version.startswith("v") else f"v{version}"
    if alternative in installed:
        return alternative
    raise VersionNotFound(meta.name, version, installed)


def plan_install(manager: PackageManager, meta: PackageMeta, resolution: Resolution) -> Plan:
    package_dir = manager.package_dir(meta.name)
    tag = resolution.tag
    asset = resolution.asset
    plan = Plan(f"Install {meta.name} {tag}")

    if versions.is_populated(package_dir, tag, manager.fs):
        plan.actions.append(f"{tag} is already installed, skip download")
    else:
        plan.actions.append(f"Download {asset.name} ({_format_size(asset.size)})")
        plan.actions.append(f"Create {versions.version_dir(package_dir, tag)}")

    if meta.current_version != tag:
        plan.actions.append(f"Point {versions.current_link(package_dir)} -> {tag}")
    for rule in meta.links:
        plan.actions.append(f"Update link {os.path.normpath(os.path.join(package_dir, rule.dest))} -> {tag}")
    return plan


def install_package(
    manager: PackageManager,
    spec: str,
    version: Optional[str] = None,
    filters: Optional[List[str]] = None,
    allow_prerelease: bool = False,
    confirm: Optional[Confirm] = None,
) -> Optional[InstallResult]:
    """Install a release of a package and make it the current version"""
    name, spec_version = split_version(spec)
    version = version or spec_version
    package_dir = manager.package_dir(name)

    cached = manager.is_installed(name)
    meta = manager.load_meta(name) if cached else manager.fetch_meta(name)
    effective_filters = list(filters) if filters else list(meta.filters)
    if not filters and meta.filters:
        print(f"ℹ️  Using saved filters: {', '.join(meta.filters)}")

    def _resolve() -> Resolution:
        return resolve(
            meta.name,
            meta.releases,
            version=version,
            allow_prerelease=allow_prerelease,
            filters=effective_filters,
            platform=manager.platform,
        )

    try:
        resolution = _resolve()
    except VersionNotFound:
        if not cached:
            raise
        # Stored releases may predate the requested version
        manager.refresh_meta(meta)
        resolution = _resolve()

    plan = plan_install(manager, meta, resolution)
    if not _proceed(plan, confirm):
        return None

    tag = resolution.tag
    print(f"📦 Installing {meta.name} version {tag}...")
    downloaded = manager.populate_version(package_dir, tag, resolution.asset)
    if not downloaded:
        print(f"{Fore.GREEN}✔ {meta.name} {tag} is already installed, skipping download{Style.RESET_ALL}")

    previous = meta.current_version
    versions.update_current_link(package_dir, tag, manager.fs)
    meta.current_version = tag
    meta.filters = list(resolution.filters)

    reports = LinkRegistry(package_dir, meta, manager.fs).relink_defaults()
    _print_link_reports(reports)

    manager.save_meta(meta)
    print(f"{Fore.GREEN}✅ {meta.name} is now at version {tag}{Style.RESET_ALL}")
    return InstallResult(meta.name, tag, previous, downloaded, reports)


def _select_packages(manager: PackageManager, names: Optional[List[str]]) -> List[Tuple[str, PackageMeta]]:
    packages = manager.installed_packages()
    if not names:
        return packages
    wanted = [split_version(n)[0] for n in names]
    known = {meta.name for _, meta in packages}
    for name in wanted:
        if name not in known:
            raise NotInstalled(name)
    return [(d, m) for d, m in packages if m.name in wanted]


def update_packages(manager: PackageManager, names: Optional[List[str]] = None) -> List[UpdateResult]:
    """Refresh release information without installing anything"""
    results = []
    for _, meta in _select_packages(manager, names):
        try:
            changed = manager.refresh_meta(meta)
        except GhriError as e:
            print(f"{Fore.RED}❌ {meta.name}: {e}{Style.RESET_ALL}")
            continue
        manager.save_meta(meta)

        latest = latest_release(meta.releases)
        result = UpdateResult(meta.name, meta.current_version, latest.tag if latest else None, changed)
        if result.has_update:
            print(
                f"{Fore.YELLOW}⬆ {meta.name} update available: {meta.current_version} → {result.latest_version}{Style.RESET_ALL}"
            )
        else:
            print(f"{Fore.GREEN}✔ {meta.name} is up to date ({meta.current_version}){Style.RESET_ALL}")
        results.append(result)
    return results


def upgrade_packages(
    manager: PackageManager,
    names: Optional[List[str]] = None,
    allow_prerelease: bool = False,
    confirm: Optional[Confirm] = None,
) -> Tuple[List[InstallResult], List[str]]:
    """Install the newest known release of each package that is behind.

    Returns the installs performed and the names that failed.
    """
    installed, failed = [], []
    for _, meta in _select_packages(manager, names):
        latest = latest_release(meta.releases, allow_prerelease)
        if latest is None or latest.tag == meta.current_version:
            print(f"{Fore.GREEN}✔ {meta.name} is up to date ({meta.current_version}){Style.RESET_ALL}")
            continue

        print(f"{Fore.YELLOW}⬆ {meta.name}: {meta.current_version} → {latest.tag}{Style.RESET_ALL}")
        try:
            result = install_package(
                manager,
                meta.name,
                version=latest.tag,
                allow_prerelease=allow_prerelease,
                confirm=confirm,
            )
        except GhriError as e:
            print(f"{Fore.RED}❌ Failed to upgrade {meta.name}: {e}{Style.RESET_ALL}")
            failed.append(meta.name)
            continue
        if result:
            installed.append(result)
    return installed, failed


def link_package(manager: PackageManager, source_spec: str, dest: str) -> LinkRule:
    """Create (or move) an external link to a package's contents"""
    spec = parse_source_spec(source_spec)
    package_dir = manager.package_dir(spec.name)
    meta = manager.load_meta(spec.name)

    version = None
    if spec.version:
        version = _installed_version(package_dir, meta, spec.version, manager)

    registry = LinkRegistry(package_dir, meta, manager.fs)
    rule = registry.create(dest, version=version, path=spec.path)
    manager.save_meta(meta)

    target = f"{meta.name}@{version}" if version else f"{meta.name} (current)"
    print(
        f"{Fore.GREEN}🔗 Linked {os.path.normpath(os.path.join(package_dir, rule.dest))} → {target}{Style.RESET_ALL}"
    )
    return rule


def unlink_package(
    manager: PackageManager,
    source_spec: str,
    dest: Optional[str] = None,
    remove_all: bool = False,
) -> List[LinkReport]:
    spec = parse_source_spec(source_spec)
    if spec.version:
        raise UsageError("unlink takes owner/repo[:path], without a version")
    package_dir = manager.package_dir(spec.name)
    meta = manager.load_meta(spec.name)

    reports = LinkRegistry(package_dir, meta, manager.fs).unlink(spec.path, dest, remove_all)
    manager.save_meta(meta)

    print(f"Unlinked {spec}:")
    _print_link_reports(reports)
    _raise_for_failed_links(reports, meta.name)
    return reports


def remove_version(
    manager: PackageManager,
    name: str,
    version: str,
    force: bool = False,
    confirm: Optional[Confirm] = None,
) -> Optional[List[LinkReport]]:
    """Delete one installed version and the versioned links bound to it"""
    package_dir = manager.package_dir(name)
    meta = manager.load_meta(name)
    version = _installed_version(package_dir, meta, version, manager)

    if version == meta.current_version and not force:
        raise CurrentVersionProtected(meta.name, version)

    registry = LinkRegistry(package_dir, meta, manager.fs)
    plan = Plan(f"Remove {meta.name} {version}")
    plan.actions.append(f"Delete {versions.version_dir(package_dir, version)}")
    for rule in meta.versioned_links:
        if rule.version == version:
            plan.actions.append(f"Remove link {os.path.normpath(os.path.join(package_dir, rule.dest))}")
    if version == meta.current_version:
        plan.actions.append(f"{version} is current: 'current' will point at a missing version")
    if not _proceed(plan, confirm):
        return None

    reports = registry.purge_version(version)
    versions.remove_version_dir(package_dir, version, manager.fs)
    manager.save_meta(meta)

    print(f"{Fore.YELLOW}🗑️  Removed {meta.name} {version}{Style.RESET_ALL}")
    _print_link_reports(reports)
    _raise_for_failed_links(reports, meta.name)
    return reports


def remove_package(
    manager: PackageManager,
    spec: str,
    force: bool = False,
    confirm: Optional[Confirm] = None,
) -> Optional[List[LinkReport]]:
    """Remove a whole package, or just one version with owner/repo@version"""
    name, version = split_version(spec)
    if version:
        return remove_version(manager, name, version, force=force, confirm=confirm)

    package_dir = manager.package_dir(name)
    meta = manager.load_meta(name)
    registry = LinkRegistry(package_dir, meta, manager.fs)
    rules = meta.all_rules()

    plan = Plan(f"Remove {meta.name}")
    for rule in rules:
        plan.actions.append(f"Remove link {os.path.normpath(os.path.join(package_dir, rule.dest))}")
    plan.actions.append(f"Delete {package_dir}")
    if not _proceed(plan, confirm):
        return None

    reports = [registry.remove_rule(rule) for rule in rules]

    manager.fs.remove_tree(package_dir)
    manager.fs.remove_dir_if_empty(os.path.dirname(package_dir))

    print(f"{Fore.YELLOW}🗑️  Removed {meta.name}{Style.RESET_ALL}")
    _print_link_reports(reports)
    _raise_for_failed_links(reports, meta.name)
    return reports


def prune_packages(
    manager: PackageManager,
    names: Optional[List[str]] = None,
    confirm: Optional[Confirm] = None,
) -> List[Tuple[str, str]]:
    """Remove every installed version except the current one"""
    targets = []
    for package_dir, meta in _select_packages(manager, names):
        if not meta.current_version:
            continue
        for version in versions.installed_versions(package_dir, manager.fs):
            if version != meta.current_version:
                targets.append((package_dir, meta.name, version))

    if not targets:
        print(f"{Fore.GREEN}✔ Nothing to prune{Style.RESET_ALL}")
        return []

    plan = Plan("Prune old versions", [f"Delete {name} {version}" for _, name, version in targets])
    if not _proceed(plan, confirm):
        return []

    removed = []
    for _, name, version in targets:
        remove_version(manager, name, version)
        removed.append((name, version))
    return removed


def list_links(manager: PackageManager, name: Optional[str] = None) -> List[LinkReport]:
    """Report the live state of every link rule (read-only)"""
    if name:
        packages = [(manager.package_dir(name), manager.load_meta(name))]
    else:
        packages = manager.installed_packages()

    reports = []
    for package_dir, meta in packages:
        package_reports = LinkRegistry(package_dir, meta, manager.fs).check_all()
        if not package_reports:
            continue
        print(f"{Fore.WHITE}{Style.BRIGHT}{meta.name}{Style.RESET_ALL}")
        _print_link_checks(package_reports)
        reports.extend(package_reports)
    return reports


def list_packages(manager: PackageManager) -> List[PackageMeta]:
    packages = manager.installed_packages()
    if not packages:
        print(f"{Fore.YELLOW}No packages installed in {manager.root}.{Style.RESET_ALL}")
        return []

    for package_dir, meta in packages:
        installed = versions.installed_versions(package_dir, manager.fs)
        status = (
            f"{Fore.GREEN}[INSTALLED]{Style.RESET_ALL}"
            if meta.current_version in installed
            else f"{Fore.RED}[CURRENT MISSING]{Style.RESET_ALL}"
        )
        print(f"{Fore.WHITE}{Style.BRIGHT}{meta.name}{Style.RESET_ALL} {meta.current_version} {status}")
    return [meta for _, meta in packages]


def show_package(manager: PackageManager, name: str) -> PackageMeta:
    package_dir = manager.package_dir(name)
    meta = manager.load_meta(name)
    installed = versions.installed_versions(package_dir, manager.fs)

    print(f"\n{Fore.CYAN}{Style.BRIGHT}{meta.name}{Style.RESET_ALL}")
    if meta.description:
        print(f"  {meta.description}")
    print(f"  Homepage: {meta.homepage or '-'}")
    print(f"  License: {meta.license or '-'}")
    print(f"  Install path: {package_dir}")
    print(f"  Current version: {meta.current_version or '-'}")
    if installed:
        print(f"  Installed versions: {', '.join(installed)}")
    if meta.filters:
        print(f"  Filters: {', '.join(meta.filters)}")

    latest = latest_release(meta.releases)
    if latest:
        marker = (
            f"{Fore.GREEN}(up to date){Style.RESET_ALL}"
            if latest.tag == meta.current_version
            else f"{Fore.YELLOW}(update available){Style.RESET_ALL}"
        )
        print(f"  Latest version: {latest.tag} {marker}")
    if meta.updated_at:
        print(f"  Updated at: {meta.updated_at}")

    if meta.all_rules():
        print("  Links:")
        _print_link_checks(LinkRegistry(package_dir, meta, manager.fs).check_all())
    return meta
