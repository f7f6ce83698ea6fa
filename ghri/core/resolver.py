#!/usr/bin/env python3

import fnmatch
import platform as platform_module
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..errors import AmbiguousAsset, NoMatchingAsset, NoReleaseAvailable, VersionNotFound
from .models import Asset, Release

# Known variant spellings used in release asset names
ARCH_VARIANTS: Dict[str, List[str]] = {
    "x86_64": ["x86_64", "amd64", "x64"],
    "aarch64": ["aarch64", "arm64"],
    "arm": ["armv7", "armhf", "arm"],
    "i686": ["i686", "i386", "x86"],
}

PLATFORM_VARIANTS: Dict[str, List[str]] = {
    "linux": ["linux"],
    "darwin": ["darwin", "macos", "apple"],
    "windows": ["windows", "win64", "win32", "win"],
}

# Longer spellings containing a shorter variant of another platform
MASKED_SPELLINGS: Dict[str, List[str]] = {
    "windows": ["darwin"],
    "arm": ["arm64"],
    "i686": ["x86_64"],
}

ARCHIVE_SCORES = [(".tar.gz", 10), (".tgz", 10), (".tar.xz", 9), (".zip", 8)]


@dataclass(frozen=True)
class Platform:
    os: str
    arch: str

    @classmethod
    def detect(cls) -> "Platform":
        current_platform = sys.platform
        if current_platform.startswith("linux"):
            current_platform = "linux"
        elif current_platform.startswith("darwin"):
            current_platform = "darwin"
        elif current_platform.startswith("win"):
            current_platform = "windows"

        current_arch = platform_module.machine().lower()
        for target_arch, variants in ARCH_VARIANTS.items():
            if current_arch in variants or current_arch == target_arch:
                current_arch = target_arch
                break

        return cls(os=current_platform, arch=current_arch)

    def matches(self, asset_name: str) -> bool:
        """Whether an asset name carries both this OS family and architecture"""
        name = asset_name.lower()
        os_name = name
        for masked in MASKED_SPELLINGS.get(self.os, []):
            os_name = os_name.replace(masked, "")
        if not any(v in os_name for v in PLATFORM_VARIANTS.get(self.os, [self.os])):
            return False

        if self.arch not in ARCH_VARIANTS:
            return True
        arch_name = name
        for masked in MASKED_SPELLINGS.get(self.arch, []):
            arch_name = arch_name.replace(masked, "")
        return any(v in arch_name for v in ARCH_VARIANTS[self.arch])

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


@dataclass
class Resolution:
    release: Release
    asset: Asset
    filters: List[str]

    @property
    def tag(self) -> str:
        return self.release.tag


def find_version(releases: Sequence[Release], version: str) -> Optional[Release]:
    """Exact tag first, then the same tag with or without a leading 'v'"""
    for release in releases:
        if release.tag == version:
            return release

    alternatives = {version[1:]} if version.startswith("v") else {f"v{version}"}
    for release in releases:
        if release.tag in alternatives:
            return release
    return None


def latest_release(releases: Sequence[Release], allow_prerelease: bool = False) -> Optional[Release]:
    """Most recently published release compatible with the prerelease policy"""
    candidates = [r for r in releases if allow_prerelease or not r.prerelease]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.published_at or "", r.tag))


def select_release(
    name: str,
    releases: Sequence[Release],
    version: Optional[str] = None,
    allow_prerelease: bool = False,
) -> Release:
    if version:
        release = find_version(releases, version)
        if release is None:
            raise VersionNotFound(name, version, [r.tag for r in releases])
        return release

    release = latest_release(releases, allow_prerelease)
    if release is None:
        raise NoReleaseAvailable(name, allow_prerelease)
    return release


def matches_filters(asset_name: str, filters: Sequence[str]) -> bool:
    """Case-insensitive glob match against every filter"""
    name = asset_name.lower()
    return all(fnmatch.fnmatchcase(name, f.lower()) for f in filters)


def score_asset(asset_name: str) -> int:
    """Rank an asset name, higher is better"""
    name = asset_name.lower()
    score = 0
    for suffix, points in ARCHIVE_SCORES:
        if name.endswith(suffix):
            score += points
            break

    if "sha256" in name or "sha512" in name or "checksum" in name:
        score -= 100
    if name.endswith((".sig", ".asc", ".pem", ".sbom", ".zsync")):
        score -= 100
    if "source" in name or "-src" in name or "_src" in name:
        score -= 50
    return score


def _wildcard_hint(filters: Sequence[str]) -> str:
    bare = [f for f in filters if not any(c in f for c in "*?[")]
    if not bare:
        return ""
    suggested = " ".join(f'--filter "*{f}*"' for f in bare)
    return f"\nHint: filter(s) {bare} contain no wildcards, try {suggested}"


def select_asset(
    release: Release,
    filters: Sequence[str],
    platform: Optional[Platform] = None,
) -> Asset:
    names = [a.name for a in release.assets]
    if filters:
        qualifying = [a for a in release.assets if matches_filters(a.name, filters)]
        criteria = f"the filter patterns {list(filters)}"
    else:
        platform = platform or Platform.detect()
        qualifying = [a for a in release.assets if platform.matches(a.name)]
        criteria = f"platform {platform}"

    if not qualifying:
        message = f"No assets of {release.tag} matched {criteria}"
        if filters:
            message += _wildcard_hint(filters)
        raise NoMatchingAsset(message, names)

    if len(qualifying) == 1:
        return qualifying[0]

    best = max(score_asset(a.name) for a in qualifying)
    top = [a for a in qualifying if score_asset(a.name) == best]
    if len(top) > 1:
        raise AmbiguousAsset(
            f"{len(top)} assets of {release.tag} match {criteria}; "
            "use --filter to pick exactly one",
            [a.name for a in top],
        )
    return top[0]


def resolve(
    name: str,
    releases: Sequence[Release],
    version: Optional[str] = None,
    allow_prerelease: bool = False,
    filters: Optional[Sequence[str]] = None,
    platform: Optional[Platform] = None,
) -> Resolution:
    """Pick exactly one release and one of its assets"""
    filters = list(filters or [])
    release = select_release(name, releases, version, allow_prerelease)
    asset = select_asset(release, filters, platform)
    return Resolution(release=release, asset=asset, filters=filters)
