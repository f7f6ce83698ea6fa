#!/usr/bin/env python3

"""Data model persisted in each package's meta.json"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import UsageError

DEFAULT_API_URL = "https://api.github.com"

_NAME_PART = re.compile(r"^[A-Za-z0-9_.-]+$")


def parse_repo(name: str) -> Tuple[str, str]:
    """Split 'owner/repo' into its parts, rejecting anything else"""
    parts = name.split("/")
    if len(parts) != 2 or not all(_NAME_PART.match(p) for p in parts):
        raise UsageError(f"Invalid repository format: {name}. Should be owner/repo")
    if parts[0] in (".", "..") or parts[1] in (".", ".."):
        raise UsageError(f"Invalid repository format: {name}. Should be owner/repo")
    return parts[0], parts[1]


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


@dataclass
class Asset:
    name: str
    size: int = 0
    download_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            name=data["name"],
            size=data.get("size") or 0,
            download_url=data.get("download_url") or data.get("browser_download_url") or "",
        )

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "Asset":
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "download_url": self.download_url}


@dataclass
class Release:
    tag: str
    title: Optional[str] = None
    published_at: Optional[str] = None
    prerelease: bool = False
    tarball_url: str = ""
    assets: List[Asset] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Release":
        """Read a stored release; both key spellings are accepted"""
        tag = data.get("version") if "version" in data else data.get("tag")
        if tag is None:
            tag = data["tag_name"]
        return cls(
            tag=tag,
            title=data.get("title", data.get("name")),
            published_at=data.get("published_at"),
            prerelease=bool(data.get("is_prerelease", data.get("prerelease", False))),
            tarball_url=data.get("tarball_url") or "",
            assets=[Asset.from_dict(a) for a in data.get("assets") or []],
        )

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "Release":
        """Create a Release from a GitHub API release object"""
        return cls(
            tag=data["tag_name"],
            title=data.get("name"),
            published_at=data.get("published_at"),
            prerelease=bool(data.get("prerelease", False)),
            tarball_url=data.get("tarball_url") or "",
            assets=[Asset.from_api_response(a) for a in data.get("assets", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.tag,
            "title": self.title,
            "published_at": self.published_at,
            "is_prerelease": self.prerelease,
            "tarball_url": self.tarball_url,
            "assets": [a.to_dict() for a in self.assets],
        }


@dataclass
class LinkRule:
    """A link rule; `version` is None for a default link, a tag for a versioned one"""

    dest: str
    path: Optional[str] = None
    version: Optional[str] = None

    @property
    def is_versioned(self) -> bool:
        return self.version is not None

    @property
    def kind(self) -> str:
        return "versioned" if self.is_versioned else "default"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], versioned: bool = False) -> "LinkRule":
        return cls(
            dest=data["dest"],
            path=data.get("path"),
            version=data["version"] if versioned else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"dest": self.dest}
        if self.version is not None:
            data["version"] = self.version
        if self.path is not None:
            data["path"] = self.path
        return data


def sort_releases(releases: List[Release]) -> List[Release]:
    """Newest first by publish date; unpublished releases last, by tag"""
    published = [r for r in releases if r.published_at]
    unpublished = [r for r in releases if not r.published_at]
    published.sort(key=lambda r: r.published_at, reverse=True)
    unpublished.sort(key=lambda r: r.tag, reverse=True)
    return published + unpublished


@dataclass
class PackageMeta:
    name: str
    api_url: str = DEFAULT_API_URL
    repo_info_url: str = ""
    releases_url: str = ""
    description: Optional[str] = None
    homepage: Optional[str] = None
    license: Optional[str] = None
    updated_at: str = ""
    current_version: str = ""
    releases: List[Release] = field(default_factory=list)
    filters: List[str] = field(default_factory=list)
    links: List[LinkRule] = field(default_factory=list)
    versioned_links: List[LinkRule] = field(default_factory=list)

    @classmethod
    def from_github(
        cls,
        name: str,
        api_url: str,
        repo_info: Dict[str, Any],
        releases: List[Release],
    ) -> "PackageMeta":
        """Build a fresh descriptor from the repository and release payloads"""
        api_url = api_url.rstrip("/")
        license_info = repo_info.get("license") or {}
        meta = cls(
            name=name,
            api_url=api_url,
            repo_info_url=f"{api_url}/repos/{name}",
            releases_url=f"{api_url}/repos/{name}/releases",
            description=repo_info.get("description"),
            homepage=repo_info.get("homepage"),
            license=license_info.get("name"),
            updated_at=repo_info.get("updated_at") or "",
            releases=sort_releases(releases),
        )
        meta.apply_defaults()
        return meta

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageMeta":
        meta = cls(
            name=data["name"],
            api_url=data.get("api_url") or "",
            repo_info_url=data.get("repo_info_url") or "",
            releases_url=data.get("releases_url") or "",
            description=data.get("description"),
            homepage=data.get("homepage"),
            license=data.get("license"),
            updated_at=data.get("updated_at") or "",
            current_version=data.get("current_version") or "",
            releases=[Release.from_dict(r) for r in data.get("releases") or []],
            filters=list(data.get("filters") or []),
            links=[LinkRule.from_dict(r) for r in data.get("links") or []],
            versioned_links=[
                LinkRule.from_dict(r, versioned=True)
                for r in data.get("versioned_links") or []
            ],
        )

        # Older descriptors stored a single external link in two flat fields
        linked_to = data.get("linked_to")
        if linked_to and not any(r.dest == linked_to for r in meta.links):
            meta.links.append(LinkRule(dest=linked_to, path=data.get("linked_path")))

        meta.apply_defaults()
        return meta

    def apply_defaults(self) -> None:
        """Fill in fields that older or hand-edited descriptors leave blank"""
        if _blank(self.api_url):
            self.api_url = DEFAULT_API_URL
        if "/" not in self.name:
            return
        if _blank(self.repo_info_url):
            self.repo_info_url = f"{self.api_url}/repos/{self.name}"
        if _blank(self.releases_url):
            self.releases_url = f"{self.api_url}/repos/{self.name}/releases"
        if _blank(self.homepage):
            if "api.github.com" in self.api_url:
                web_url = "https://github.com"
            else:
                web_url = self.api_url.replace("/api/v3", "").replace("api.", "")
            self.homepage = f"{web_url}/{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "api_url": self.api_url,
            "repo_info_url": self.repo_info_url,
            "releases_url": self.releases_url,
            "description": self.description,
            "homepage": self.homepage,
            "license": self.license,
            "updated_at": self.updated_at,
            "current_version": self.current_version,
            "releases": [r.to_dict() for r in self.releases],
        }
        if self.links:
            data["links"] = [r.to_dict() for r in self.links]
        if self.versioned_links:
            data["versioned_links"] = [r.to_dict() for r in self.versioned_links]
        if self.filters:
            data["filters"] = list(self.filters)
        return data

    def all_rules(self) -> List[LinkRule]:
        return list(self.links) + list(self.versioned_links)

    def add_rule(self, rule: LinkRule) -> None:
        if rule.is_versioned:
            self.versioned_links.append(rule)
        else:
            self.links.append(rule)

    def drop_rule(self, rule: LinkRule) -> None:
        if rule.is_versioned:
            self.versioned_links = [r for r in self.versioned_links if r is not rule]
        else:
            self.links = [r for r in self.links if r is not rule]

    def find_release(self, tag: str) -> Optional[Release]:
        for release in self.releases:
            if release.tag == tag:
                return release
        return None
