"""Shared fixtures: an isolated install root and an offline GitHub client."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from ghri.core.manager import PackageManager
from ghri.core.models import Asset, Release
from ghri.core.resolver import Platform
from ghri.utils.config import Settings

LINUX_X64 = Platform(os="linux", arch="x86_64")


def make_release(
    name: str,
    tag: str,
    assets: List[str],
    published_at: Optional[str] = None,
    prerelease: bool = False,
) -> Release:
    return Release(
        tag=tag,
        title=tag,
        published_at=published_at,
        prerelease=prerelease,
        tarball_url=f"https://api.example.test/repos/{name}/tarball/{tag}",
        assets=[
            Asset(name=a, size=1024, download_url=f"https://example.test/{name}/{tag}/{a}")
            for a in assets
        ],
    )


class FakeGitHubClient:
    """Serves canned repositories; downloads write small plain files"""

    def __init__(self):
        self.repos: Dict[str, Dict] = {}
        self.downloads: List[str] = []
        self.release_calls = 0

    def add_repo(self, name: str, releases: List[Release], **info) -> None:
        info.setdefault("description", f"{name} test repository")
        info.setdefault("updated_at", "2024-01-01T00:00:00Z")
        info.setdefault("license", {"name": "MIT License"})
        self.repos[name] = {"info": info, "releases": list(releases)}

    def add_release(self, name: str, release: Release) -> None:
        self.repos[name]["releases"].append(release)

    def get_repo_info(self, name: str, api_url: Optional[str] = None) -> Dict:
        return dict(self.repos[name]["info"])

    def get_releases(self, name: str, api_url: Optional[str] = None) -> List[Release]:
        self.release_calls += 1
        return list(self.repos[name]["releases"])

    def download(self, url: str, destination_dir: str, show_progress: bool = True) -> str:
        self.downloads.append(url)
        path = os.path.join(destination_dir, url.rsplit("/", 1)[-1])
        with open(path, "w") as f:
            f.write(f"#!/bin/sh\necho {url}\n")
        return path


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    (path / "bin").mkdir(parents=True)
    return path


@pytest.fixture
def root(home: Path) -> Path:
    return home / ".ghri"


@pytest.fixture
def bin_dir(home: Path) -> Path:
    return home / "bin"


@pytest.fixture
def client() -> FakeGitHubClient:
    fake = FakeGitHubClient()
    fake.add_repo(
        "acme/tool",
        [
            make_release("acme/tool", "v1.0.0", ["tool-linux-amd64", "tool-darwin-amd64"], "2024-01-01T00:00:00Z"),
            make_release("acme/tool", "v2.0.0", ["tool-linux-amd64", "tool-darwin-amd64"], "2024-02-01T00:00:00Z"),
            make_release("acme/tool", "v3.0.0-rc1", ["tool-linux-amd64"], "2024-03-01T00:00:00Z", prerelease=True),
        ],
    )
    fake.add_repo(
        "bach-sh/bach",
        [
            make_release("bach-sh/bach", "0.6.0", ["bach-linux-amd64"], "2021-05-01T00:00:00Z"),
            make_release("bach-sh/bach", "0.7.2", ["bach-linux-amd64"], "2022-09-01T00:00:00Z"),
        ],
    )
    return fake


def build_manager(root: Path, client, cache_dir: Optional[Path] = None) -> PackageManager:
    settings = Settings(install_root=str(root), cache_enabled=cache_dir is not None)
    return PackageManager(
        settings,
        client=client,
        platform=LINUX_X64,
        cache_dir=str(cache_dir) if cache_dir else None,
    )


@pytest.fixture
def manager(root: Path, client: FakeGitHubClient) -> PackageManager:
    return build_manager(root, client)
