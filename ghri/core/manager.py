#!/usr/bin/env python3

import os
import tempfile
from typing import List, Optional, Tuple

from colorama import Fore, Style

from ..errors import GhriError
from ..utils.cache import cache_download, get_cached_download
from ..utils.config import Settings
from . import archive, meta as meta_store
from .fs import Filesystem
from .github import GitHubClient
from .models import Asset, PackageMeta, parse_repo
from .resolver import Platform
from .versions import is_populated, staging_dir, version_dir


class PackageManager:
    """Core class for managing packages installed from GitHub releases"""

    def __init__(
        self,
        settings: Settings,
        client: Optional[GitHubClient] = None,
        fs: Optional[Filesystem] = None,
        platform: Optional[Platform] = None,
        cache_dir: Optional[str] = None,
    ):
        self.settings = settings
        self.root = os.path.abspath(settings.install_root)
        self.client = client or GitHubClient(settings.api_url, settings.token)
        self.fs = fs or Filesystem()
        self.platform = platform or Platform.detect()
        self.cache_enabled = settings.cache_enabled
        self.cache_dir = cache_dir

    def package_dir(self, name: str) -> str:
        owner, repo = parse_repo(name)
        return os.path.join(self.root, owner, repo)

    def load_meta(self, name: str) -> PackageMeta:
        return meta_store.load(self.package_dir(name), self.fs)

    def save_meta(self, meta: PackageMeta) -> None:
        meta_store.save(self.package_dir(meta.name), meta, self.fs)

    def is_installed(self, name: str) -> bool:
        return self.fs.exists(meta_store.meta_path(self.package_dir(name)))

    def installed_packages(self) -> List[Tuple[str, PackageMeta]]:
        return meta_store.find_all(self.root, self.fs)

    def fetch_meta(self, name: str, api_url: Optional[str] = None) -> PackageMeta:
        """Build a fresh descriptor from the API"""
        api_url = api_url or self.settings.api_url
        print(f"📥 Fetching information for {Fore.CYAN}{name}{Style.RESET_ALL}...")
        info = self.client.get_repo_info(name, api_url)
        releases = self.client.get_releases(name, api_url)
        return PackageMeta.from_github(name, api_url, info, releases)

    def refresh_meta(self, meta: PackageMeta) -> bool:
        """Replace the stored release list with the one the API reports now"""
        print(f"📥 Fetching releases for {Fore.CYAN}{meta.name}{Style.RESET_ALL}...")
        info = self.client.get_repo_info(meta.name, meta.api_url)
        releases = self.client.get_releases(meta.name, meta.api_url)
        return meta_store.refresh_releases(meta, releases, info.get("updated_at") or "")

    def download_asset(self, asset: Asset, destination_dir: str) -> str:
        """Download an asset into destination_dir, reusing the cache when possible"""
        if self.cache_enabled:
            cached = get_cached_download(asset.download_url, self.cache_dir)
            if cached:
                print(f"📦 Using cached download of {asset.name}")
                return cached

        print(f"⬇️  Downloading from {asset.download_url}")
        download_path = self.client.download(asset.download_url, destination_dir)
        if self.cache_enabled:
            cache_download(asset.download_url, download_path, self.cache_dir)
        return download_path

    def populate_version(self, package_dir: str, version: str, asset: Asset) -> bool:
        """Download and unpack an asset into the version directory.

        Returns False when the version directory was already populated.
        """
        if is_populated(package_dir, version, self.fs):
            return False

        target = version_dir(package_dir, version)
        staging = staging_dir(package_dir, version)
        self.fs.make_dirs(package_dir)
        for stale in (staging, target):
            if self.fs.lexists(stale):
                self.fs.remove_tree(stale)

        try:
            with tempfile.TemporaryDirectory() as temp_dir:
                download_path = self.download_asset(asset, temp_dir)
                print(f"📂 Extracting to {target}...")
                archive.extract(download_path, staging, asset.name)
            self.fs.rename(staging, target)
        except (GhriError, OSError):
            if self.fs.lexists(staging):
                self.fs.remove_tree(staging)
            raise
        return True
