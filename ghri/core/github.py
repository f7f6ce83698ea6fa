#!/usr/bin/env python3

import os
import re
import sys
from typing import Any, Dict, List, Optional

import requests

from ..errors import GitHubError
from .models import DEFAULT_API_URL, Release

PER_PAGE = 100
BLOCK_SIZE = 64 * 1024
PROGRESS_BAR_LENGTH = 30


class GitHubClient:
    """Minimal GitHub REST client for repository and release information"""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        token: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "User-Agent": "ghri",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise GitHubError(f"Request to {url} failed: {e}")

    def get_repo_info(self, name: str, api_url: Optional[str] = None) -> Dict[str, Any]:
        base = (api_url or self.api_url).rstrip("/")
        return self._get_json(f"{base}/repos/{name}")

    def get_releases(self, name: str, api_url: Optional[str] = None) -> List[Release]:
        """Every published release of a repository, following pagination"""
        base = (api_url or self.api_url).rstrip("/")
        url = f"{base}/repos/{name}/releases"
        releases = []
        page = 1
        while True:
            data = self._get_json(url, params={"per_page": PER_PAGE, "page": page})
            releases.extend(
                Release.from_api_response(item) for item in data if not item.get("draft")
            )
            if len(data) < PER_PAGE:
                break
            page += 1
        return releases

    def download(self, url: str, destination_dir: str, show_progress: bool = True) -> str:
        """Stream url into destination_dir and return the written file's path"""
        try:
            response = self.session.get(
                url,
                stream=True,
                timeout=self.timeout,
                headers={"Accept": "application/octet-stream"},
            )
            response.raise_for_status()

            content_disposition = response.headers.get("content-disposition")
            if content_disposition and "filename=" in content_disposition:
                filename = re.findall("filename=(.+)", content_disposition)[0]
            else:
                filename = os.path.basename(url.split("?", 1)[0])
            filename = os.path.basename(filename.strip("'\";"))

            download_path = os.path.join(destination_dir, filename)
            total_size = int(response.headers.get("content-length", 0))
            downloaded = 0

            with open(download_path, "wb") as f:
                for data in response.iter_content(BLOCK_SIZE):
                    f.write(data)
                    downloaded += len(data)

                    if show_progress and total_size > 0:
                        progress = int(PROGRESS_BAR_LENGTH * downloaded / total_size)
                        sys.stdout.write(
                            f"\r[{'=' * progress}{' ' * (PROGRESS_BAR_LENGTH - progress)}] {downloaded}/{total_size} bytes "
                        )
                        sys.stdout.flush()

            if show_progress and total_size > 0:
                print()  # Newline after progress bar
            return download_path
        except requests.RequestException as e:
            raise GitHubError(f"Failed to download {url}: {e}")
