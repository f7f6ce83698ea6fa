#!/usr/bin/env python3

import hashlib
import os
import shutil
from typing import Dict, Optional

from .config import get_real_home

# Default paths
CACHE_DIR = os.path.join(get_real_home(), ".cache/ghri")


def _downloads_dir(cache_dir: Optional[str] = None) -> str:
    return os.path.join(cache_dir or CACHE_DIR, "downloads")


def _cache_file(url: str, cache_dir: Optional[str] = None) -> str:
    # Hash of the URL, keeping the asset name so archive detection still works
    url_hash = hashlib.sha256(url.encode()).hexdigest()[:32]
    name = os.path.basename(url.split("?", 1)[0]) or "asset"
    return os.path.join(_downloads_dir(cache_dir), url_hash, name)


def get_cached_download(url: str, cache_dir: Optional[str] = None) -> Optional[str]:
    """Get a cached download if it exists"""
    cache_file = _cache_file(url, cache_dir)
    if os.path.isfile(cache_file):
        return cache_file
    return None


def cache_download(url: str, file_path: str, cache_dir: Optional[str] = None) -> str:
    """Cache a downloaded file"""
    cache_file = _cache_file(url, cache_dir)
    os.makedirs(os.path.dirname(cache_file), exist_ok=True)
    shutil.copy2(file_path, cache_file)
    return cache_file


def clear_cache(cache_dir: Optional[str] = None) -> bool:
    """Clear ghri's download cache"""
    downloads = _downloads_dir(cache_dir)
    if not os.path.exists(downloads):
        return False
    shutil.rmtree(downloads)
    return True


def get_cache_info(cache_dir: Optional[str] = None) -> Dict:
    """Get information about the cache"""
    path = cache_dir or CACHE_DIR
    info = {
        "exists": os.path.exists(path),
        "path": path,
        "size_bytes": 0,
        "download_entries": 0,
    }

    downloads = _downloads_dir(cache_dir)
    if not os.path.exists(downloads):
        return info

    for entry in os.listdir(downloads):
        entry_dir = os.path.join(downloads, entry)
        if not os.path.isdir(entry_dir):
            continue
        info["download_entries"] += 1
        for file in os.listdir(entry_dir):
            info["size_bytes"] += os.path.getsize(os.path.join(entry_dir, file))

    return info
