#!/usr/bin/env python3

from typing import List, Optional


class GhriError(Exception):
    """Base class for every error ghri reports to the user"""

    exit_code = 1


class UsageError(GhriError):
    """Malformed arguments (bad owner/repo, missing destination, ...)"""

    exit_code = 2


class NotInstalled(GhriError):
    def __init__(self, name: str):
        super().__init__(f"Package {name} is not installed")
        self.name = name


class VersionNotFound(GhriError):
    def __init__(self, name: str, version: str, known: Optional[List[str]] = None):
        message = f"Version '{version}' not found for {name}"
        if known:
            message += f". Available versions: {', '.join(known[:5])}"
        super().__init__(message)
        self.name = name
        self.version = version


class NoReleaseAvailable(GhriError):
    def __init__(self, name: str, allow_prerelease: bool = False):
        if allow_prerelease:
            message = f"No release found for {name}"
        else:
            message = (
                f"No stable release found for {name}. Use --pre for pre-releases"
            )
        super().__init__(message)
        self.name = name


class AssetSelectionError(GhriError):
    """Base for asset selection failures; carries the asset names to show"""

    def __init__(self, message: str, assets: List[str]):
        super().__init__(message)
        self.assets = sorted(assets)

    def __str__(self) -> str:
        text = super().__str__()
        if self.assets:
            text += "\nAvailable assets:\n  " + "\n  ".join(self.assets)
        return text


class NoMatchingAsset(AssetSelectionError):
    pass


class AmbiguousAsset(AssetSelectionError):
    pass


class CurrentVersionProtected(GhriError):
    def __init__(self, name: str, version: str):
        super().__init__(
            f"{version} is the current version of {name}. Use --force to remove it anyway"
        )
        self.name = name
        self.version = version


class DestinationConflict(GhriError):
    def __init__(self, dest: str, reason: str = "already exists and is not managed by this package"):
        super().__init__(f"Destination {dest} {reason}")
        self.dest = dest


class PathNotFound(GhriError):
    def __init__(self, path: str, where: Optional[str] = None):
        message = f"Path '{path}' does not exist"
        if where:
            message += f" in {where}"
        super().__init__(message)
        self.path = path


class LinkRuleNotFound(GhriError):
    pass


class GitHubError(GhriError):
    """Failure talking to the GitHub API or downloading an asset"""


class ExtractionError(GhriError):
    pass


class FilesystemError(GhriError):
    """An OS-level failure while changing the install root or a link destination"""
