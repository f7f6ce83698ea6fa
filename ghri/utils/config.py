#!/usr/bin/env python3

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

import yaml

from ..core.models import DEFAULT_API_URL

# Type definitions
ConfigDict = Dict[str, Dict[str, Union[str, bool, None]]]

# Default paths
DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_CACHE_ENABLED = True

ENV_ROOT = "GHRI_ROOT"
ENV_API_URL = "GHRI_API_URL"
ENV_TOKENS = ("GITHUB_TOKEN", "GH_TOKEN")


def get_real_home() -> str:
    """Get the real user's home directory even when running with sudo"""
    if "SUDO_USER" in os.environ and os.environ.get("HOME") == "/root":
        return os.path.expanduser(f"~{os.environ['SUDO_USER']}")
    return os.path.expanduser("~")


def default_install_root() -> str:
    return os.path.join(get_real_home(), ".ghri")


def user_config_dir() -> str:
    return os.path.join(get_real_home(), ".config/ghri")


@dataclass
class Settings:
    """Configuration values handed to the core, already resolved"""

    install_root: str
    api_url: str = DEFAULT_API_URL
    token: Optional[str] = None
    cache_enabled: bool = DEFAULT_CACHE_ENABLED
    config_path: Optional[str] = None


def find_config_file(config_path: Optional[str] = None) -> Optional[str]:
    """
    Find the configuration file by checking multiple locations:
    1. Specified path from command line
    2. Current directory
    3. User config directory (~/.config/ghri/)
    4. System-wide location (/etc/ghri)
    """
    if config_path:
        if os.path.isfile(config_path):
            return config_path
        raise FileNotFoundError(f"Config file not found at: {config_path}")

    candidates = [
        os.path.join(os.getcwd(), DEFAULT_CONFIG_PATH),
        os.path.join(user_config_dir(), DEFAULT_CONFIG_PATH),
        os.path.join("/etc/ghri", DEFAULT_CONFIG_PATH),
    ]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return None


def default_config() -> ConfigDict:
    return {
        "options": {
            "install_root": default_install_root(),
            "api_url": DEFAULT_API_URL,
            "cache_enabled": DEFAULT_CACHE_ENABLED,
        }
    }


def create_default_config(config_path: str) -> ConfigDict:
    """Create a default configuration file"""
    config = default_config()
    os.makedirs(os.path.dirname(os.path.abspath(config_path)), exist_ok=True)
    save_config(config, config_path)
    return config


def load_config(config_path: Optional[str]) -> ConfigDict:
    """Load the configuration, filling in defaults for missing options"""
    config: ConfigDict = {}
    if config_path:
        try:
            with open(config_path, "r") as file:
                config = yaml.safe_load(file) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Config file not found at: {config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    options = config.setdefault("options", {}) or {}
    config["options"] = options
    for key, value in default_config()["options"].items():
        options.setdefault(key, value)
    return config


def save_config(config: ConfigDict, config_path: str) -> None:
    """Save the configuration to the specified path"""
    try:
        with open(config_path, "w") as file:
            yaml.dump(config, file, default_flow_style=False)
    except OSError as e:
        raise IOError(f"Failed to save config file: {e}")


def resolve_settings(
    config: ConfigDict,
    install_root: Optional[str] = None,
    api_url: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[str] = None,
) -> Settings:
    """Command line beats environment, environment beats the config file"""
    environ = os.environ if environ is None else environ
    options = config.get("options", {})

    root = install_root or environ.get(ENV_ROOT) or options.get("install_root")
    url = api_url or environ.get(ENV_API_URL) or options.get("api_url") or DEFAULT_API_URL
    token = next((environ[name] for name in ENV_TOKENS if environ.get(name)), None)

    return Settings(
        install_root=os.path.abspath(os.path.expanduser(str(root or default_install_root()))),
        api_url=str(url).rstrip("/"),
        token=token,
        cache_enabled=bool(options.get("cache_enabled", DEFAULT_CACHE_ENABLED)),
        config_path=config_path,
    )
