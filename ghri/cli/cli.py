#!/usr/bin/env python3

import argparse
import os
import sys
from typing import Optional

from colorama import Fore, Style

from .. import __version__
from ..core.manager import PackageManager
from ..core.operations import (
    Plan,
    install_package,
    link_package,
    list_links,
    list_packages,
    prune_packages,
    remove_package,
    show_package,
    unlink_package,
    update_packages,
    upgrade_packages,
)
from ..errors import GhriError
from ..utils.cache import clear_cache, get_cache_info
from ..utils.config import (
    DEFAULT_CONFIG_PATH,
    create_default_config,
    find_config_file,
    load_config,
    resolve_settings,
    user_config_dir,
)


def parse_args(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        prog="ghri",
        description=f"ghri v{__version__} - Install and link command-line tools from GitHub releases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Configuration file")
    parser.add_argument("--root", help="Install root (default: ~/.ghri)")
    parser.add_argument("--api-url", help="GitHub API base URL")
    parser.add_argument("--no-cache", action="store_true", help="Disable the download cache for this run")
    parser.add_argument("--version", action="store_true", help="Show the version and exit")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    install = subparsers.add_parser("install", help="Install a package (owner/repo[@version])")
    install.add_argument("repo", help="owner/repo or owner/repo@version")
    install.add_argument("--version", dest="release", help="Release tag to install")
    install.add_argument(
        "-f", "--filter",
        dest="filters",
        action="append",
        default=[],
        help="Glob pattern an asset name must match (repeatable)",
    )
    install.add_argument("--pre", action="store_true", help="Allow pre-releases")
    install.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    update = subparsers.add_parser("update", help="Refresh release information of installed packages")
    update.add_argument("repos", nargs="*", help="Packages to refresh (default: all)")

    upgrade = subparsers.add_parser("upgrade", help="Install the latest release of installed packages")
    upgrade.add_argument("repos", nargs="*", help="Packages to upgrade (default: all)")
    upgrade.add_argument("--pre", action="store_true", help="Allow pre-releases")
    upgrade.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    link = subparsers.add_parser("link", help="Link a package into another directory")
    link.add_argument("source", help="owner/repo[@version][:path]")
    link.add_argument("dest", help="Destination path or directory")

    unlink = subparsers.add_parser("unlink", help="Remove link rules and their symlinks")
    unlink.add_argument("source", help="owner/repo[:path]")
    unlink.add_argument("dest", nargs="?", help="Destination to unlink")
    unlink.add_argument("--all", dest="remove_all", action="store_true", help="Remove every matching rule")

    remove = subparsers.add_parser("remove", help="Remove a package or one of its versions")
    remove.add_argument("repo", help="owner/repo or owner/repo@version")
    remove.add_argument("--force", action="store_true", help="Allow removing the current version")
    remove.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    prune = subparsers.add_parser("prune", help="Remove every version except the current one")
    prune.add_argument("repos", nargs="*", help="Packages to prune (default: all)")
    prune.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    show = subparsers.add_parser("show", help="Show details of an installed package")
    show.add_argument("repo", help="owner/repo")

    links = subparsers.add_parser("links", help="Check the link rules of installed packages")
    links.add_argument("repo", nargs="?", help="Only this package")

    subparsers.add_parser("list", help="List installed packages")

    config = subparsers.add_parser("config", help="Manage the configuration file")
    config_commands = config.add_subparsers(dest="config_command", metavar="ACTION")
    config_commands.add_parser("init", help="Create a default config file in ~/.config/ghri/")

    cache = subparsers.add_parser("cache", help="Manage the download cache")
    cache_commands = cache.add_subparsers(dest="cache_command", metavar="ACTION")
    cache_commands.add_parser("info", help="Show cache information")
    cache_commands.add_parser("clear", help="Delete cached downloads")

    return parser, parser.parse_args(argv)


def confirm_plan(plan: Plan) -> bool:
    """Print the plan and ask the user to go ahead"""
    print(f"\n{Fore.CYAN}{Style.BRIGHT}{plan.title}{Style.RESET_ALL}")
    for action in plan.actions:
        print(f"  • {action}")
    choice = input("Proceed? (y/N) ").lower()
    return choice in ("y", "yes")


def handle_init_command():
    """Handle 'config init' to create a default config file"""
    user_config_path = os.path.join(user_config_dir(), DEFAULT_CONFIG_PATH)

    if os.path.isfile(user_config_path):
        print(f"{Fore.YELLOW}Config file already exists at {user_config_path}{Style.RESET_ALL}")
        return

    try:
        create_default_config(user_config_path)
        print(f"{Fore.GREEN}✅ Created default config file at {user_config_path}{Style.RESET_ALL}")
    except OSError as e:
        print(f"{Fore.RED}❌ Failed to create config file: {e}{Style.RESET_ALL}")
        sys.exit(1)


def handle_cache_command(command: Optional[str]):
    if command == "clear":
        if clear_cache():
            print(f"{Fore.GREEN}✅ Cache successfully cleared{Style.RESET_ALL}")
        else:
            print(f"{Fore.YELLOW}ℹ️ No cache directory found{Style.RESET_ALL}")
        return

    cache_info = get_cache_info()
    print(f"Cache directory: {cache_info['path']}")
    if cache_info["exists"]:
        print(f"Cache size: {cache_info['size_bytes'] / (1024 * 1024):.2f} MB")
        print(f"Download cache entries: {cache_info['download_entries']}")
    else:
        print("Cache directory does not exist yet")


def build_manager(args) -> PackageManager:
    config_path = find_config_file(args.config)
    config = load_config(config_path)
    settings = resolve_settings(
        config,
        install_root=args.root,
        api_url=args.api_url,
        config_path=config_path,
    )
    if args.no_cache:
        settings.cache_enabled = False
    return PackageManager(settings)


def dispatch(manager: PackageManager, args) -> int:
    """Run the selected command; returns the process exit status"""
    confirm = None if getattr(args, "yes", False) else confirm_plan

    if args.command == "install":
        install_package(
            manager,
            args.repo,
            version=args.release,
            filters=args.filters,
            allow_prerelease=args.pre,
            confirm=confirm,
        )
    elif args.command == "update":
        update_packages(manager, args.repos)
    elif args.command == "upgrade":
        _, failed = upgrade_packages(manager, args.repos, allow_prerelease=args.pre, confirm=confirm)
        if failed:
            print(f"{Fore.RED}❌ Failed to upgrade: {', '.join(failed)}{Style.RESET_ALL}")
            return 1
    elif args.command == "link":
        link_package(manager, args.source, args.dest)
    elif args.command == "unlink":
        unlink_package(manager, args.source, args.dest, remove_all=args.remove_all)
    elif args.command == "remove":
        remove_package(manager, args.repo, force=args.force, confirm=confirm)
    elif args.command == "prune":
        prune_packages(manager, args.repos, confirm=confirm)
    elif args.command == "show":
        show_package(manager, args.repo)
    elif args.command == "links":
        list_links(manager, args.repo)
    elif args.command == "list":
        list_packages(manager)
    return 0


def run_cli(argv=None):
    """Run the command-line interface"""
    parser, args = parse_args(argv)

    if args.version:
        print(f"ghri v{__version__}")
        return

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    if args.command == "config":
        if args.config_command == "init":
            handle_init_command()
        else:
            parser.parse_args(["config", "--help"])
        return

    if args.command == "cache":
        handle_cache_command(args.cache_command)
        return

    try:
        manager = build_manager(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"{Fore.RED}❌ {e}{Style.RESET_ALL}")
        print(f"{Fore.YELLOW}Use 'ghri config init' to create a default configuration file{Style.RESET_ALL}")
        sys.exit(1)

    try:
        status = dispatch(manager, args)
    except GhriError as e:
        print(f"{Fore.RED}❌ {e}{Style.RESET_ALL}")
        sys.exit(e.exit_code)
    except OSError as e:
        print(f"{Fore.RED}❌ {e}{Style.RESET_ALL}")
        sys.exit(1)
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}Interrupted{Style.RESET_ALL}")
        sys.exit(130)

    if status:
        sys.exit(status)


if __name__ == "__main__":
    run_cli()
