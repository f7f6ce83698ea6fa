#!/usr/bin/env python3

"""
ghri - Install command-line tools from GitHub releases

Usage:
  ghri [global options] COMMAND [options]

Commands:
  install REPO[@VERSION]        Install a release and make it current
  update [REPO...]              Refresh release information
  upgrade [REPO...]             Install the latest release of installed packages
  link SOURCE DEST              Link owner/repo[@version][:path] to DEST
  unlink SOURCE [DEST] [--all]  Remove link rules and their symlinks
  remove REPO[@VERSION]         Remove a package or one of its versions
  prune [REPO...]               Remove every version except the current one
  show REPO                     Show package details
  links [REPO]                  Check link rules against the filesystem
  list                          List installed packages
  config init                   Create ~/.config/ghri/config.yaml
  cache info|clear              Inspect or clear the download cache

Configuration file is searched in the following locations:
1. Specified path via --config
2. Current directory (config.yaml)
3. User config directory (~/.config/ghri/config.yaml)
4. System-wide location (/etc/ghri/config.yaml)
"""

from ghri import run_cli

if __name__ == "__main__":
    run_cli()
