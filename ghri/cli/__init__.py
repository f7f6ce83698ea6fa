#!/usr/bin/env python3

from colorama import init

# Initialize colorama for cross-platform colored output
init()
