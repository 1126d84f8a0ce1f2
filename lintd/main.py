#!/usr/bin/env python3
"""
Main entry point for the Typer-based lintd CLI.

This delegates to the UI layer in lintd.ui.cli to keep the
console script mapping stable.
"""

from lintd.ui.cli import run as lintd


if __name__ == "__main__":
    lintd()
