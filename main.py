#!/usr/bin/env python3
"""
FluentSub Entry Point Script

This script initializes the CLI handler and runs the subtitle pipeline for one URL.
"""

from fluentsub.cli import CLIHandler

if __name__ == "__main__":
    cli = CLIHandler()
    cli.run()
