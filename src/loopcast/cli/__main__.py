#!/usr/bin/env python3
"""
CLI entry point for loopcast.cli module.

This allows running: python -m loopcast.cli
"""

from .main import cli

if __name__ == "__main__":
    cli()
