"""Entry point for running roster_engine as a module.

Usage:
    python -m roster_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
