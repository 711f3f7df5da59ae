"""Invariant fuzzing harness for a yield-accruing wrapped vault over a rebasing asset."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the vault-invariants script."""
    import sys

    from vault_invariants.cli import main

    raise SystemExit(main(sys.argv[1:]))
