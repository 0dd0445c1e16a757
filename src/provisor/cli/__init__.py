"""provisor command-line interface."""

from provisor.cli.app import app

__all__ = ["app"]
