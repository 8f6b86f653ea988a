"""schema-spine command-line interface."""

from schemaspine.cli.app import app

__all__ = ["app"]
