"""Command line interface for mtopo."""

from .main import cli

__all__ = ["cli"]
