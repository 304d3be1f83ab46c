"""Shared utilities for kether CLI commands."""

from rich.console import Console

console = Console()
