"""Shared utility functions for the scaffold engine.

Provides logging setup and Rich-based console reporting of
scaffold results and template catalogs.
"""

from __future__ import annotations

import logging
from typing import Iterable

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from scaffold_engine.scaffolder.models import ScaffoldResult, TemplateDescriptor

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Route ``scaffold_engine`` loggers through a Rich handler.

    Calling this more than once replaces the previously installed handler.

    Returns:
        The package logger.
    """
    logger = logging.getLogger("scaffold_engine")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_scaffold_result(result: ScaffoldResult, title: str = "Scaffold result") -> None:
    """Print a result summary: status panel, file table and warnings."""
    style = "green" if result.success else "red"
    status = "SUCCESS" if result.success else "FAILED"
    console.print(
        Panel(result.message or status, title=f"[bold {style}]{title}: {status}[/bold {style}]",
              border_style=style)
    )

    if result.created_files or result.existing_files:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Status", no_wrap=True)
        table.add_column("Path")
        for path in result.created_files:
            table.add_row("[green]created[/green]", path)
        for path in result.existing_files:
            table.add_row("[dim]existing[/dim]", path)
        console.print(table)

    for error in result.errors:
        print_error(error)
    for warning in result.warnings:
        print_warning(warning)
    console.print()


def print_descriptor_table(descriptors: Iterable[TemplateDescriptor], title: str = "Templates") -> None:
    """Print boilerplates/features as a table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Name", no_wrap=True)
    table.add_column("Kind", style="dim")
    table.add_column("Template", style="dim")
    table.add_column("Description")

    for descriptor in descriptors:
        table.add_row(
            descriptor.name,
            descriptor.kind.value,
            descriptor.template_path,
            descriptor.description.strip(),
        )

    console.print(table)
    console.print()


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
