"""
Shared utilities for CLI commands.
"""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import click

from skilldock.config.app import SettingsStore
from skilldock.errors import OperationCancelledError, SkillDockError
from skilldock.skills.decisions import ConfirmationRequest, Decision, DecisionProvider
from skilldock.skills.import_export import ImportExportService
from skilldock.storage.library import SkillLibrary

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(verbose: bool = False, level: str = "warning", fmt: str | None = None) -> None:
    """
    Configure logging for CLI.

    Args:
        verbose: If True, enable DEBUG level logging
        level: Configured level name used when not verbose
        fmt: Log record format
    """
    log_level = logging.DEBUG if verbose else _LEVELS.get(level, logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format=fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_settings(ctx: click.Context) -> SettingsStore:
    settings: SettingsStore = ctx.obj["settings"]
    return settings


def get_library(ctx: click.Context) -> SkillLibrary:
    return SkillLibrary(get_settings(ctx))


def get_import_export(ctx: click.Context, workspace: str | Path | None, assume_yes: bool = False) -> ImportExportService:
    return ImportExportService(
        get_library(ctx),
        get_settings(ctx),
        workspace_root=workspace,
        decisions=confirm_decisions(assume_yes),
    )


def confirm_decisions(assume_yes: bool = False) -> DecisionProvider:
    """Decision provider that asks on the terminal (or always proceeds with --yes)."""

    async def provider(request: ConfirmationRequest) -> Decision:
        if assume_yes or click.confirm(request.message, default=False):
            return Decision.OVERWRITE
        return Decision.CANCEL

    return provider


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a service coroutine, mapping SkillDock errors to CLI errors.

    A declined confirmation prints a note and exits successfully.
    """
    try:
        return asyncio.run(coro)
    except OperationCancelledError as e:
        click.echo(str(e))
        raise click.exceptions.Exit(0) from e
    except SkillDockError as e:
        raise click.ClickException(str(e)) from e


def format_timestamp(epoch_ms: float | None) -> str:
    """Format an epoch-milliseconds timestamp for display."""
    if epoch_ms is None:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M")
