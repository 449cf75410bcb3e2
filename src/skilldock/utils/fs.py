"""Async filesystem helpers shared by the library and the import/export bridge."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import aiofiles
import aiofiles.os


async def path_exists(path: str | Path) -> bool:
    """Check whether a path exists without blocking the event loop."""
    return await aiofiles.os.path.exists(path)


async def ensure_directory(path: str | Path) -> None:
    """Create a directory (and parents) if it does not exist."""
    await aiofiles.os.makedirs(path, exist_ok=True)


async def read_text(path: str | Path) -> str:
    async with aiofiles.open(path, encoding="utf-8") as f:
        return await f.read()


async def write_text(path: str | Path, content: str) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)


async def copy_directory(src: str | Path, dest: str | Path) -> None:
    """Recursively copy src into dest, merging with existing content."""
    await asyncio.to_thread(shutil.copytree, src, dest, dirs_exist_ok=True)


async def remove_directory(path: str | Path) -> None:
    """Recursively remove a directory tree."""
    await asyncio.to_thread(shutil.rmtree, path)
