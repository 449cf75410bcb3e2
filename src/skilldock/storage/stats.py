"""Install statistics ledger.

A single JSON side-car file in the library root maps skill id to
``{installCount, lastInstalledAt, installedVersion?}``. The mapping stays
flat and keyed by skill id.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path

from skilldock.skills.models import InstallStats
from skilldock.utils.fs import ensure_directory, path_exists, read_text, write_text

logger = logging.getLogger(__name__)

STATS_FILENAME = ".stats.json"


class InstallStatsLedger:
    """Reads and writes the install ledger for one library directory."""

    def __init__(self, path: Path, clock: Callable[[], float] = time.time):
        """
        Args:
            path: Path of the ledger file
            clock: Returns the current time in seconds
        """
        self.path = path
        self._clock = clock

    async def read_all(self) -> dict[str, InstallStats]:
        """Read all entries; a missing or corrupt ledger reads as empty and bad entries are skipped."""
        if not await path_exists(self.path):
            return {}
        try:
            raw = json.loads(await read_text(self.path))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable install ledger {self.path}: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed install ledger {self.path}")
            return {}
        stats: dict[str, InstallStats] = {}
        for skill_id, entry in raw.items():
            if not isinstance(entry, dict):
                continue
            try:
                stats[str(skill_id)] = InstallStats.from_dict(entry)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed install entry for {skill_id}: {e}")
        return stats

    async def write_all(self, stats: dict[str, InstallStats]) -> None:
        await ensure_directory(self.path.parent)
        payload = {skill_id: entry.to_dict() for skill_id, entry in stats.items()}
        await write_text(self.path, json.dumps(payload, indent=2))

    async def get(self, skill_id: str) -> InstallStats | None:
        return (await self.read_all()).get(skill_id)

    async def record_install(self, skill_id: str, version: str | None = None) -> InstallStats:
        """Increment the install count, stamp the time and update the version if given."""
        stats = await self.read_all()
        existing = stats.get(skill_id)
        entry = InstallStats(
            install_count=(existing.install_count if existing else 0) + 1,
            last_installed_at=self._clock() * 1000,
            installed_version=version or (existing.installed_version if existing else None),
        )
        stats[skill_id] = entry
        await self.write_all(stats)
        logger.debug(f"Recorded install of {skill_id} (count={entry.install_count})")
        return entry

    async def installed_versions(self) -> dict[str, str]:
        """Map of skill id to installed version for entries that have one."""
        return {
            skill_id: entry.installed_version
            for skill_id, entry in (await self.read_all()).items()
            if entry.installed_version
        }
