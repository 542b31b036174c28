"""The PHP installations found in the Homebrew prefix."""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path

from phpkeeper.analysis.health import derive_health
from phpkeeper.analysis.versions import VersionNumber, formula_for
from phpkeeper.core.config import QUERY_TIMEOUT_SECONDS, Homebrew, HomebrewEnv
from phpkeeper.core.errors import BrewCommandError, FormulaNotFoundError, TransientError
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import EMPTY_SNAPSHOT, InstalledSnapshot, PhpInstallation, snapshot_of
from phpkeeper.core.shell import run_capture
from phpkeeper.providers import brew_php

log = get_logger(__name__)

_OPT_DIR_RE = re.compile(r"php(@\d+\.\d+)?")


class HomebrewPhpEnvironment:
    """Tracks installed PHP versions, the `php` alias and the active version.

    The installation snapshot is never modified in place: every detection
    replaces it with a new read-only mapping.
    """

    def __init__(self, homebrew: HomebrewEnv = Homebrew) -> None:
        self.homebrew = homebrew
        self.brew = str(homebrew.brew)
        self.installed_taps: set[str] = set()
        self._installations: InstalledSnapshot = EMPTY_SNAPSHOT
        self._php_alias: str | None = None
        self._current_version: str | None = None

    @property
    def installations(self) -> InstalledSnapshot:
        return self._installations

    @property
    def php_alias(self) -> str | None:
        return self._php_alias

    @property
    def current_version(self) -> str | None:
        return self._current_version

    async def load(self) -> None:
        """Load taps, the alias, installed versions and the active version."""
        start = time.perf_counter()
        self.installed_taps = await brew_php.list_installed_taps(self.brew)
        await self.determine_php_alias()
        await self.detect_php_versions()
        await self.refresh_active_installation()
        log.info(
            "environment_loaded",
            versions=list(self._installations),
            alias=self._php_alias,
            active=self._current_version,
            duration_ms=int((time.perf_counter() - start) * 1000)
        )

    async def determine_php_alias(self) -> str | None:
        self._php_alias = await brew_php.determine_php_alias(self.brew)
        return self._php_alias

    def _candidates(self) -> list[Path]:
        if not self.homebrew.opt.is_dir():
            return []
        return sorted(
            p for p in self.homebrew.opt.iterdir()
            if _OPT_DIR_RE.fullmatch(p.name) and (p / "bin" / "php").exists()
        )

    async def _inspect(self, path: Path) -> PhpInstallation | None:
        out, _, code = await run_capture(
            str(path / "bin" / "php-config"), "--version", timeout=QUERY_TIMEOUT_SECONDS
        )
        version = VersionNumber.try_parse(out) if code == 0 else None
        if version is None:
            log.warning("php_version_unreadable", path=str(path), output=out)
            return None

        out, err, code = await run_capture(
            str(path / "bin" / "php"), "-v", timeout=QUERY_TIMEOUT_SECONDS
        )
        healthy = derive_health("\n".join(filter(None, (out, err))), code)
        if not healthy:
            log.warning("php_installation_unhealthy", version=version.short, path=str(path))

        return PhpInstallation(version=version, is_healthy=healthy, path=str(path))

    async def detect_php_versions(self) -> InstalledSnapshot:
        """Detect installed PHP versions and replace the snapshot."""
        found = await asyncio.gather(*(self._inspect(p) for p in self._candidates()))
        self._installations = snapshot_of(i for i in found if i is not None)
        log.info("php_versions_detected", versions=list(self._installations))
        return self._installations

    async def refresh_active_installation(self) -> str | None:
        """Determine which PHP version is linked into the prefix."""
        php_config = self.homebrew.bin / "php-config"
        if not php_config.exists():
            self._current_version = None
            return None

        out, _, code = await run_capture(str(php_config), "--version", timeout=QUERY_TIMEOUT_SECONDS)
        version = VersionNumber.try_parse(out) if code == 0 else None
        self._current_version = version.short if version else None
        log.debug("active_php_version", version=self._current_version)
        return self._current_version

    async def switch_to_version(self, version: str, silently: bool = False) -> None:
        """Link the given PHP version, unlinking all others.

        Args:
            version: Short version to activate, e.g. "8.2".
            silently: When restoring a version after an operation, a version
                that is no longer installed or fails to link is logged and
                skipped instead of raising.

        Raises:
            FormulaNotFoundError: If the version is not installed.
            BrewCommandError: If linking the formula fails and `silently` is
                not set.
            BrewTimeoutError: If linking times out and `silently` is not set.
        """
        if version not in self._installations:
            if silently:
                log.warning("switch_skipped", version=version, reason="not_installed")
                return
            raise FormulaNotFoundError(
                f"PHP {version} is not installed", formula=formula_for(version, self._php_alias)
            )

        formulae = [formula_for(short, self._php_alias) for short in self._installations]
        target = formula_for(version, self._php_alias)

        try:
            out, err, code = await run_capture(
                self.brew, "unlink", *formulae, timeout=QUERY_TIMEOUT_SECONDS
            )
            if code != 0:
                log.warning("unlink_failed", formulae=formulae, returncode=code, error=err or out)
            await self._link(target)
        except TransientError as e:
            if not silently:
                raise
            log.warning("switch_failed", version=version, formula=target, error=str(e))
            await self.refresh_active_installation()
            return

        await self.refresh_active_installation()
        log.info("php_switched", version=version, formula=target, silently=silently)

    async def _link(self, formula: str) -> None:
        out, err, code = await run_capture(
            self.brew, "link", formula, "--overwrite", "--force", timeout=QUERY_TIMEOUT_SECONDS
        )
        if code != 0:
            raise BrewCommandError(
                command=f"{self.brew} link {formula} --overwrite --force",
                returncode=code,
                error=err or out,
            )
