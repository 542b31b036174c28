"""Application state for the terminal user interface."""

from __future__ import annotations

from typing import List

from phpkeeper.commands.base import BrewCommand, PhpEnvironment, ProcessRunner, ProgressCallback
from phpkeeper.commands.install_upgrade import InstallAndUpgradeCommand
from phpkeeper.commands.remove import RemovePhpVersionCommand
from phpkeeper.core.cache import Cache
from phpkeeper.core.config import Homebrew
from phpkeeper.core.errors import UserError
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import Formula
from phpkeeper.core.shell import ShellRunner
from phpkeeper.providers import brew_php

log = get_logger(__name__)


class AppStore:
    """Holds the PHP environment and formulae, and runs one operation at a time.

    Operations themselves do not guard against running concurrently; the
    store refuses to start one while another is still busy.
    """

    def __init__(
        self,
        environment: PhpEnvironment,
        runner: ProcessRunner | None = None,
        brew: str | None = None,
        cache: Cache | None = None,
    ) -> None:
        self.environment = environment
        self.runner = runner or ShellRunner()
        self.brew = brew or str(Homebrew.brew)
        self.cache = cache
        self.formulae: List[Formula] = []
        self.busy = False

    async def initial_load(self, outdated: bool = True) -> List[Formula]:
        await self.environment.load()
        return await self.reload(outdated=outdated)

    async def reload(self, outdated: bool = True) -> List[Formula]:
        """Rebuild the formulae from the environment's current snapshot."""
        upgrades = None
        if outdated:
            upgrades = await brew_php.fetch_outdated(self.brew, cache=self.cache)

        self.formulae = brew_php.build_formulae(
            self.environment.installations, self.environment.php_alias, upgrades
        )
        return self.formulae

    def install(self, formula: Formula) -> BrewCommand:
        return InstallAndUpgradeCommand(
            f"Installing {formula.display_name}...",
            upgrading=[],
            installing=[formula],
            environment=self.environment,
            runner=self.runner,
            brew=self.brew,
        )

    def upgrade(self, formula: Formula) -> BrewCommand:
        return InstallAndUpgradeCommand(
            f"Upgrading {formula.display_name}...",
            upgrading=[formula],
            installing=[],
            environment=self.environment,
            runner=self.runner,
            brew=self.brew,
        )

    def remove(self, formula: Formula) -> BrewCommand:
        return RemovePhpVersionCommand(
            formula, environment=self.environment, runner=self.runner, brew=self.brew
        )

    async def run(self, command: BrewCommand, on_progress: ProgressCallback) -> None:
        """Execute an operation, then rebuild the formulae.

        Cached `brew outdated` results are dropped afterwards, whether or not
        the operation succeeded.

        Raises:
            UserError: If another operation is still running.
        """
        if self.busy:
            raise UserError("Another operation is still running")

        self.busy = True
        log.info("store_operation_start", title=command.get_command_title())
        try:
            await command.execute(on_progress)
        finally:
            self.busy = False
            if self.cache is not None:
                self.cache.invalidate(brew_php.OUTDATED_CACHE_KEY)

        await self.reload(outdated=False)
