"""Install and upgrade PHP formulae, then repair and restore the environment."""

from __future__ import annotations

from typing import Iterable, Sequence

from phpkeeper.analysis.versions import VersionNumber, formula_for
from phpkeeper.commands.base import (
    PhpEnvironment,
    ProcessRunner,
    ProgressCallback,
    ensure_taps,
    run_step,
    with_env,
)
from phpkeeper.commands.progress import PREPARING, RELOADING
from phpkeeper.core.config import STEP_TIMEOUT_SECONDS, UMBRELLA_FORMULA, Homebrew
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import Formula, OperationPlan, ProgressEvent
from phpkeeper.core.shell import ShellRunner

log = get_logger(__name__)

NO_INSTALL_UPGRADE = "HOMEBREW_NO_INSTALL_UPGRADE"
NO_INSTALL_CLEANUP = "HOMEBREW_NO_INSTALL_CLEANUP"
NO_INSTALLED_DEPENDENTS_CHECK = "HOMEBREW_NO_INSTALLED_DEPENDENTS_CHECK"

PREPARING_TITLE = "Please wait..."
COMPLETED_TITLE = "Operation completed!"
COMPLETED_DESCRIPTION = "The installation has succeeded."


def repair_targets(environment: PhpEnvironment) -> list[str]:
    """Formulae to reinstall because their installation is unhealthy."""
    alias = environment.php_alias
    return [
        formula_for(installation.short, alias)
        for installation in environment.installations.values()
        if not installation.is_healthy
    ]


class InstallAndUpgradeCommand:
    """Upgrade and install PHP formulae in one operation.

    Upgrades run before installations, since installing first could pull in
    newer dependencies that break the versions about to be upgraded. After
    both, the installed versions are detected again, broken installations
    are reinstalled, and the version that was active beforehand is linked
    again.
    """

    def __init__(
        self,
        title: str,
        upgrading: Sequence[Formula],
        installing: Sequence[Formula],
        *,
        environment: PhpEnvironment,
        runner: ProcessRunner | None = None,
        brew: str | None = None,
        timeout: float = STEP_TIMEOUT_SECONDS,
    ) -> None:
        self.title = title
        self.plan = OperationPlan(upgrading=tuple(upgrading), installing=tuple(installing))
        self.environment = environment
        self.runner = runner or ShellRunner()
        self.brew = brew or str(Homebrew.brew)
        self.timeout = timeout

    def get_command_title(self) -> str:
        return self.title

    async def execute(self, on_progress: ProgressCallback) -> None:
        on_progress(ProgressEvent.create(value=0.2, title=PREPARING_TITLE, description=PREPARING))

        previous = self.environment.current_version
        log.info(
            "operation_start",
            title=self.title,
            upgrading=[f.name for f in self.plan.upgrading],
            installing=[f.name for f in self.plan.installing],
            active_version=previous,
        )

        await ensure_taps(
            self.environment.installed_taps,
            brew=self.brew,
            title=self.title,
            runner=self.runner,
            on_progress=on_progress,
        )

        unavailable = self.plan.unavailable
        if unavailable is None:
            await self._upgrade_packages(on_progress)
            await self._install_packages(on_progress)
        else:
            await self._upgrade_main_php_formula(unavailable, on_progress)
            await self.environment.determine_php_alias()

        await self.environment.detect_php_versions()
        await self._repair_broken_packages(on_progress)
        await self._completed_operations(previous, on_progress)

    async def _run(self, command: str, on_progress: ProgressCallback) -> None:
        await run_step(
            command,
            title=self.title,
            runner=self.runner,
            on_progress=on_progress,
            timeout=self.timeout,
        )

    def _names(self, formulae: Iterable[Formula]) -> str:
        return " ".join(f.name for f in formulae)

    async def _upgrade_packages(self, on_progress: ProgressCallback) -> None:
        if not self.plan.upgrading:
            return

        command = with_env(
            f"{self.brew} upgrade {self._names(self.plan.upgrading)}",
            NO_INSTALL_UPGRADE,
            NO_INSTALL_CLEANUP,
        )
        await self._run(command, on_progress)

    async def _install_packages(self, on_progress: ProgressCallback) -> None:
        if not self.plan.installing:
            return

        command = with_env(
            f"{self.brew} install {self._names(self.plan.installing)} --force",
            NO_INSTALL_UPGRADE,
            NO_INSTALL_CLEANUP,
        )
        await self._run(command, on_progress)

    async def _upgrade_main_php_formula(
        self, unavailable: Formula, on_progress: ProgressCallback
    ) -> None:
        """Upgrade `php` and keep the minor version it used to provide.

        Upgrading the umbrella formula to a new minor version removes the
        old one, so it is installed again under its versioned name.
        """
        version = VersionNumber.try_parse(unavailable.installed_version)
        if version is None:
            log.warning(
                "swap_skipped",
                formula=unavailable.name,
                installed_version=unavailable.installed_version,
            )
            return

        command = with_env(
            f"{self.brew} upgrade {UMBRELLA_FORMULA}; "
            f"{self.brew} install php@{version.short};",
            NO_INSTALL_CLEANUP,
        )
        await self._run(command, on_progress)

    async def _repair_broken_packages(self, on_progress: ProgressCallback) -> None:
        requiring_repair = repair_targets(self.environment)
        if not requiring_repair:
            return

        log.warning("repair_required", formulae=requiring_repair)
        command = with_env(
            f"{self.brew} reinstall {' '.join(requiring_repair)} --force",
            NO_INSTALL_UPGRADE,
            NO_INSTALL_CLEANUP,
            NO_INSTALLED_DEPENDENTS_CHECK,
        )
        await self._run(command, on_progress)

    async def _completed_operations(
        self, previous: str | None, on_progress: ProgressCallback
    ) -> None:
        on_progress(ProgressEvent.create(value=0.95, title=self.title, description=RELOADING))

        await self.environment.detect_php_versions()
        await self.environment.refresh_active_installation()

        if previous is not None:
            await self.environment.switch_to_version(previous, silently=True)

        log.info("operation_complete", title=self.title, restored_version=previous)
        on_progress(ProgressEvent.create(
            value=1.0,
            title=COMPLETED_TITLE,
            description=COMPLETED_DESCRIPTION,
        ))
