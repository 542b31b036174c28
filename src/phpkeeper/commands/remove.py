"""Uninstall a single PHP formula."""

from __future__ import annotations

from phpkeeper.analysis.versions import VersionNumber
from phpkeeper.commands.base import PhpEnvironment, ProcessRunner, ProgressCallback, run_step
from phpkeeper.commands.progress import RELOADING
from phpkeeper.core.config import STEP_TIMEOUT_SECONDS, Homebrew
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import Formula, ProgressEvent
from phpkeeper.core.shell import ShellRunner

log = get_logger(__name__)


class RemovePhpVersionCommand:
    """Uninstall one PHP version, leaving formulae that depend on it alone."""

    def __init__(
        self,
        formula: Formula,
        *,
        environment: PhpEnvironment,
        runner: ProcessRunner | None = None,
        brew: str | None = None,
        timeout: float = STEP_TIMEOUT_SECONDS,
    ) -> None:
        self.formula = formula
        self.environment = environment
        self.runner = runner or ShellRunner()
        self.brew = brew or str(Homebrew.brew)
        self.timeout = timeout

    def get_command_title(self) -> str:
        return f"Removing {self.formula.display_name or self.formula.name}..."

    async def execute(self, on_progress: ProgressCallback) -> None:
        title = self.get_command_title()
        on_progress(ProgressEvent.create(
            value=0.2,
            title=title,
            description=f"Uninstalling {self.formula.name}...",
        ))

        await run_step(
            f"{self.brew} uninstall {self.formula.name} --ignore-dependencies",
            title=title,
            runner=self.runner,
            on_progress=on_progress,
            timeout=self.timeout,
        )

        on_progress(ProgressEvent.create(value=0.95, title=title, description=RELOADING))
        snapshot = await self.environment.detect_php_versions()
        await self.environment.refresh_active_installation()

        version = VersionNumber.try_parse(self.formula.installed_version)
        if version is not None and version.short in snapshot:
            log.warning("formula_still_present", formula=self.formula.name, version=version.short)

        log.info("formula_removed", formula=self.formula.name)
        on_progress(ProgressEvent.create(
            value=1.0,
            title="Operation completed!",
            description=f"{self.formula.name} has been removed.",
        ))
