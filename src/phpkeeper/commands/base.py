"""Protocols and shared steps for Homebrew operations."""

from __future__ import annotations

import time
from typing import Callable, MutableSet, Optional, Protocol

from phpkeeper.commands.progress import report_installation_progress
from phpkeeper.core.config import REQUIRED_TAPS, STEP_TIMEOUT_SECONDS
from phpkeeper.core.errors import BrewTimeoutError, OperationError, OperationTimeoutError
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import InstalledSnapshot, ProgressEvent
from phpkeeper.core.shell import OutputCallback

log = get_logger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class ProcessRunner(Protocol):
    """Runs a shell command while streaming its output."""

    async def attach(
        self, command: str, on_output: OutputCallback, timeout: Optional[float]
    ) -> tuple[int, str]:
        """Run `command`, calling `on_output(line, is_error)` per line.

        Returns:
            A tuple of (returncode, combined output).

        Raises:
            BrewTimeoutError: If the command exceeds `timeout`.
        """
        ...


class PhpEnvironment(Protocol):
    """The PHP installations managed through Homebrew."""

    installed_taps: MutableSet[str]

    @property
    def installations(self) -> InstalledSnapshot:
        """Installed versions as of the last detection, keyed by short version."""
        ...

    @property
    def php_alias(self) -> str | None:
        """Short version currently shipped as the umbrella `php` formula."""
        ...

    @property
    def current_version(self) -> str | None:
        """Short version of the linked (active) PHP binary."""
        ...

    async def load(self) -> None:
        """Load taps, the alias, installed versions and the active version."""
        ...

    async def detect_php_versions(self) -> InstalledSnapshot:
        ...

    async def determine_php_alias(self) -> str | None:
        ...

    async def refresh_active_installation(self) -> str | None:
        ...

    async def switch_to_version(self, version: str, silently: bool = False) -> None:
        ...


class BrewCommand(Protocol):
    """A named Homebrew operation that reports progress while it runs."""

    async def execute(self, on_progress: ProgressCallback) -> None:
        ...

    def get_command_title(self) -> str:
        ...


def with_env(command: str, *flags: str) -> str:
    """Prefix a shell command with `export FLAG=true;` for each flag."""
    exports = "".join(f"export {flag}=true; " for flag in flags)
    return f"{exports}{command}"


async def run_step(
    command: str,
    *,
    title: str,
    runner: ProcessRunner,
    on_progress: ProgressCallback,
    timeout: float = STEP_TIMEOUT_SECONDS,
) -> None:
    """Run one Homebrew step, forwarding progress parsed from its output.

    Args:
        command: Shell command line to run.
        title: Title attached to every progress event of this step.
        runner: Process runner executing the command.
        on_progress: Progress sink.
        timeout: Seconds before the step is killed.

    Raises:
        OperationError: If the step exits with a non-zero status. The
            error's `log` holds every non-empty line printed, in order.
        OperationTimeoutError: If the step exceeded `timeout`.
    """
    transcript: list[str] = []
    start = time.perf_counter()
    log.info("step_start", command=command)

    def on_output(line: str, is_error: bool) -> None:
        if line:
            log.debug("brew_output", line=line, stderr=is_error)
            transcript.append(line)

        progress = report_installation_progress(line)
        if progress is not None:
            value, description = progress
            on_progress(ProgressEvent.create(value=value, title=title, description=description))

    try:
        returncode, _ = await runner.attach(command, on_output, timeout)
    except BrewTimeoutError as e:
        log.error("step_timeout", command=command, timeout=timeout, lines=len(transcript))
        raise OperationTimeoutError(timeout=timeout, log=transcript, command=command) from e

    duration_ms = int((time.perf_counter() - start) * 1000)
    if returncode == 0:
        log.info("step_complete", command=command, duration_ms=duration_ms)
        return

    log.error(
        "step_failed",
        command=command,
        returncode=returncode,
        lines=len(transcript),
        duration_ms=duration_ms
    )
    raise OperationError(log=transcript, command=command, returncode=returncode)


async def ensure_taps(
    installed_taps: MutableSet[str],
    *,
    brew: str,
    title: str,
    runner: ProcessRunner,
    on_progress: ProgressCallback,
    taps: tuple[str, ...] = REQUIRED_TAPS,
) -> list[str]:
    """Tap every required repository that is not tapped yet.

    Taps are added in order and recorded in `installed_taps` once added,
    so calling this again performs no shell invocations.

    Returns:
        The taps that were added.
    """
    added = []
    for tap in taps:
        if tap in installed_taps:
            continue

        await run_step(f"{brew} tap {tap}", title=title, runner=runner, on_progress=on_progress)
        installed_taps.add(tap)
        added.append(tap)
        log.info("tap_added", tap=tap)

    return added
