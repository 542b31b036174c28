"""Asynchronous shell command execution with timeout, streaming and JSON parsing."""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import time
from typing import Any, Callable, Optional

from phpkeeper.core.config import STEP_TIMEOUT_SECONDS
from phpkeeper.core.errors import BrewCommandError, BrewTimeoutError, retry_on_transient
from phpkeeper.core.logging import get_logger

log = get_logger(__name__)

ENV_OVERRIDES = {
    "LANG": "C",
    "HOMEBREW_NO_COLOR": "1",
    "HOMEBREW_NO_EMOJI": "1",
}

# Homebrew redraws download progress bars without newlines.
STREAM_LIMIT = 1024 * 1024

OutputCallback = Callable[[str, bool], None]


def shell_env() -> dict[str, str]:
    """Environment for spawned commands: the user's, plus ENV_OVERRIDES."""
    env = os.environ.copy()
    env.update(ENV_OVERRIDES)
    return env


async def run_capture(
    *cmd: str, timeout: Optional[float] = 30
) -> tuple[str, str, int]:
    """Run a command asynchronously with optional timeout.

    Args:
        *cmd: Command and its arguments to run.
        timeout: Timeout in seconds.

    Returns:
        A tuple of (stdout, stderr, returncode).

    Raises:
        BrewTimeoutError: If the command times out.
    """
    start = time.perf_counter()
    log.debug("command_start", command=" ".join(cmd), timeout=timeout)

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=shell_env(),
    )

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout)
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "command_complete",
            command=" ".join(cmd),
            returncode=process.returncode,
            duration_ms=duration_ms
        )

    except asyncio.TimeoutError as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.error(
            "command_timeout",
            command=" ".join(cmd),
            timeout=timeout,
            duration_ms=duration_ms
        )
        try:
            process.kill()
        finally:
            raise BrewTimeoutError(
                command=" ".join(cmd),
                timeout=timeout,
                context={"duration_ms": duration_ms}
            ) from e

    return (
        out.decode(errors="replace").strip(),
        err.decode(errors="replace").strip(),
        process.returncode,
    )

@retry_on_transient(max_retries=3, base_delay=1.0)
async def run_json(*cmd: str, timeout: Optional[float] = 60) -> Any:
    """Run a command and parse its JSON output.

    Automatically retries on transient errors.

    Args:
        *cmd: Command and its arguments to run.
        timeout: Timeout in seconds.

    Returns:
        Parsed JSON output.

    Raises:
        BrewCommandError: If the command fails or JSON parsing fails.
        BrewTimeoutError: If the command times out (retried automatically).
    """
    start = time.perf_counter()
    out, err, code = await run_capture(*cmd, timeout=timeout)
    duration_ms = int((time.perf_counter() - start) * 1000)

    if code != 0:
        log.error(
            "command_failed",
            command=" ".join(cmd),
            error=err or out,
            returncode=code
        )
        raise BrewCommandError(
            command=" ".join(cmd),
            returncode=code,
            error=err or out,
            context={"duration_ms": duration_ms}
        )

    try:
        result = json.loads(out)
        log.debug(
            "json_parsed",
            command=" ".join(cmd),
            duration_ms=duration_ms
        )

        return result

    except json.JSONDecodeError as e:
        log.error(
            "json_parse_failed",
            command=" ".join(cmd),
            error=str(e),
        )
        raise BrewCommandError(
            "Failed to parse JSON output",
            command=" ".join(cmd),
            error=str(e),
            context={"output_preview": out[:200] if out else ""}
        ) from e


async def attach(
    command: str,
    on_output: OutputCallback,
    timeout: Optional[float] = STEP_TIMEOUT_SECONDS,
) -> tuple[int, str]:
    """Run a shell command, streaming every line of its output.

    Lines are delivered to `on_output(line, is_error)` in the order each
    stream produced them, while the process is still running. The process
    is killed before any error propagates, including cancellation and
    exceptions raised by `on_output`.

    Args:
        command: Shell command line, run through /bin/sh.
        on_output: Callback receiving each line and whether it came from stderr.
        timeout: Timeout in seconds for the whole command.

    Returns:
        A tuple of (returncode, combined output).

    Raises:
        BrewTimeoutError: If the command times out. The process is killed.
    """
    start = time.perf_counter()
    log.debug("attach_start", command=command, timeout=timeout)

    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=shell_env(),
        limit=STREAM_LIMIT,
    )
    output: list[str] = []

    async def pump(stream: asyncio.StreamReader, is_error: bool) -> None:
        async for raw in stream:
            line = raw.decode(errors="replace").rstrip("\r\n")
            output.append(line)
            on_output(line, is_error)

    try:
        await asyncio.wait_for(
            asyncio.gather(pump(process.stdout, False), pump(process.stderr, True)),
            timeout,
        )
        returncode = await process.wait()

    except asyncio.TimeoutError as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.error(
            "attach_timeout",
            command=command,
            timeout=timeout,
            duration_ms=duration_ms
        )
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise BrewTimeoutError(
            command=command,
            timeout=timeout,
            context={"duration_ms": duration_ms}
        ) from e

    except BaseException:
        log.warning("attach_aborted", command=command, pid=process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "attach_complete",
        command=command,
        returncode=returncode,
        lines=len(output),
        duration_ms=duration_ms
    )

    return returncode, "\n".join(output)


class ShellRunner:
    """Runs operation steps on the local machine through `attach`."""

    async def attach(
        self, command: str, on_output: OutputCallback, timeout: Optional[float]
    ) -> tuple[int, str]:
        return await attach(command, on_output, timeout)
