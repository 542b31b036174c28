"""Module defining custom exceptions for the phpkeeper application."""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, Self, TypeVar

from phpkeeper.core.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# Exit Codes
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2
EXIT_TRANSIENT_ERROR = 3
EXIT_OPERATION_ERROR = 4


class PhpKeeperError(Exception):
    """Base exception class with context propagation.

    All exceptions in phpkeeper should inherit from this class.
    Context is a dictionary that accumulates relevant information
    as the exception propagates up the call stack.

    Example:
        raise PhpKeeperError("An error occurred", context={"formula": "php@8.2"})

        # Or with context propagation
        try:
            ...
        except PhpKeeperError as e:
            raise e.with_context(operation="install")
    """
    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **new_context: Any) -> Self:
        """Returns the exception with updated context.

        Args:
            **new_context: Additional context to add to the exception.

        Returns:
            The same exception instance with merged context.
        """
        self.context.update(new_context)
        return self

    def __str__(self) -> str:
        """String representation of the exception including context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class TransientError(PhpKeeperError):
    """Errors that may succeed when retried.

    These errors are typically due to temporary conditions such as
    network issues or resource unavailability.

    Operations raising this exception should be idempotent.
    """
    pass


class UserError(PhpKeeperError):
    """Errors caused by user actions or inputs.

    These errors indicate that the user has made a mistake or provided
    invalid input, and should not be retried without correction.
    """
    pass


class SystemError(PhpKeeperError):
    """Errors due to system-level issues.

    These errors indicate problems with the system environment, such as
    missing files, broken installations or permission issues.
    """
    pass


## Specific Exceptions ##

class BrewCommandError(TransientError):
    """A read-only brew query returned a non-zero exit code.

    Typically indicates:
        - Network issues
        - Brew service outages
        - Corrupted local Brew installation

    Queries are retried automatically by `retry_on_transient`.
    """
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        returncode: int | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode
        if error:
            ctx["error"] = error

        if message is None:
            message = f"Brew command failed with exit code {returncode or 'unknown'}"

        super().__init__(message, context=ctx)


class BrewTimeoutError(TransientError):
    """A shell command exceeded its timeout.

    Typically indicates slow network conditions or very large downloads.
    """
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        timeout: float | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if timeout is not None:
            ctx["timeout"] = timeout

        if message is None:
            message = f"Command timed out after {timeout or 'unknown'}s"

        super().__init__(message, context=ctx)


class OperationError(SystemError):
    """A mutating Homebrew step (tap, install, upgrade, reinstall) failed.

    Carries the ordered transcript of every non-empty line the step printed
    before it failed, so that the caller can offer it for diagnosis.

    Operations are never retried: steps that already ran are not rolled back.
    """
    def __init__(
        self,
        message: str = "The command failed to run correctly.",
        log: list[str] | None = None,
        command: str | None = None,
        returncode: int | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode

        self.log = list(log or [])
        super().__init__(message, context=ctx)


class OperationTimeoutError(OperationError):
    """A mutating Homebrew step was killed after exceeding its timeout."""
    def __init__(
        self,
        timeout: float,
        log: list[str] | None = None,
        command: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        ctx["timeout"] = timeout
        super().__init__(
            f"The command did not finish within {timeout:g}s.",
            log=log,
            command=command,
            context=ctx,
        )


class VersionParseError(UserError):
    """A version string could not be parsed as `major.minor[.patch]`."""
    def __init__(self, text: str | None, context: dict[str, Any] | None = None) -> None:
        ctx = context or {}
        ctx["version"] = text
        super().__init__(f"Could not parse version number '{text}'", context=ctx)


class FormulaNotFoundError(UserError):
    """Requested PHP formula is not one of the supported formulae.

    This is a UserError - do not retry without changing the formula name.
    """
    def __init__(
        self,
        message: str | None = None,
        formula: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if formula:
            ctx["formula"] = formula

        if message is None:
            message = f"Formula '{formula or 'unknown'}' not found"

        super().__init__(message, context=ctx)


class ConfigurationMissingError(SystemError):
    """No PHP configuration file carries the requested key."""
    def __init__(
        self,
        key: str,
        version: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        ctx["key"] = key
        if version:
            ctx["version"] = version
        super().__init__(f"No configuration file contains '{key}'", context=ctx)


class CacheError(SystemError):
    """Errors related to cache access or corruption.

    Typically indicates:
        - File system permission issues
        - Disk space exhaustion
        - Read-only file system
    """
    def __init__(
        self,
        message: str | None = None,
        key: str | None = None,
        namespace: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if key:
            ctx["key"] = key
        if namespace:
            ctx["namespace"] = namespace

        super().__init__(message or "Cache operation failed", context=ctx)


def retry_on_transient(
    max_retries: int = 3,
    base_delay: float = 1.0,
    backoff: float = 2.0
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry async functions on transient errors with exponential backoff.

    Args:
        max_retries: Maximum number of attempts before giving up.
        base_delay: Initial delay between retries in seconds.
        backoff: Multiplier for delay to implement exponential backoff.

    Returns:
        A decorator that applies the retry logic to the decorated function.

    Note:
        Only read-only queries are decorated with this. Mutating operations
        raise `OperationError`, which is not transient.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except TransientError as e:
                    if attempt == max_retries:
                        log.error(
                            "retry_exhausted",
                            function=func.__name__,
                            attempts=max_retries,
                            error=str(e),
                        )
                        raise

                    delay = base_delay * (backoff ** (attempt - 1))
                    log.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_retries,
                        delay_seconds=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

            raise AssertionError("unreachable")

        return async_wrapper  # type: ignore

    return decorator


# CLI Error Message Templates

ERROR_TEMPLATES = {
    FormulaNotFoundError: (
        "❌ Formula Not Found: {formula}\n"
        "   Suggestion: Try 'phpkeeper versions' to see the supported formulae"
    ),
    OperationTimeoutError: (
        "⚠️ Homebrew did not finish within {timeout}s\n"
        "   Command: {command}"
    ),
    OperationError: (
        "⚠️ {message}\n"
        "   Command: {command}\n"
        "   Exit Code: {returncode}"
    ),
    BrewTimeoutError: (
        "⚠️ Command timed out after {timeout}s: {command}\n"
        "   The operation took too long - this may be due to network issues"
    ),
    BrewCommandError: (
        "⚠️ Brew command failed: {command}\n"
        "   Exit Code: {returncode}\n"
        "   Error: {error}"
    ),
    ConfigurationMissingError: (
        "⚠️ {message}\n"
        "   Check the php.ini and conf.d files of PHP {version}"
    ),
    CacheError: (
        "⚠️ Cache error: {message}\n"
        "   Fix: Check the permissions of ~/.phpkeeper/cache"
    ),
    TransientError: (
        "⚠️ Temporary failure: {message}\n"
        "   This may resolve itself - try again in a moment"
    ),
    UserError: (
        "❌ {message}"
    ),
    SystemError: (
        "⚠️ System error: {message}\n"
        "   Please check your Homebrew installation and try again"
    ),
    PhpKeeperError: (
        "❌ {message}"
    ),
}

def format_error_message(error: PhpKeeperError) -> str:
    """Formats an error message for CLI display based on the error type.

    Args:
        error: The PhpKeeperError instance to format.

    Returns:
        A formatted string message for CLI display.
    """
    template = ERROR_TEMPLATES.get(type(error), ERROR_TEMPLATES[PhpKeeperError])
    try:
        return template.format(message=error.message, **error.context)
    except KeyError:
        return f"❌ {error.message}"
