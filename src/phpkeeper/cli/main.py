"""CLI entry point for phpkeeper, a Homebrew PHP version manager."""

from __future__ import annotations

import asyncio
import sys
from typing import List, Optional

import typer

from phpkeeper.cli.renderers import (
    console,
    formula_table,
    operation_progress,
    progress_sink,
    transcript_panel,
)
from phpkeeper.commands.base import BrewCommand
from phpkeeper.commands.install_upgrade import InstallAndUpgradeCommand
from phpkeeper.commands.remove import RemovePhpVersionCommand
from phpkeeper.core.errors import (
    EXIT_OPERATION_ERROR,
    EXIT_SYSTEM_ERROR,
    EXIT_TRANSIENT_ERROR,
    EXIT_USER_ERROR,
    OperationError,
    PhpKeeperError,
    TransientError,
    UserError,
    format_error_message,
)
from phpkeeper.core.cache import Cache
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import Formula
from phpkeeper.core.shell import ShellRunner
from phpkeeper.providers import brew_php, php_ini
from phpkeeper.providers.environment import HomebrewPhpEnvironment

log = get_logger(__name__)

app = typer.Typer(help="phpkeeper: install, upgrade and switch Homebrew PHP versions.")


def handle_error(error: Exception) -> int:
    """Handle errors and return appropriate exit codes.

    Args:
        error: The exception to handle.

    Returns:
        An integer exit code.
    """
    if isinstance(error, PhpKeeperError):
        log.error(
            "cli_error",
            error_type=type(error).__name__,
            message=error.message,
            context=error.context,
        )
        console.print(f"\n{format_error_message(error)}\n", style="bold red")

        if isinstance(error, OperationError):
            console.print(transcript_panel(error.log))
            return EXIT_OPERATION_ERROR
        if isinstance(error, TransientError):
            return EXIT_TRANSIENT_ERROR
        if isinstance(error, UserError):
            return EXIT_USER_ERROR
        return EXIT_SYSTEM_ERROR

    log.error("unexpected_error", error=str(error), exc_info=True)
    console.print(f"\n⚠️ Unexpected error occurred: {error}\n", style="bold red")
    return EXIT_SYSTEM_ERROR


async def _load(outdated: bool = False) -> tuple[HomebrewPhpEnvironment, List[Formula]]:
    environment = HomebrewPhpEnvironment()
    await environment.load()
    upgrades = None
    if outdated:
        upgrades = await brew_php.fetch_outdated(environment.brew, cache=Cache("brew"))
    formulae = brew_php.build_formulae(
        environment.installations, environment.php_alias, upgrades
    )
    return environment, formulae


async def _execute(command: BrewCommand) -> None:
    with operation_progress() as progress:
        task = progress.add_task(command.get_command_title(), total=1.0)
        try:
            await command.execute(progress_sink(progress, task))
        finally:
            Cache("brew").invalidate(brew_php.OUTDATED_CACHE_KEY)


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def versions(
    outdated: bool = typer.Option(False, "--outdated", "-o", help="Look up available upgrades"),
) -> None:
    """List the supported PHP versions and their installation status."""
    async def main() -> None:
        environment, formulae = await _load(outdated=outdated)
        console.print(formula_table(
            formulae, environment.installations, environment.current_version
        ))

    _run(main())


@app.command()
def install(names: List[str] = typer.Argument(..., help="Formulae or versions, e.g. php@8.2 8.1")) -> None:
    """Install one or more PHP versions."""
    async def main() -> None:
        environment, formulae = await _load()
        installing = [brew_php.find_formula(formulae, name) for name in names]
        await _execute(InstallAndUpgradeCommand(
            "Installing PHP...",
            upgrading=[],
            installing=installing,
            environment=environment,
            runner=ShellRunner(),
        ))
        console.print("✓ Installation complete", style="bold green")

    _run(main())


@app.command()
def upgrade(
    names: Optional[List[str]] = typer.Argument(None, help="Formulae to upgrade; all outdated if omitted"),
) -> None:
    """Upgrade installed PHP versions."""
    async def main() -> None:
        environment, formulae = await _load(outdated=True)
        if names:
            upgrading = [brew_php.find_formula(formulae, name) for name in names]
        else:
            upgrading = [f for f in formulae if f.is_installed and f.has_upgrade]

        if not upgrading:
            console.print("All installed PHP versions are up-to-date.", style="green")
            return

        await _execute(InstallAndUpgradeCommand(
            "Upgrading PHP...",
            upgrading=upgrading,
            installing=[],
            environment=environment,
            runner=ShellRunner(),
        ))
        console.print("✓ Upgrade complete", style="bold green")

    _run(main())


@app.command()
def repair() -> None:
    """Reinstall PHP versions that no longer start."""
    async def main() -> None:
        environment, _ = await _load()
        await _execute(InstallAndUpgradeCommand(
            "Repairing PHP...",
            upgrading=[],
            installing=[],
            environment=environment,
            runner=ShellRunner(),
        ))
        console.print("✓ All PHP installations are healthy", style="bold green")

    _run(main())


@app.command()
def remove(name: str = typer.Argument(..., help="Formula or version, e.g. php@8.0")) -> None:
    """Uninstall a PHP version."""
    async def main() -> None:
        environment, formulae = await _load()
        formula = brew_php.find_formula(formulae, name)
        if not formula.is_installed:
            console.print(f"{formula.display_name} is not installed.", style="yellow")
            return

        await _execute(RemovePhpVersionCommand(
            formula, environment=environment, runner=ShellRunner()
        ))
        console.print(f"✓ Removed {formula.display_name}", style="bold green")

    _run(main())


@app.command()
def switch(version: str = typer.Argument(..., help="Short version, e.g. 8.2")) -> None:
    """Link a different PHP version."""
    async def main() -> None:
        environment, _ = await _load()
        await environment.switch_to_version(version)
        console.print(f"✓ Now using PHP {environment.current_version}", style="bold green")

    _run(main())


@app.command(name="set-ini")
def set_ini(
    key: str = typer.Argument(..., help="ini directive, e.g. memory_limit"),
    value: str = typer.Argument(..., help="New value"),
    version: Optional[str] = typer.Option(None, "--version", "-v", help="Defaults to the active version"),
) -> None:
    """Change a php.ini directive of a PHP version."""
    async def main() -> None:
        target = version
        if target is None:
            environment = HomebrewPhpEnvironment()
            target = await environment.refresh_active_installation()
        if target is None:
            raise UserError("No active PHP version; pass --version")

        path = php_ini.persist_to_ini_file(key, value, php_ini.config_files(target), version=target)
        console.print(f"✓ {key} = {value} ({path})", style="bold green")

    _run(main())


if __name__ == "__main__":
    app()
