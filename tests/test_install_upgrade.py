"""Tests for the install-and-upgrade operation."""

import asyncio

import pytest

from phpkeeper.commands.install_upgrade import (
    COMPLETED_TITLE,
    PREPARING_TITLE,
    InstallAndUpgradeCommand,
    repair_targets,
)
from phpkeeper.commands.progress import RELOADING
from phpkeeper.core.errors import OperationError, OperationTimeoutError

UPGRADE_ENV = "export HOMEBREW_NO_INSTALL_UPGRADE=true; export HOMEBREW_NO_INSTALL_CLEANUP=true; "
REPAIR_ENV = UPGRADE_ENV + "export HOMEBREW_NO_INSTALLED_DEPENDENTS_CHECK=true; "


def make_command(environment, runner, upgrading=(), installing=(), title="Updating PHP..."):
    return InstallAndUpgradeCommand(
        title,
        upgrading=list(upgrading),
        installing=list(installing),
        environment=environment,
        runner=runner,
        brew="brew",
    )


def test_empty_plan_still_finalizes(make_environment, runner, events):
    environment = make_environment({"8.2": True, "8.3": True})
    command = make_command(environment, runner)

    asyncio.run(command.execute(events.append))

    assert runner.commands == []
    assert (events[0].value, events[0].title) == (0.2, PREPARING_TITLE)
    assert (events[-2].value, events[-2].description) == (0.95, RELOADING)
    assert (events[-1].value, events[-1].title) == (1.0, COMPLETED_TITLE)
    assert environment.calls == ["detect", "detect", "refresh", ("switch", "8.2", True)]


def test_upgrades_run_before_installs(make_environment, runner, events, formula):
    environment = make_environment({"8.1": True, "8.2": True})
    command = make_command(
        environment,
        runner,
        upgrading=[formula("php@8.1", "8.1.30", "8.1.31"), formula("php@8.2", "8.2.26", "8.2.27")],
        installing=[formula("php@8.3")],
    )

    asyncio.run(command.execute(events.append))

    assert runner.commands == [
        UPGRADE_ENV + "brew upgrade php@8.1 php@8.2",
        UPGRADE_ENV + "brew install php@8.3 --force",
    ]
    assert "alias" not in environment.calls


def test_install_only_skips_upgrade_step(make_environment, runner, events, formula):
    command = make_command(make_environment(), runner, installing=[formula("php@8.0"), formula("php@7.4")])

    asyncio.run(command.execute(events.append))

    assert runner.commands == [UPGRADE_ENV + "brew install php@8.0 php@7.4 --force"]


def test_missing_taps_are_added_first(make_environment, runner, events, formula):
    environment = make_environment(taps=())
    command = make_command(environment, runner, installing=[formula("php@8.3")])

    asyncio.run(command.execute(events.append))

    assert runner.commands[:2] == ["brew tap shivammathur/php", "brew tap shivammathur/extensions"]
    assert runner.commands[2].endswith("brew install php@8.3 --force")


def test_unavailable_formula_takes_swap_branch(make_environment, runner, events, formula):
    environment = make_environment({"8.3": True, "8.2": True})
    command = make_command(
        environment,
        runner,
        upgrading=[
            formula("php", "8.3.14", "8.4.1", unavailable=True),
            formula("php@8.2", "8.2.26", "8.2.27"),
        ],
        installing=[formula("php@8.0")],
    )

    asyncio.run(command.execute(events.append))

    assert runner.commands == [
        "export HOMEBREW_NO_INSTALL_CLEANUP=true; brew upgrade php; brew install php@8.3;"
    ]
    assert environment.calls[0] == "alias"


def test_only_first_unavailable_formula_is_swapped(make_environment, runner, events, formula):
    command = make_command(
        make_environment(),
        runner,
        upgrading=[
            formula("php", "8.3.14", "8.4.1", unavailable=True),
            formula("php@8.1", "8.1.30", "8.1.31", unavailable=True),
        ],
    )

    asyncio.run(command.execute(events.append))

    assert len(runner.commands) == 1
    assert runner.commands[0].endswith("brew install php@8.3;")


def test_swap_is_skipped_when_version_cannot_be_derived(make_environment, runner, events, formula):
    environment = make_environment()
    command = make_command(
        environment, runner, upgrading=[formula("php", None, "8.4.1", unavailable=True)]
    )

    asyncio.run(command.execute(events.append))

    assert runner.commands == []
    assert "alias" in environment.calls
    assert events[-1].value == 1.0


def test_repair_substitutes_umbrella_formula(make_environment):
    environment = make_environment({"8.1": True, "8.2": False}, alias="8.2")
    assert repair_targets(environment) == ["php"]


def test_repair_targets_versioned_formulae(make_environment):
    environment = make_environment({"8.1": False, "8.2": True, "7.4": False}, alias="8.4")
    assert repair_targets(environment) == ["php@8.1", "php@7.4"]


def test_repair_uses_requeried_snapshot(make_environment, runner, events, formula):
    environment = make_environment(
        {"8.1": True, "8.2": True},
        after_detect={"8.1": True, "8.2": False},
        alias="8.2",
    )
    command = make_command(environment, runner, upgrading=[formula("php@8.1", "8.1.30", "8.1.31")])

    asyncio.run(command.execute(events.append))

    assert runner.commands[-1] == REPAIR_ENV + "brew reinstall php --force"


def test_healthy_installations_skip_repair(make_environment, runner, events):
    command = make_command(make_environment({"8.1": True}, after_detect={"8.1": True}), runner)
    asyncio.run(command.execute(events.append))
    assert not any("reinstall" in c for c in runner.commands)


def test_failure_aborts_remaining_steps(make_environment, runner, events, formula):
    runner.script("upgrade", ["==> Upgrading php@8.1", "", "Error: An exception occurred"], returncode=1)
    environment = make_environment({"8.1": True})
    command = make_command(
        environment,
        runner,
        upgrading=[formula("php@8.1", "8.1.30", "8.1.31")],
        installing=[formula("php@8.3")],
    )

    with pytest.raises(OperationError) as exc_info:
        asyncio.run(command.execute(events.append))

    assert exc_info.value.log == ["==> Upgrading php@8.1", "Error: An exception occurred"]
    assert len(runner.commands) == 1
    assert environment.calls == []
    assert all(e.value < 1.0 for e in events)


def test_timeout_aborts_with_partial_transcript(make_environment, runner, events, formula):
    runner.script("install", ["==> Fetching php@8.3"], timeout=True)
    command = make_command(make_environment(), runner, installing=[formula("php@8.3")])

    with pytest.raises(OperationTimeoutError) as exc_info:
        asyncio.run(command.execute(events.append))

    assert exc_info.value.log == ["==> Fetching php@8.3"]


def test_step_progress_uses_command_title(make_environment, runner, events, formula):
    runner.script("install", ["==> Pouring php@8.3--8.3.14.arm64_sonoma.bottle.tar.gz", "==> Summary"])
    command = make_command(make_environment(), runner, installing=[formula("php@8.3")], title="Installing PHP 8.3...")

    asyncio.run(command.execute(events.append))

    step_events = [e for e in events if e.value in (0.80, 0.90)]
    assert [e.value for e in step_events] == [0.80, 0.90]
    assert all(e.title == "Installing PHP 8.3..." for e in step_events)


def test_no_active_version_is_not_restored(make_environment, runner, events):
    environment = make_environment(current=None)
    asyncio.run(make_command(environment, runner).execute(events.append))
    assert not any(isinstance(call, tuple) for call in environment.calls)


def test_command_title(make_environment, runner):
    assert make_command(make_environment(), runner, title="Upgrading PHP...").get_command_title() == "Upgrading PHP..."
