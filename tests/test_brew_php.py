"""Tests for the Homebrew PHP formulae provider."""

import asyncio

import pytest

from phpkeeper.core.errors import FormulaNotFoundError
from phpkeeper.core.models import OutdatedFormula, snapshot_of
from phpkeeper.providers import brew_php

from conftest import installation


def by_name(formulae):
    return {f.name: f for f in formulae}


def test_build_formulae_uses_alias_for_umbrella():
    formulae = by_name(brew_php.build_formulae(snapshot_of([]), "8.4"))

    assert "php" in formulae
    assert "php@8.4" not in formulae
    assert formulae["php"].display_name == "PHP 8.4"
    assert formulae["php@8.5"].prerelease
    assert not formulae["php@8.3"].is_installed


def test_build_formulae_marks_installed_and_upgrades():
    installations = snapshot_of([installation("8.4.1"), installation("8.2.26")])
    outdated = [
        OutdatedFormula("php@8.2", ["8.2.26"], "8.2.27"),
        OutdatedFormula("php", ["8.3.14_1"], "8.4.2"),
    ]

    formulae = by_name(brew_php.build_formulae(installations, "8.4", outdated))

    assert formulae["php@8.2"].installed_version == "8.2.26"
    assert formulae["php@8.2"].upgrade_version == "8.2.27"
    assert not formulae["php@8.2"].unavailable_after_upgrade
    assert formulae["php"].upgrade_version is None


def test_umbrella_upgrade_to_new_minor_is_unavailable_after_upgrade():
    installations = snapshot_of([installation("8.3.14")])
    outdated = [OutdatedFormula("php", ["8.3.14"], "8.4.1")]

    formulae = by_name(brew_php.build_formulae(installations, "8.3", outdated))

    assert formulae["php"].upgrade_version == "8.4.1"
    assert formulae["php"].unavailable_after_upgrade


def test_outdated_umbrella_keeps_name_after_alias_moved():
    installations = snapshot_of([installation("8.3.14"), installation("8.2.27")])
    outdated = [OutdatedFormula("php", ["8.3.14"], "8.4.1")]

    formulae = by_name(brew_php.build_formulae(installations, "8.4", outdated))

    assert formulae["php"].display_name == "PHP 8.3"
    assert formulae["php"].upgrade_version == "8.4.1"
    assert formulae["php"].unavailable_after_upgrade
    assert not formulae["php@8.4"].is_installed
    assert formulae["php@8.2"].installed_version == "8.2.27"


def test_parse_outdated_keeps_php_formulae():
    items = [
        {"name": "php@8.1", "installed_versions": ["8.1.30"], "current_version": "8.1.31"},
        {"name": "node", "installed_versions": ["22.1.0"], "current_version": "23.0.0"},
    ]
    assert brew_php.parse_outdated(items) == [OutdatedFormula("php@8.1", ["8.1.30"], "8.1.31")]


@pytest.mark.parametrize("name", ["php@8.2", "8.2", "PHP 8.2"])
def test_find_formula(name):
    formulae = brew_php.build_formulae(snapshot_of([]), "8.4")
    assert brew_php.find_formula(formulae, name).name == "php@8.2"


def test_find_formula_accepts_versioned_name_of_alias():
    formulae = brew_php.build_formulae(snapshot_of([]), "8.4")
    assert brew_php.find_formula(formulae, "php@8.4").name == "php"


def test_find_formula_unknown():
    with pytest.raises(FormulaNotFoundError):
        brew_php.find_formula(brew_php.build_formulae(snapshot_of([]), "8.4"), "php@4.4")


def test_determine_php_alias(monkeypatch):
    async def fake_run_json(*cmd, timeout=None):
        assert cmd[1:] == ("info", "--json=v2", "php")
        return {"formulae": [{"name": "php", "versions": {"stable": "8.4.2"}}]}

    monkeypatch.setattr(brew_php, "run_json", fake_run_json)
    assert asyncio.run(brew_php.determine_php_alias("brew")) == "8.4"


def test_list_installed_taps(monkeypatch):
    async def fake_run_capture(*cmd, timeout=None):
        return "homebrew/core\nshivammathur/php\n\n", "", 0

    monkeypatch.setattr(brew_php, "run_capture", fake_run_capture)
    assert asyncio.run(brew_php.list_installed_taps("brew")) == {"homebrew/core", "shivammathur/php"}


def test_fetch_outdated_without_update(monkeypatch):
    calls = []

    async def fake_run_json(*cmd, timeout=None):
        calls.append(cmd)
        return {"formulae": [{"name": "php", "installed_versions": ["8.3.14"], "current_version": "8.4.1"}]}

    monkeypatch.setattr(brew_php, "run_json", fake_run_json)
    outdated = asyncio.run(brew_php.fetch_outdated("brew", update=False))

    assert calls == [("brew", "outdated", "--json=v2", "--formulae")]
    assert outdated[0].current_version == "8.4.1"
