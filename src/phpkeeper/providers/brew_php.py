"""Homebrew provider for PHP formulae, taps and the `php` alias."""

from __future__ import annotations

import time
from typing import Any, List

from phpkeeper.analysis.versions import VersionNumber, formula_for
from phpkeeper.core.cache import Cache
from phpkeeper.core.config import (
    EXPERIMENTAL_PHP_VERSIONS,
    OUTDATED_CACHE_TTL_SECONDS,
    QUERY_TIMEOUT_SECONDS,
    SUPPORTED_PHP_VERSIONS,
    UMBRELLA_FORMULA,
)
from phpkeeper.core.errors import BrewCommandError, FormulaNotFoundError
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import Formula, InstalledSnapshot, OutdatedFormula
from phpkeeper.core.shell import run_capture, run_json

log = get_logger(__name__)

OUTDATED_CACHE_KEY = "outdated_formulae"


async def list_installed_taps(brew: str) -> set[str]:
    """List the taps registered with Homebrew.

    Args:
        brew: Path of the brew binary.

    Returns:
        The set of tap names, e.g. {"homebrew/core", "shivammathur/php"}.
    """
    out, err, code = await run_capture(brew, "tap", timeout=QUERY_TIMEOUT_SECONDS)
    if code != 0:
        raise BrewCommandError(command=f"{brew} tap", returncode=code, error=err or out)

    taps = {line.strip() for line in out.splitlines() if line.strip()}
    log.debug("taps_loaded", count=len(taps))
    return taps


async def determine_php_alias(brew: str) -> str | None:
    """Short version currently shipped by the umbrella `php` formula.

    Args:
        brew: Path of the brew binary.

    Returns:
        The short version, e.g. "8.4", or None if Homebrew reports none.
    """
    data = await run_json(brew, "info", "--json=v2", UMBRELLA_FORMULA, timeout=QUERY_TIMEOUT_SECONDS)
    f = (data.get("formulae") or [{}])[0]
    version = VersionNumber.try_parse(f.get("versions", {}).get("stable"))
    if version is None:
        log.warning("php_alias_unknown")
        return None

    log.info("php_alias_determined", version=version.short)
    return version.short


def parse_outdated(items: list[dict[str, Any]]) -> List[OutdatedFormula]:
    """Keep the PHP formulae of a `brew outdated --json=v2` payload."""
    return [
        OutdatedFormula(
            name=item["name"],
            installed_versions=list(item.get("installed_versions", [])),
            current_version=item.get("current_version"),
        )
        for item in items
        if item.get("name", "").startswith("php")
    ]


async def fetch_outdated(
    brew: str, cache: Cache | None = None, update: bool = True
) -> List[OutdatedFormula]:
    """Ask Homebrew which PHP formulae have upgrades.

    Args:
        brew: Path of the brew binary.
        cache: Optional cache; stale entries are served on transient errors.
        update: Run `brew update` first so that the answer is current.

    Returns:
        The outdated PHP formulae.
    """
    async def loader() -> list[dict[str, Any]]:
        start = time.perf_counter()
        if update:
            _, err, code = await run_capture(brew, "update", timeout=QUERY_TIMEOUT_SECONDS * 5)
            if code != 0:
                raise BrewCommandError(command=f"{brew} update", returncode=code, error=err)

        data = await run_json(brew, "outdated", "--json=v2", "--formulae", timeout=QUERY_TIMEOUT_SECONDS)
        log.info(
            "outdated_loaded",
            count=len(data.get("formulae", [])),
            duration_ms=int((time.perf_counter() - start) * 1000)
        )
        return data.get("formulae", [])

    if cache is None:
        items = await loader()
    else:
        items = await cache.get_or_set(
            OUTDATED_CACHE_KEY, OUTDATED_CACHE_TTL_SECONDS, loader, allow_stale=True
        )

    return parse_outdated(items)


def _upgrade_version(installed: VersionNumber, outdated: List[OutdatedFormula]) -> str | None:
    for entry in outdated:
        if any(VersionNumber.try_parse(v) == installed for v in entry.installed_versions):
            return entry.current_version
    return None


def _unavailable_after_upgrade(name: str, installed: str | None, upgrade: str | None) -> bool:
    """True when upgrading the umbrella formula moves it to another minor version."""
    if name != UMBRELLA_FORMULA or installed is None or upgrade is None:
        return False

    current = VersionNumber.try_parse(installed)
    target = VersionNumber.try_parse(upgrade)
    if current is None or target is None:
        return False
    return current.short != target.short


def _umbrella_short(
    installations: InstalledSnapshot,
    alias: str | None,
    outdated: List[OutdatedFormula] | None,
) -> str | None:
    """Short version installed as the umbrella `php` formula.

    `brew outdated` reports the umbrella under its own name with the version
    actually installed, which lags behind the alias until it is upgraded.
    """
    for entry in outdated or []:
        if entry.name != UMBRELLA_FORMULA:
            continue
        for text in entry.installed_versions:
            version = VersionNumber.try_parse(text)
            if version is not None and version.short in installations:
                return version.short
    return alias


def build_formulae(
    installations: InstalledSnapshot,
    alias: str | None,
    outdated: List[OutdatedFormula] | None = None,
) -> List[Formula]:
    """Describe every supported PHP version as a formula.

    Args:
        installations: Installed versions keyed by short version.
        alias: Short version shipped as the umbrella `php` formula.
        outdated: Outdated formulae, when upgrades were looked up. An
            outdated umbrella keeps the `php` name for the version it has
            installed, even when the alias has moved on.

    Returns:
        Formulae ordered from newest to oldest version.
    """
    formulae: List[Formula] = []
    umbrella = _umbrella_short(installations, alias, outdated)

    for short in SUPPORTED_PHP_VERSIONS:
        name = formula_for(short, umbrella)
        installation = installations.get(short)
        installed_version = installation.version.text if installation else None
        upgrade_version = None
        if installation and outdated:
            upgrade_version = _upgrade_version(installation.version, outdated)

        formulae.append(Formula(
            name=name,
            display_name=f"PHP {short}",
            installed_version=installed_version,
            upgrade_version=upgrade_version,
            prerelease=short in EXPERIMENTAL_PHP_VERSIONS,
            unavailable_after_upgrade=_unavailable_after_upgrade(
                name, installed_version, upgrade_version
            ),
        ))

    return formulae


def find_formula(formulae: List[Formula], name: str) -> Formula:
    """Find a formula by name ("php@8.2", "php") or short version ("8.2").

    Raises:
        FormulaNotFoundError: If no formula matches.
    """
    for f in formulae:
        short = f.display_name.removeprefix("PHP ")
        if name in (f.name, f.display_name, short, f"php@{short}"):
            return f
    raise FormulaNotFoundError(formula=name)
