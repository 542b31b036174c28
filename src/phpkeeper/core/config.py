"""Configuration module for the Homebrew and phpkeeper environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class HomebrewEnv:
    """Paths of the Homebrew installation phpkeeper drives."""
    prefix: Path

    @property
    def brew(self) -> Path:
        return self.prefix / "bin" / "brew"

    @property
    def bin(self) -> Path:
        return self.prefix / "bin"

    @property
    def opt(self) -> Path:
        return self.prefix / "opt"

    @property
    def cellar(self) -> Path:
        return self.prefix / "Cellar"

    @property
    def etc(self) -> Path:
        return self.prefix / "etc"


_PREFIX_CANDIDATES = (Path("/opt/homebrew"), Path("/usr/local"))


def discover_env() -> HomebrewEnv:
    """Discover the Homebrew prefix.

    `PHPKEEPER_BREW_PREFIX` wins; otherwise the Apple Silicon prefix is
    preferred over the Intel one when both carry a `brew` binary.
    """
    override = os.environ.get("PHPKEEPER_BREW_PREFIX")
    if override:
        return HomebrewEnv(prefix=Path(override))

    for prefix in _PREFIX_CANDIDATES:
        if (prefix / "bin" / "brew").exists():
            return HomebrewEnv(prefix=prefix)

    return HomebrewEnv(prefix=_PREFIX_CANDIDATES[0])


Homebrew = discover_env()

APP_DIR = Path(os.environ.get("PHPKEEPER_HOME", Path.home() / ".phpkeeper"))
CACHE_DIR = APP_DIR / "cache"

# Taps are checked in this order: formulae in the extensions tap may depend
# on formulae of the PHP tap.
PHP_TAP = "shivammathur/php"
EXTENSIONS_TAP = "shivammathur/extensions"
REQUIRED_TAPS = (PHP_TAP, EXTENSIONS_TAP)

UMBRELLA_FORMULA = "php"

SUPPORTED_PHP_VERSIONS = (
    "8.5", "8.4", "8.3", "8.2", "8.1", "8.0",
    "7.4", "7.3", "7.2", "7.1", "7.0", "5.6",
)
EXPERIMENTAL_PHP_VERSIONS = frozenset({"8.5"})

STEP_TIMEOUT_SECONDS = 15 * 60
QUERY_TIMEOUT_SECONDS = 60
OUTDATED_CACHE_TTL_SECONDS = 60 * 60
