"""Read and write PHP configuration values in php.ini and conf.d files."""

from __future__ import annotations

import re
from pathlib import Path

from phpkeeper.core.config import Homebrew, HomebrewEnv
from phpkeeper.core.errors import ConfigurationMissingError
from phpkeeper.core.logging import get_logger

log = get_logger(__name__)


def config_files(version: str, homebrew: HomebrewEnv = Homebrew) -> list[Path]:
    """The php.ini of a version followed by its conf.d/*.ini files."""
    base = homebrew.etc / "php" / version
    files = [base / "php.ini"]
    conf_d = base / "conf.d"
    if conf_d.is_dir():
        files.extend(sorted(conf_d.glob("*.ini")))
    return [f for f in files if f.is_file()]


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"^[ \t]*{re.escape(key)}[ \t]*=[ \t]*(.*?)[ \t]*$", re.MULTILINE)


def find_config_file(key: str, files: list[Path]) -> Path | None:
    """First file that sets `key` on an uncommented line."""
    pattern = _key_pattern(key)
    for f in files:
        if pattern.search(f.read_text()):
            return f
    return None


def read_value(key: str, files: list[Path]) -> str | None:
    pattern = _key_pattern(key)
    for f in files:
        match = pattern.search(f.read_text())
        if match:
            return match.group(1)
    return None


def persist_to_ini_file(key: str, value: str, files: list[Path], version: str | None = None) -> Path:
    """Replace the line setting `key` with `key = value`.

    Args:
        key: The ini directive, e.g. "memory_limit".
        value: The new value.
        files: Candidate files, searched in order.
        version: Short PHP version, used for error context.

    Returns:
        The file that was changed.

    Raises:
        ConfigurationMissingError: If no file sets the key.
    """
    f = find_config_file(key, files)
    if f is None:
        log.error("ini_key_missing", key=key, version=version)
        raise ConfigurationMissingError(key, version=version)

    text = _key_pattern(key).sub(lambda _: f"{key} = {value}", f.read_text(), count=1)
    f.write_text(text)
    log.info("ini_value_persisted", key=key, value=value, path=str(f))
    return f
