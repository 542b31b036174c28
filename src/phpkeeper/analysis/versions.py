"""Parse PHP version numbers as reported by Homebrew and php-config."""

from __future__ import annotations

import re
from dataclasses import dataclass

from phpkeeper.core.errors import VersionParseError

# Accepts "8.2", "8.2.10", "8.2.10_1" (Homebrew revision) and "8.3.0RC1".
_VERSION_RE = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?")


@dataclass(frozen=True, order=True)
class VersionNumber:
    """A PHP version number."""

    major: int
    minor: int
    patch: int | None = None

    @classmethod
    def parse(cls, text: str | None) -> VersionNumber:
        """Parse a version string.

        Args:
            text: The version string, e.g. "8.2.10_1".

        Returns:
            The parsed VersionNumber.

        Raises:
            VersionParseError: If the text does not start with major.minor.
        """
        match = _VERSION_RE.match(text or "")
        if match is None:
            raise VersionParseError(text)

        major, minor, patch = match.groups()
        return cls(int(major), int(minor), int(patch) if patch is not None else None)

    @classmethod
    def try_parse(cls, text: str | None) -> VersionNumber | None:
        try:
            return cls.parse(text)
        except VersionParseError:
            return None

    @property
    def short(self) -> str:
        return f"{self.major}.{self.minor}"

    @property
    def text(self) -> str:
        if self.patch is None:
            return self.short
        return f"{self.short}.{self.patch}"

    def __str__(self) -> str:
        return self.text


def formula_for(short: str, alias: str | None) -> str:
    """Map a short version to its Homebrew formula name.

    The version Homebrew currently ships as `php` is only reachable
    through the umbrella formula.
    """
    if short == alias:
        return "php"
    return f"php@{short}"
