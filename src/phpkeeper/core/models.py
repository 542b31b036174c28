"""Data models for PHP formulae, installations and operation progress."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from phpkeeper.analysis.versions import VersionNumber


@dataclass(frozen=True)
class Formula:
    """A Homebrew formula that provides one PHP version."""

    name: str
    display_name: str = ""
    installed_version: str | None = None
    upgrade_version: str | None = None
    prerelease: bool = False
    unavailable_after_upgrade: bool = False

    @property
    def is_installed(self) -> bool:
        return self.installed_version is not None

    @property
    def has_upgrade(self) -> bool:
        return self.upgrade_version is not None


@dataclass(frozen=True)
class OperationPlan:
    """The formulae an operation was asked to upgrade and install."""

    upgrading: tuple[Formula, ...] = ()
    installing: tuple[Formula, ...] = ()

    @property
    def unavailable(self) -> Formula | None:
        """First upgrading formula whose version disappears after the upgrade."""
        return next((f for f in self.upgrading if f.unavailable_after_upgrade), None)


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress update emitted while an operation runs."""

    value: float
    title: str
    description: str

    @classmethod
    def create(cls, value: float, title: str, description: str) -> ProgressEvent:
        return cls(value=min(max(value, 0.0), 1.0), title=title, description=description)


@dataclass(frozen=True)
class PhpInstallation:
    """A PHP version found in the Homebrew prefix."""

    version: VersionNumber
    is_healthy: bool = True
    path: str | None = None

    @property
    def short(self) -> str:
        return self.version.short


InstalledSnapshot = Mapping[str, PhpInstallation]


def snapshot_of(installations: Iterable[PhpInstallation]) -> InstalledSnapshot:
    """Build a read-only snapshot keyed by short version."""
    return MappingProxyType({i.short: i for i in installations})


EMPTY_SNAPSHOT: InstalledSnapshot = MappingProxyType({})


@dataclass
class OutdatedFormula:
    """An entry of `brew outdated --json=v2`."""

    name: str
    installed_versions: list[str] = field(default_factory=list)
    current_version: str | None = None
