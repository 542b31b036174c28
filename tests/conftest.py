"""Pytest fixtures and fakes for phpkeeper tests."""

import os
import tempfile

# Keep logs, cache and the Homebrew prefix away from the real home directory.
os.environ.setdefault("PHPKEEPER_HOME", tempfile.mkdtemp(prefix="phpkeeper-home-"))
os.environ.setdefault("PHPKEEPER_BREW_PREFIX", tempfile.mkdtemp(prefix="phpkeeper-brew-"))

import pytest

from phpkeeper.analysis.versions import VersionNumber
from phpkeeper.core.config import REQUIRED_TAPS
from phpkeeper.core.errors import BrewTimeoutError
from phpkeeper.core.models import Formula, PhpInstallation, snapshot_of


class FakeRunner:
    """Records commands and replays scripted output for them."""

    def __init__(self):
        self.commands = []
        self.timeouts = []
        self._scripts = []

    def script(self, pattern, lines=(), returncode=0, timeout=False):
        """Reply to commands containing `pattern` with the given output."""
        self._scripts.append((pattern, list(lines), returncode, timeout))
        return self

    async def attach(self, command, on_output, timeout):
        self.commands.append(command)
        self.timeouts.append(timeout)
        for pattern, lines, returncode, timed_out in self._scripts:
            if pattern in command:
                for line in lines:
                    on_output(line, False)
                if timed_out:
                    raise BrewTimeoutError(command=command, timeout=timeout)
                return returncode, "\n".join(lines)
        return 0, ""


class FakeEnvironment:
    """In-memory PHP environment recording the calls it receives."""

    def __init__(self, installations=(), alias="8.4", current="8.2", taps=REQUIRED_TAPS, after_detect=None):
        self.installed_taps = set(taps)
        self.brew = "brew"
        self._installations = snapshot_of(installations)
        self._after_detect = None if after_detect is None else snapshot_of(after_detect)
        self._php_alias = alias
        self._current_version = current
        self.calls = []

    @property
    def installations(self):
        return self._installations

    @property
    def php_alias(self):
        return self._php_alias

    @property
    def current_version(self):
        return self._current_version

    async def load(self):
        self.calls.append("load")

    async def detect_php_versions(self):
        self.calls.append("detect")
        if self._after_detect is not None:
            self._installations = self._after_detect
        return self._installations

    async def determine_php_alias(self):
        self.calls.append("alias")
        return self._php_alias

    async def refresh_active_installation(self):
        self.calls.append("refresh")
        return self._current_version

    async def switch_to_version(self, version, silently=False):
        self.calls.append(("switch", version, silently))
        self._current_version = version


def installation(version, healthy=True):
    return PhpInstallation(version=VersionNumber.parse(version), is_healthy=healthy)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_environment():
    """Factory for FakeEnvironment; installations given as {version: healthy}."""
    def factory(installed=None, after_detect=None, **kwargs):
        def build(mapping):
            return [installation(v, healthy) for v, healthy in mapping.items()]

        return FakeEnvironment(
            installations=build(installed or {}),
            after_detect=None if after_detect is None else build(after_detect),
            **kwargs,
        )

    return factory


@pytest.fixture
def formula():
    """Factory for Formula values."""
    def factory(name, installed=None, upgrade=None, unavailable=False):
        short = name.removeprefix("php@") if "@" in name else "8.4"
        return Formula(
            name=name,
            display_name=f"PHP {short}",
            installed_version=installed,
            upgrade_version=upgrade,
            unavailable_after_upgrade=unavailable,
        )

    return factory


@pytest.fixture
def events():
    """A list that doubles as a progress sink via its append method."""
    return []
