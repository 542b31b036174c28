"""Tests for mapping Homebrew output to progress."""

import pytest

from phpkeeper.commands.progress import (
    DOWNLOADING,
    FETCHING,
    INSTALLING,
    POURING,
    SUMMARY,
    extract_subject,
    report_installation_progress,
)

MANIFEST = "==> Downloading https://ghcr.io/v2/shivammathur/php/php/manifests/8.3.14"


def test_manifest_download_counts_as_fetching():
    assert report_installation_progress(MANIFEST) == (0.10, FETCHING)


@pytest.mark.parametrize("extra", ["Summary", "==> Pouring php", "==> Installing php@8.1"])
def test_manifest_download_wins_over_other_markers(extra):
    value, message = report_installation_progress(f"{MANIFEST} {extra}")
    assert value == 0.10
    assert message == FETCHING


@pytest.mark.parametrize("line, value", [
    ("==> Summary", 0.90),
    ("==> Pouring php@8.2--8.2.27.arm64_sonoma.bottle.tar.gz", 0.80),
    ("==> Installing php@8.2", 0.60),
    ("==> Downloading https://ghcr.io/v2/homebrew/core/icu4c/blobs/sha256:0a1b", 0.25),
    ("==> Fetching php@8.2", 0.10),
])
def test_marker_values(line, value):
    assert report_installation_progress(line)[0] == value


@pytest.mark.parametrize("line", [
    "",
    "Already downloaded: /Users/nico/Library/Caches/Homebrew/php--8.3.14.tar.gz",
    "Warning: php@8.1 8.1.31 is already installed and up-to-date.",
    "🍺  /opt/homebrew/Cellar/php@8.2/8.2.27: 520 files, 83.4MB",
])
def test_unknown_lines_report_nothing(line):
    assert report_installation_progress(line) is None


def test_summary_wins_over_pouring():
    assert report_installation_progress("==> Summary of Pouring") == (0.90, SUMMARY)


def test_extract_subject():
    assert extract_subject("==> Installing php@8.1") == "php@8.1"
    assert extract_subject("==> Fetching php@8.1") == "php@8.1"


def test_extract_subject_without_token():
    assert extract_subject("==> Installing") is None
    assert extract_subject("nothing to see") is None


def test_missing_subject_keeps_base_message():
    assert report_installation_progress("==> Installing") == (0.60, INSTALLING)
    assert report_installation_progress("==> Pouring   ") == (0.80, POURING)


def test_subject_is_appended_to_message():
    value, message = report_installation_progress("==> Installing php@8.1")
    assert value == 0.60
    assert message == f"{INSTALLING}\n(php@8.1)"

    value, message = report_installation_progress(
        "==> Downloading https://ghcr.io/v2/homebrew/core/php/blobs/sha256:9f8e"
    )
    assert message == f"{DOWNLOADING}\n(https://ghcr.io/v2/homebrew/core/php/blobs/sha256:9f8e)"


def test_fetching_message_has_no_subject():
    assert report_installation_progress("==> Fetching dependencies for php@8.2: icu4c") == (0.10, FETCHING)
