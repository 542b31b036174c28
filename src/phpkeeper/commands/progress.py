"""Map lines of Homebrew output to normalised progress values."""

from __future__ import annotations

import re

FETCHING = "Fetching package information..."
DOWNLOADING = "Downloading package data..."
INSTALLING = "Installing packages..."
POURING = "Pouring bottles... This can take a while."
SUMMARY = "Wrapping up the installation..."

PREPARING = "Preparing Homebrew..."
RELOADING = "Reloading PHP versions..."

# Precedence when a line carries more than one marker: Pouring beats
# Installing beats Downloading beats Fetching.
SUBJECT_MARKERS = ("Pouring", "Installing", "Downloading", "Fetching")


def extract_subject(line: str, marker: str | None = None) -> str | None:
    """Extract the token that follows a progress marker.

    Args:
        line: A line of Homebrew output, e.g. "==> Installing php@8.1".
        marker: The marker to look for; defaults to the first marker
            present in the line, by precedence.

    Returns:
        The formula or artifact name, or None if nothing follows the marker.
    """
    markers = (marker,) if marker else SUBJECT_MARKERS
    for candidate in markers:
        if candidate not in line:
            continue
        match = re.search(rf"{re.escape(candidate)}[ \t]+(\S+)", line)
        return match.group(1) if match else None
    return None


def _with_subject(message: str, line: str, marker: str) -> str:
    subject = extract_subject(line, marker)
    if subject is None:
        return message
    return f"{message}\n({subject})"


def report_installation_progress(line: str) -> tuple[float, str] | None:
    """Translate one line of Homebrew output into progress.

    Args:
        line: A line of output from brew install/upgrade/reinstall.

    Returns:
        A (fraction complete, message) pair, or None when the line
        carries no known marker.
    """
    # Manifests are metadata, even though brew calls it a download.
    if "Downloading" in line and "/manifests/" in line:
        return 0.10, FETCHING

    if "Summary" in line:
        return 0.90, SUMMARY
    if "Pouring" in line:
        return 0.80, _with_subject(POURING, line, "Pouring")
    if "Installing" in line:
        return 0.60, _with_subject(INSTALLING, line, "Installing")
    if "Downloading" in line:
        return 0.25, _with_subject(DOWNLOADING, line, "Downloading")
    if "Fetching" in line:
        return 0.10, FETCHING
    return None
