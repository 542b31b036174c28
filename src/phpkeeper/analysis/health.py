"""Derive the health of a PHP installation from its `php -v` output."""

from __future__ import annotations

# Markers printed by dyld when a dependency of the PHP binary went missing,
# typically after a dependency (icu4c, openssl) was upgraded underneath it.
BROKEN_MARKERS = (
    "Library not loaded",
    "dyld:",
    "dyld[",
    "image not found",
)


def derive_health(output: str, returncode: int) -> bool:
    """Decide whether a PHP binary is usable.

    Args:
        output: Combined stdout and stderr of `php -v`.
        returncode: Exit code of `php -v`.

    Returns:
        True when the binary ran and identified itself as PHP.
    """
    if returncode != 0:
        return False
    if any(marker in output for marker in BROKEN_MARKERS):
        return False
    return output.lstrip().startswith("PHP ")
