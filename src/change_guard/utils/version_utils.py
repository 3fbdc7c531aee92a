"""Version comparison helpers for dependency-manifest merges.

These are deliberately lightweight: versions are compared on their numeric
major/minor/patch components only, which is enough to pick the newer of two
declared versions for the same package.
"""

import re

_NON_VERSION_CHARS = re.compile(r"[^\d.]")


def version_components(version: str, width: int = 3) -> tuple[int, ...]:
    """Return the numeric components of ``version`` padded to ``width``.

    Range operators and pre-release tags are stripped first, so
    ``"^4.17.0"`` and ``"4.17"`` both yield ``(4, 17, 0)``.

    Example:
        >>> version_components("~1.2")
        (1, 2, 0)
    """
    cleaned = _NON_VERSION_CHARS.sub("", version)
    parts = [int(p) if p else 0 for p in cleaned.split(".")] if cleaned else []
    parts = parts[:width]
    parts.extend([0] * (width - len(parts)))
    return tuple(parts)


def compare_versions(version1: str, version2: str) -> int:
    """Compare two versions numerically.

    Returns:
        1 if ``version1`` is higher, -1 if ``version2`` is higher, 0 if equal.
    """
    parts1 = version_components(version1)
    parts2 = version_components(version2)
    if parts1 > parts2:
        return 1
    if parts1 < parts2:
        return -1
    return 0


def higher_version(version1: str, version2: str) -> str:
    """Pick the "higher" of two declared dependency versions.

    A caret range (``^x.y.z``) outranks a bare version regardless of the
    numbers; otherwise the numerically higher version wins and a tie keeps
    ``version1``.

    Example:
        >>> higher_version("4.16.0", "^4.17.0")
        '^4.17.0'
    """
    caret1 = version1.startswith("^")
    caret2 = version2.startswith("^")
    if caret1 and not caret2:
        return version1
    if caret2 and not caret1:
        return version2
    return version2 if compare_versions(version1, version2) < 0 else version1
