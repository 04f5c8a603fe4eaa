"""Composer version normalization.

Converts human-readable version strings into the normalized form Composer
uses for comparing and sorting versions, e.g. "1.2" -> "1.2.0.0" and
"2.0.0-rc1" -> "2.0.0.0-RC1".
"""

import logging
import re
from functools import lru_cache
from typing import Optional

from composer_catalog.exceptions import InvalidVersionFormat

logger = logging.getLogger(__name__)

# Stability suffix shared by classical and date based versions
_MODIFIER = (
    r"[._-]?(?:(stable|beta|b|RC|alpha|a|patch|pl|p)((?:[.-]?\d+)*)?)?([.-]?dev)?"
)

_ALIAS_PATTERN = re.compile(r"^([^,\s]+) +as +([^,\s]+)$")
_STABILITY_FLAG_PATTERN = re.compile(r"@(?:stable|RC|beta|alpha|dev)$", re.IGNORECASE)
_BUILD_METADATA_PATTERN = re.compile(r"^([^,\s+]+)\+\S+$")
_CLASSICAL_PATTERN = re.compile(
    r"v?(\d{1,5})(\.\d+)?(\.\d+)?(\.\d+)?" + _MODIFIER, re.IGNORECASE
)
_DATE_PATTERN = re.compile(
    r"v?(\d{4}(?:[.:-]?\d{2}){1,6}(?:[.:-]?\d{1,3}){0,2})" + _MODIFIER,
    re.IGNORECASE,
)
_DEV_SUFFIX_PATTERN = re.compile(r"(.*?)[.-]?dev", re.IGNORECASE)
_BRANCH_PATTERN = re.compile(
    r"v?(\d+)(\.(?:\d+|[xX*]))?(\.(?:\d+|[xX*]))?(\.(?:\d+|[xX*]))?",
    re.IGNORECASE,
)

# Branches Composer treats as named dev branches rather than versions
_DEFAULT_BRANCHES = ("master", "trunk", "default")

STABILITY_ALIASES = {
    "a": "alpha",
    "b": "beta",
    "p": "patch",
    "pl": "patch",
    "rc": "RC",
}


def expand_stability(stability: str) -> str:
    """Expand a short stability modifier to its canonical name.

    Args:
        stability: Modifier as written (e.g., "b", "RC", "pl").

    Returns:
        Canonical stability like "beta", "RC" or "patch".
    """
    stability = stability.lower()
    return STABILITY_ALIASES.get(stability, stability)


def normalize_branch(name: str) -> str:
    """Normalize a branch name.

    Numeric branches with wildcards become padded dev versions
    ("1.x" -> "1.9999999.9999999.9999999-dev"); anything else is a named
    dev branch ("feature" -> "dev-feature").

    Args:
        name: Branch name without any trailing "-dev".

    Returns:
        Normalized branch version.
    """
    name = name.strip()
    match = _BRANCH_PATTERN.fullmatch(name)
    if match:
        parts = [
            (group or ".x").replace("*", "x").replace("X", "x")
            for group in match.groups()
        ]
        return "".join(parts).replace("x", "9999999") + "-dev"

    return f"dev-{name}"


def _apply_modifiers(
    version: str,
    stability: Optional[str],
    number: Optional[str],
    dev: Optional[str],
) -> str:
    if stability:
        if stability.lower() == "stable":
            return version
        version += "-" + expand_stability(stability) + (number or "").lstrip(".-")

    if dev:
        version += "-dev"

    return version


@lru_cache(maxsize=1024)
def normalize(version: str) -> str:
    """Normalize a version string to Composer's canonical form.

    Args:
        version: Version string as published (e.g., "v1.2", "2.0.0-beta.1").

    Returns:
        Normalized version (e.g., "1.2.0.0", "2.0.0.0-beta1").

    Raises:
        InvalidVersionFormat: If the string is not a valid version.
    """
    if not isinstance(version, str):
        raise InvalidVersionFormat(repr(version), "version must be a string")

    original = version
    version = version.strip()
    if not version:
        raise InvalidVersionFormat(original, "empty version")

    alias = _ALIAS_PATTERN.match(version)
    if alias:
        version = alias.group(1)

    flag = _STABILITY_FLAG_PATTERN.search(version)
    if flag:
        version = version[: flag.start()]

    if version in _DEFAULT_BRANCHES:
        version = f"dev-{version}"

    if version.lower().startswith("dev-"):
        return "dev-" + version[4:]

    build = _BUILD_METADATA_PATTERN.match(version)
    if build:
        version = build.group(1)

    match = _CLASSICAL_PATTERN.fullmatch(version)
    if match:
        major, minor, patch, build_number, stability, number, dev = match.groups()
        numeric = major + (minor or ".0") + (patch or ".0") + (build_number or ".0")
        return _apply_modifiers(numeric, stability, number, dev)

    match = _DATE_PATTERN.fullmatch(version)
    if match:
        stamp, stability, number, dev = match.groups()
        numeric = re.sub(r"\D", ".", stamp)
        return _apply_modifiers(numeric, stability, number, dev)

    branch = _DEV_SUFFIX_PATTERN.fullmatch(version)
    if branch:
        normalized = normalize_branch(branch.group(1))
        # Only numeric branches may carry a -dev suffix
        if "dev-" not in normalized:
            return normalized

    logger.debug("Rejected version string %r", original)
    raise InvalidVersionFormat(original)


class VersionParser:
    """Normalizes release versions for the catalog.

    Thin object wrapper over normalize() so the builder can take the parser
    as a collaborator and tests can substitute it.
    """

    def normalize(self, version: str) -> str:
        """Normalize a version string.

        Args:
            version: Version string as published.

        Returns:
            Normalized version string.

        Raises:
            InvalidVersionFormat: If the string is not a valid version.
        """
        return normalize(version)
