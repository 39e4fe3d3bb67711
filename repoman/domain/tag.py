"""
Release tag ordering.

Tags are compared as semantic versions where possible, so ``v1.10.0`` ranks
above ``v1.9.0``. Tags that are not versions rank below every version and
are ordered lexically among themselves.
"""

from typing import Iterable, Optional, Tuple

from packaging.version import Version, InvalidVersion


def parse_tag_version(tag: str) -> Optional[Version]:
    """Parse a tag such as ``v1.2.3`` or ``release-2.0`` into a Version."""
    candidate = tag.strip()
    for prefix in ('release-', 'release/', 'rel-'):
        if candidate.lower().startswith(prefix):
            candidate = candidate[len(prefix):]
            break
    try:
        return Version(candidate)
    except InvalidVersion:
        return None


def tag_sort_key(tag: str) -> Tuple[int, Version, str]:
    version = parse_tag_version(tag)
    if version is None:
        return (0, Version('0'), tag)
    return (1, version, tag)


def latest_tag(tags: Iterable[str]) -> Optional[str]:
    """
    Return the highest tag, or None for an empty input.

    Example:
        >>> latest_tag(["v1.2.3", "v1.10.0", "v1.9.0"])
        'v1.10.0'
    """
    candidates = [t for t in tags if t]
    if not candidates:
        return None
    return max(candidates, key=tag_sort_key)
