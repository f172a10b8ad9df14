"""
Semantic versioning of token lists.

The bump follows the token list standard: removing a token breaks
consumers (major), adding one or changing its decimals is a feature
(minor), anything else cosmetic is a patch.
"""
import dataclasses
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple

from tokenlist_builder.models import ListClass, TokenInfo, Version

TokenKey = Tuple[str, int]

COSMETIC_FIELDS = ("name", "symbol", "logo_uri")

FIRST_VERSIONS: Dict[ListClass, Version] = {
    ListClass.LISTED: Version(1, 0, 0),
    ListClass.VETTED: Version(1, 0, 0),
    ListClass.UNTRUSTED: Version(0, 1, 0),
}


class VersionUpgrade(IntEnum):
    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3


@dataclasses.dataclass
class TokenListDiff:
    added: List[TokenInfo]
    removed: List[TokenInfo]
    # Changed field names per token
    changed: Dict[TokenKey, List[str]]


def diff_token_lists(
    base: Sequence[TokenInfo], updated: Sequence[TokenInfo]
) -> TokenListDiff:
    base_by_key = {token.key: token for token in base}
    updated_by_key = {token.key: token for token in updated}

    added = [token for key, token in updated_by_key.items() if key not in base_by_key]
    removed = [token for key, token in base_by_key.items() if key not in updated_by_key]

    changed: Dict[TokenKey, List[str]] = {}
    for key, old in base_by_key.items():
        new = updated_by_key.get(key)
        if new is None:
            continue
        fields = [
            field
            for field in ("decimals",) + COSMETIC_FIELDS
            if getattr(old, field) != getattr(new, field)
        ]
        if fields:
            changed[key] = fields

    return TokenListDiff(added=added, removed=removed, changed=changed)


def min_version_bump(
    base: Sequence[TokenInfo], updated: Sequence[TokenInfo]
) -> VersionUpgrade:
    diff = diff_token_lists(base, updated)
    if diff.removed:
        return VersionUpgrade.MAJOR
    if diff.added:
        return VersionUpgrade.MINOR
    if any("decimals" in fields for fields in diff.changed.values()):
        return VersionUpgrade.MINOR
    if diff.changed:
        return VersionUpgrade.PATCH
    return VersionUpgrade.NONE


def next_version(version: Version, bump: VersionUpgrade) -> Version:
    if bump == VersionUpgrade.MAJOR:
        return Version(version.major + 1, 0, 0)
    if bump == VersionUpgrade.MINOR:
        return Version(version.major, version.minor + 1, 0)
    if bump == VersionUpgrade.PATCH:
        return Version(version.major, version.minor, version.patch + 1)
    return version


def is_version_update(base: Version, updated: Version) -> bool:
    return updated > base


def compute_version(
    previous_version: Optional[Version],
    previous_tokens: Sequence[TokenInfo],
    tokens: Sequence[TokenInfo],
    first_version: Version,
) -> Optional[Version]:
    """
    Version for a freshly computed token set, or None when nothing changed
    since the previously published list and it should not be regenerated.
    """
    if previous_version is None:
        return first_version

    version = next_version(previous_version, min_version_bump(previous_tokens, tokens))
    if not is_version_update(previous_version, version):
        return None
    return version
