"""Classification and validation of cluster labels.

Cluster labels are split into system labels, which belong to the platform
and are identified by a configured set of key prefixes, and user labels,
which are everything else. Tenants only ever see and modify user labels.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..constants import LABEL_KEY_REGEX, LABEL_VALUE_REGEX

__all__ = [
    "is_system_label",
    "is_valid_label_key",
    "is_valid_labels",
    "user_labels",
]


def is_system_label(key: str, prefixes: Iterable[str]) -> bool:
    """Whether a label key belongs to the platform.

    Parameters
    ----------
    key
        Label key.
    prefixes
        Key prefixes of system labels.
    """
    return any(key.startswith(p) for p in prefixes)


def user_labels(
    labels: Mapping[str, str], prefixes: Iterable[str]
) -> dict[str, str]:
    """Select the user labels from a set of cluster labels."""
    prefixes = list(prefixes)
    return {
        k: v for k, v in labels.items() if not is_system_label(k, prefixes)
    }


def is_valid_label_key(key: str) -> bool:
    """Whether a string is a syntactically valid Kubernetes label key."""
    if not LABEL_KEY_REGEX.match(key):
        return False
    if "/" in key:
        prefix, name = key.split("/", 1)
        return len(prefix) <= 253 and len(name) <= 63
    return len(key) <= 63


def is_valid_labels(labels: Mapping[str, str]) -> bool:
    """Whether all keys and values are valid Kubernetes label syntax."""
    return all(
        is_valid_label_key(k) and LABEL_VALUE_REGEX.match(v)
        for k, v in labels.items()
    )
