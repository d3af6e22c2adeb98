"""Handling of external labels that are attached to a whole stream of blocks."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from pqgateway.constraint import Matcher


def _sorted_labels(ext_labels: Mapping[str, str]) -> list[tuple[str, str]]:
    return sorted(ext_labels.items())


def match_external_labels(
    ext_labels: Mapping[str, str], matchers: Sequence[Matcher]
) -> Optional[list[Matcher]]:
    """Consume the matchers that target external labels.

    Returns the matchers that still have to be evaluated against the data, or
    None if some matcher rejects an external label so that nothing can match.
    """
    remain: list[Matcher] = []
    labels = _sorted_labels(ext_labels)
    for matcher in matchers:
        consumed = False
        for name, value in labels:
            if matcher.name != name:
                continue
            if not matcher.matches(value):
                return None
            consumed = True
        if not consumed:
            remain.append(matcher)
    return remain


def external_label_values(
    ext_labels: Mapping[str, str], replica_label_names: Iterable[str], name: str
) -> str:
    """Return the value of the external label ``name``, or "" if it is absent or a replica label."""
    replicas = set(replica_label_names)
    value = ""
    for label_name, label_value in _sorted_labels(ext_labels):
        if label_name in replicas or label_name != name:
            continue
        value = label_value
    return value


def external_label_names(ext_labels: Mapping[str, str], replica_label_names: Iterable[str]) -> list[str]:
    """Return the sorted names of the external labels that are not replica labels."""
    replicas = set(replica_label_names)
    return [name for name, _ in _sorted_labels(ext_labels) if name not in replicas]


def sort_unique(values: Iterable[str]) -> list[str]:
    """Return the distinct values in ascending order."""
    return sorted(set(values))