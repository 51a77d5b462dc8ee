"""Ordered list alignment for weapons, rules and name lists."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Hashable, Sequence

from ..schemas import PayloadModel, Rule, Weapon


class DiffStatus(str, Enum):
    ADDED = "ADDED"
    REMOVED = "REMOVED"
    CHANGED = "CHANGED"
    UNCHANGED = "UNCHANGED"


class ListDiffItem(PayloadModel):
    status: DiffStatus
    value: Any
    previous: Any = None


class ListDiffSegment(PayloadModel):
    status: DiffStatus
    values: tuple[Any, ...]


class ListDiff(PayloadModel):
    items: tuple[ListDiffItem, ...] = ()
    segments: tuple[ListDiffSegment, ...] = ()

    @property
    def added(self) -> list[Any]:
        return [item.value for item in self.items if item.status is DiffStatus.ADDED]

    @property
    def removed(self) -> list[Any]:
        return [item.value for item in self.items if item.status is DiffStatus.REMOVED]

    @property
    def changed(self) -> bool:
        return any(item.status is not DiffStatus.UNCHANGED for item in self.items)


def _common_suffix_lengths(keys_a: list[Hashable], keys_b: list[Hashable]) -> list[list[int]]:
    # lengths[i][j] is the LCS length of keys_a[i:] and keys_b[j:].
    rows, cols = len(keys_a), len(keys_b)
    lengths = [[0] * (cols + 1) for _ in range(rows + 1)]
    for i in range(rows - 1, -1, -1):
        for j in range(cols - 1, -1, -1):
            if keys_a[i] == keys_b[j]:
                lengths[i][j] = lengths[i + 1][j + 1] + 1
            else:
                lengths[i][j] = max(lengths[i + 1][j], lengths[i][j + 1])
    return lengths


def diff_sequence(
    seq_a: Sequence[Any],
    seq_b: Sequence[Any],
    key: Callable[[Any], Hashable],
) -> list[ListDiffItem]:
    """Align two sequences along their longest common subsequence of keys.

    Elements only in ``seq_a`` are REMOVED, elements only in ``seq_b`` are
    ADDED and the common subsequence is UNCHANGED, carrying the B element as
    ``value`` and the A element as ``previous``. On ties removals are
    emitted before additions.
    """
    keys_a = [key(item) for item in seq_a]
    keys_b = [key(item) for item in seq_b]
    lengths = _common_suffix_lengths(keys_a, keys_b)

    items: list[ListDiffItem] = []
    i = j = 0
    while i < len(seq_a) and j < len(seq_b):
        if keys_a[i] == keys_b[j]:
            items.append(
                ListDiffItem(status=DiffStatus.UNCHANGED, value=seq_b[j], previous=seq_a[i])
            )
            i += 1
            j += 1
        elif lengths[i + 1][j] >= lengths[i][j + 1]:
            items.append(ListDiffItem(status=DiffStatus.REMOVED, value=seq_a[i]))
            i += 1
        else:
            items.append(ListDiffItem(status=DiffStatus.ADDED, value=seq_b[j]))
            j += 1
    for item in seq_a[i:]:
        items.append(ListDiffItem(status=DiffStatus.REMOVED, value=item))
    for item in seq_b[j:]:
        items.append(ListDiffItem(status=DiffStatus.ADDED, value=item))
    return items


def group_segments(items: Sequence[ListDiffItem]) -> list[ListDiffSegment]:
    segments: list[ListDiffSegment] = []
    run: list[Any] = []
    status: DiffStatus | None = None
    for item in items:
        if item.status is not status and run:
            segments.append(ListDiffSegment(status=status, values=tuple(run)))
            run = []
        status = item.status
        run.append(item.value)
    if run and status is not None:
        segments.append(ListDiffSegment(status=status, values=tuple(run)))
    return segments


def diff_list(
    seq_a: Sequence[Any],
    seq_b: Sequence[Any],
    key: Callable[[Any], Hashable],
) -> ListDiff:
    items = diff_sequence(seq_a, seq_b, key)
    return ListDiff(items=tuple(items), segments=tuple(group_segments(items)))


def weapon_key(weapon: Weapon) -> Hashable:
    return (
        weapon.name,
        weapon.count or 1,
        weapon.range or 0,
        weapon.attacks,
        tuple(rule.display_name for rule in weapon.special_rules),
    )


def rule_key(rule: Rule) -> Hashable:
    return rule.display_name


def name_key(entry: Any) -> Hashable:
    return getattr(entry, "name", None)
