from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Sequence

from ..schemas import SpecialRule, Spell, Unit

logger = logging.getLogger(__name__)

KeyFunc = Callable[[Any], Hashable]


@dataclass(frozen=True, slots=True)
class MatchPair:
    """Entities paired across two document versions.

    ``via`` names the key that paired them; ``ambiguous`` is set when more
    than one unmatched candidate on the right shared that key and the first
    one in document order was taken.
    """

    left: Any
    right: Any
    via: str | None = None
    ambiguous: bool = False

    @property
    def is_paired(self) -> bool:
        return self.left is not None and self.right is not None


def _usable(key: Hashable) -> bool:
    return key is not None and key != ""


def match_entities(
    left: Sequence[Any],
    right: Sequence[Any],
    strategies: Sequence[tuple[str, KeyFunc]],
) -> list[MatchPair]:
    """Pair entities of two ordered sequences.

    Each strategy is a separate pass. Within a pass every unmatched left
    entity, in document order, takes the first unmatched right entity with
    an equal key. Left entities come first in the result, followed by the
    right entities nobody claimed.
    """
    partner: dict[int, int] = {}
    via: dict[int, str] = {}
    ambiguous: set[int] = set()
    claimed: set[int] = set()

    for label, key_func in strategies:
        buckets: dict[Hashable, list[int]] = {}
        for right_index, item in enumerate(right):
            if right_index in claimed:
                continue
            key = key_func(item)
            if _usable(key):
                buckets.setdefault(key, []).append(right_index)
        for left_index, item in enumerate(left):
            if left_index in partner:
                continue
            key = key_func(item)
            if not _usable(key):
                continue
            candidates = [index for index in buckets.get(key, []) if index not in claimed]
            if not candidates:
                continue
            chosen = candidates[0]
            partner[left_index] = chosen
            via[left_index] = label
            claimed.add(chosen)
            if len(candidates) > 1:
                ambiguous.add(left_index)
                logger.debug(
                    "Ambiguous %s match for %r, %d candidates, taking the first",
                    label,
                    key,
                    len(candidates),
                )

    pairs: list[MatchPair] = []
    for left_index, item in enumerate(left):
        if left_index in partner:
            pairs.append(
                MatchPair(
                    left=item,
                    right=right[partner[left_index]],
                    via=via[left_index],
                    ambiguous=left_index in ambiguous,
                )
            )
        else:
            pairs.append(MatchPair(left=item, right=None))
    for right_index, item in enumerate(right):
        if right_index not in claimed:
            pairs.append(MatchPair(left=None, right=item))
    return pairs


def match_units(units_a: Sequence[Unit], units_b: Sequence[Unit]) -> list[MatchPair]:
    # Regenerated books may reissue unit ids; fall back to the unit name.
    return match_entities(
        units_a,
        units_b,
        [("id", lambda unit: unit.id), ("name", lambda unit: unit.name)],
    )


def match_packages(packages_a: Sequence[Any], packages_b: Sequence[Any]) -> list[MatchPair]:
    return match_entities(packages_a, packages_b, [("uid", lambda package: package.uid)])


def _content_key(entry: Any) -> Hashable:
    # Resolved entries are frozen models, equal entries hash equal.
    return entry


def match_sections(sections_a: Sequence[Any], sections_b: Sequence[Any]) -> list[MatchPair]:
    return match_entities(
        sections_a,
        sections_b,
        [
            ("id", lambda section: section.id),
            ("label", lambda section: section.label),
            ("content", _content_key),
        ],
    )


def match_options(options_a: Sequence[Any], options_b: Sequence[Any]) -> list[MatchPair]:
    # Option ids are not stable between book versions; they only stand in
    # for a missing label.
    return match_entities(
        options_a,
        options_b,
        [
            ("label", lambda option: option.label),
            ("id", lambda option: None if option.label else option.id),
            ("content", _content_key),
        ],
    )


def match_named(
    entries_a: Sequence[Spell | SpecialRule], entries_b: Sequence[Spell | SpecialRule]
) -> list[MatchPair]:
    return match_entities(entries_a, entries_b, [("name", lambda entry: entry.name)])
