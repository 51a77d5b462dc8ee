"""Structural comparison of two versions of an army book."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from ..schemas import (
    ArmyDocument,
    Gain,
    PayloadModel,
    Rule,
    SpecialRule,
    Spell,
    Unit,
    UpgradePackage,
    parse_document,
)
from .costs import ResolvedOption, ResolvedPackage, ResolvedSection, package_index, resolve_upgrades
from .matching import (
    MatchPair,
    match_entities,
    match_named,
    match_options,
    match_packages,
    match_sections,
    match_units,
)
from .sequence_diff import DiffStatus, ListDiff, diff_list, rule_key, weapon_key

logger = logging.getLogger(__name__)


class UnitStatus(str, Enum):
    NEW = "NEW"
    DELETED = "DELETED"
    CHANGED = "CHANGED"
    SAME = "SAME"


class ValueChange(PayloadModel):
    before: Any = None
    after: Any = None
    changed: bool = False

    @classmethod
    def between(cls, before: Any, after: Any) -> "ValueChange":
        return cls(before=before, after=after, changed=before != after)


class CostChange(ValueChange):
    delta: int | None = None

    @classmethod
    def between(cls, before: int | None, after: int | None) -> "CostChange":
        delta = after - before if before is not None and after is not None else None
        return cls(before=before, after=after, changed=before != after, delta=delta)


class StatChange(ValueChange):
    # Quality and defense are target numbers; presentation decides colours.
    lower_is_better: bool = True


class RatingChange(PayloadModel):
    name: str
    weapon: str | None = None
    before: int | float | None = None
    after: int | float | None = None


class OptionDiff(PayloadModel):
    status: DiffStatus
    label: str | None = None
    id_a: str | None = None
    id_b: str | None = None
    cost_a: int | None = None
    cost_b: int | None = None
    cost_changed: bool = False
    gains_changed: bool = False
    gains_a: tuple[Gain, ...] = ()
    gains_b: tuple[Gain, ...] = ()


class SectionDiff(PayloadModel):
    status: DiffStatus
    id_a: str | None = None
    id_b: str | None = None
    label_a: str | None = None
    label_b: str | None = None
    matched_via: str | None = None
    options: tuple[OptionDiff, ...] = ()


class PackageDiff(PayloadModel):
    status: DiffStatus
    uid: str
    hint_a: str | None = None
    hint_b: str | None = None
    found_a: bool = False
    found_b: bool = False
    sections: tuple[SectionDiff, ...] = ()


class UnitFieldDiff(PayloadModel):
    name: ValueChange
    size: ValueChange
    cost: CostChange
    quality: StatChange
    defense: StatChange
    weapons: ListDiff
    rules: ListDiff
    rule_ratings: tuple[RatingChange, ...] = ()
    weapon_ratings: tuple[RatingChange, ...] = ()
    upgrades: tuple[PackageDiff, ...] = ()

    @property
    def changed(self) -> bool:
        return (
            any(
                change.changed
                for change in (self.name, self.size, self.cost, self.quality, self.defense)
            )
            or self.weapons.changed
            or self.rules.changed
            or bool(self.rule_ratings)
            or bool(self.weapon_ratings)
            or any(package.status is not DiffStatus.UNCHANGED for package in self.upgrades)
        )


class UnitDiffRow(PayloadModel):
    key: str
    name: str
    status: UnitStatus
    matched_via: str | None = None
    ambiguous: bool = False
    unit_a: Unit | None = None
    unit_b: Unit | None = None
    upgrades_a: tuple[ResolvedPackage, ...] = ()
    upgrades_b: tuple[ResolvedPackage, ...] = ()
    changes: UnitFieldDiff | None = None


class TextDiff(PayloadModel):
    changed: bool
    before: str | None = None
    after: str | None = None


class SpellDiff(PayloadModel):
    status: DiffStatus
    name: str
    threshold: ValueChange
    effect: ValueChange
    threshold_changed: bool = False
    effect_changed: bool = False
    ambiguous: bool = False


class SpellsDiff(PayloadModel):
    entries: tuple[SpellDiff, ...] = ()
    names: ListDiff = ListDiff()


class SpecialRuleDiff(PayloadModel):
    status: DiffStatus
    name: str
    description: ValueChange
    ambiguous: bool = False


class SpecialRulesDiff(PayloadModel):
    entries: tuple[SpecialRuleDiff, ...] = ()
    names: ListDiff = ListDiff()


class ArmyComparisonResult(PayloadModel):
    name_a: str
    name_b: str
    version_a: str | None = None
    version_b: str | None = None
    unit_rows: tuple[UnitDiffRow, ...]
    summary: dict[str, int]
    background_diff: TextDiff
    spells_diff: SpellsDiff
    special_rules_diff: SpecialRulesDiff

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _added_option(option: ResolvedOption) -> OptionDiff:
    return OptionDiff(
        status=DiffStatus.ADDED,
        label=option.label,
        id_b=option.id,
        cost_b=option.cost,
        gains_b=option.gains,
    )


def _removed_option(option: ResolvedOption) -> OptionDiff:
    return OptionDiff(
        status=DiffStatus.REMOVED,
        label=option.label,
        id_a=option.id,
        cost_a=option.cost,
        gains_a=option.gains,
    )


def diff_options(
    options_a: tuple[ResolvedOption, ...], options_b: tuple[ResolvedOption, ...]
) -> list[OptionDiff]:
    result: list[OptionDiff] = []
    for pair in match_options(options_a, options_b):
        if pair.right is None:
            result.append(_removed_option(pair.left))
            continue
        if pair.left is None:
            result.append(_added_option(pair.right))
            continue
        cost_changed = pair.left.cost != pair.right.cost
        gains_changed = pair.left.gains != pair.right.gains
        result.append(
            OptionDiff(
                status=DiffStatus.CHANGED if cost_changed or gains_changed else DiffStatus.UNCHANGED,
                label=pair.right.label,
                id_a=pair.left.id,
                id_b=pair.right.id,
                cost_a=pair.left.cost,
                cost_b=pair.right.cost,
                cost_changed=cost_changed,
                gains_changed=gains_changed,
                gains_a=pair.left.gains,
                gains_b=pair.right.gains,
            )
        )
    return result


def _section_diff(pair: MatchPair) -> SectionDiff:
    left: ResolvedSection | None = pair.left
    right: ResolvedSection | None = pair.right
    if right is None:
        return SectionDiff(
            status=DiffStatus.REMOVED,
            id_a=left.id,
            label_a=left.label,
            options=tuple(_removed_option(option) for option in left.options),
        )
    if left is None:
        return SectionDiff(
            status=DiffStatus.ADDED,
            id_b=right.id,
            label_b=right.label,
            options=tuple(_added_option(option) for option in right.options),
        )
    options = tuple(diff_options(left.options, right.options))
    changed = left.label != right.label or any(
        option.status is not DiffStatus.UNCHANGED for option in options
    )
    return SectionDiff(
        status=DiffStatus.CHANGED if changed else DiffStatus.UNCHANGED,
        id_a=left.id,
        id_b=right.id,
        label_a=left.label,
        label_b=right.label,
        matched_via=pair.via,
        options=options,
    )


def diff_packages(
    upgrades_a: tuple[ResolvedPackage, ...], upgrades_b: tuple[ResolvedPackage, ...]
) -> list[PackageDiff]:
    """Compare the upgrade trees a unit can draw from in both versions."""
    result: list[PackageDiff] = []
    for pair in match_packages(upgrades_a, upgrades_b):
        left: ResolvedPackage | None = pair.left
        right: ResolvedPackage | None = pair.right
        if right is None:
            result.append(
                PackageDiff(
                    status=DiffStatus.REMOVED,
                    uid=left.uid,
                    hint_a=left.hint,
                    found_a=left.found,
                    sections=tuple(
                        _section_diff(MatchPair(left=section, right=None))
                        for section in left.sections
                    ),
                )
            )
            continue
        if left is None:
            result.append(
                PackageDiff(
                    status=DiffStatus.ADDED,
                    uid=right.uid,
                    hint_b=right.hint,
                    found_b=right.found,
                    sections=tuple(
                        _section_diff(MatchPair(left=None, right=section))
                        for section in right.sections
                    ),
                )
            )
            continue
        sections = tuple(
            _section_diff(section_pair)
            for section_pair in match_sections(left.sections, right.sections)
        )
        changed = (
            left.hint != right.hint
            or left.found != right.found
            or any(section.status is not DiffStatus.UNCHANGED for section in sections)
        )
        result.append(
            PackageDiff(
                status=DiffStatus.CHANGED if changed else DiffStatus.UNCHANGED,
                uid=right.uid,
                hint_a=left.hint,
                hint_b=right.hint,
                found_a=left.found,
                found_b=right.found,
                sections=sections,
            )
        )
    return result


def _rule_rating_changes(
    rules_a: tuple[Rule, ...], rules_b: tuple[Rule, ...], weapon: str | None = None
) -> list[RatingChange]:
    changes: list[RatingChange] = []
    for pair in match_entities(rules_a, rules_b, [("name", rule_key)]):
        if pair.is_paired and pair.left.rating != pair.right.rating:
            changes.append(
                RatingChange(
                    name=pair.right.display_name,
                    weapon=weapon,
                    before=pair.left.rating,
                    after=pair.right.rating,
                )
            )
    return changes


def _weapon_rating_changes(weapons: ListDiff) -> list[RatingChange]:
    # Weapons are aligned on special rule names, ratings are compared here.
    changes: list[RatingChange] = []
    for item in weapons.items:
        if item.status is DiffStatus.UNCHANGED:
            changes.extend(
                _rule_rating_changes(
                    item.previous.special_rules, item.value.special_rules, weapon=item.value.name
                )
            )
    return changes


def diff_unit_fields(
    unit_a: Unit,
    unit_b: Unit,
    upgrades_a: tuple[ResolvedPackage, ...],
    upgrades_b: tuple[ResolvedPackage, ...],
) -> UnitFieldDiff:
    weapons = diff_list(unit_a.weapons, unit_b.weapons, weapon_key)
    return UnitFieldDiff(
        name=ValueChange.between(unit_a.name, unit_b.name),
        size=ValueChange.between(unit_a.size, unit_b.size),
        cost=CostChange.between(unit_a.cost, unit_b.cost),
        quality=StatChange.between(unit_a.quality, unit_b.quality),
        defense=StatChange.between(unit_a.defense, unit_b.defense),
        weapons=weapons,
        rules=diff_list(unit_a.rules, unit_b.rules, rule_key),
        rule_ratings=tuple(_rule_rating_changes(unit_a.rules, unit_b.rules)),
        weapon_ratings=tuple(_weapon_rating_changes(weapons)),
        upgrades=tuple(diff_packages(upgrades_a, upgrades_b)),
    )


def _unit_row(
    pair: MatchPair,
    document_a: ArmyDocument,
    document_b: ArmyDocument,
    index_a: dict[str, UpgradePackage],
    index_b: dict[str, UpgradePackage],
) -> UnitDiffRow:
    unit_a: Unit | None = pair.left
    unit_b: Unit | None = pair.right
    upgrades_a = resolve_upgrades(unit_a, document_a, index_a) if unit_a else ()
    upgrades_b = resolve_upgrades(unit_b, document_b, index_b) if unit_b else ()

    if unit_b is None:
        return UnitDiffRow(
            key=unit_a.id,
            name=unit_a.name,
            status=UnitStatus.DELETED,
            unit_a=unit_a,
            upgrades_a=upgrades_a,
        )
    if unit_a is None:
        return UnitDiffRow(
            key=unit_b.id,
            name=unit_b.name,
            status=UnitStatus.NEW,
            unit_b=unit_b,
            upgrades_b=upgrades_b,
        )

    # Status follows the reported field diff so the two never disagree.
    changes = diff_unit_fields(unit_a, unit_b, upgrades_a, upgrades_b)
    return UnitDiffRow(
        key=unit_a.id,
        name=unit_b.name,
        status=UnitStatus.CHANGED if changes.changed else UnitStatus.SAME,
        matched_via=pair.via,
        ambiguous=pair.ambiguous,
        unit_a=unit_a,
        unit_b=unit_b,
        upgrades_a=upgrades_a,
        upgrades_b=upgrades_b,
        changes=changes,
    )


def _text(value: str | None) -> str:
    return value or ""


def diff_background(before: str | None, after: str | None) -> TextDiff:
    return TextDiff(changed=_text(before) != _text(after), before=before, after=after)


def diff_spells(spells_a: tuple[Spell, ...], spells_b: tuple[Spell, ...]) -> SpellsDiff:
    entries: list[SpellDiff] = []
    for pair in match_named(spells_a, spells_b):
        left: Spell | None = pair.left
        right: Spell | None = pair.right
        threshold = ValueChange.between(
            left.threshold if left else None, right.threshold if right else None
        )
        effect = ValueChange.between(left.effect if left else None, right.effect if right else None)
        threshold_changed = effect_changed = False
        if left is None:
            status = DiffStatus.ADDED
        elif right is None:
            status = DiffStatus.REMOVED
        else:
            threshold_changed = left.threshold != right.threshold
            effect_changed = _text(left.effect) != _text(right.effect)
            status = (
                DiffStatus.CHANGED if threshold_changed or effect_changed else DiffStatus.UNCHANGED
            )
        entries.append(
            SpellDiff(
                status=status,
                name=(right or left).name,
                threshold=threshold,
                effect=effect,
                threshold_changed=threshold_changed,
                effect_changed=effect_changed,
                ambiguous=pair.ambiguous,
            )
        )
    names = diff_list(
        [spell.name for spell in spells_a], [spell.name for spell in spells_b], lambda name: name
    )
    return SpellsDiff(entries=tuple(entries), names=names)


def diff_special_rules(
    rules_a: tuple[SpecialRule, ...], rules_b: tuple[SpecialRule, ...]
) -> SpecialRulesDiff:
    entries: list[SpecialRuleDiff] = []
    for pair in match_named(rules_a, rules_b):
        left: SpecialRule | None = pair.left
        right: SpecialRule | None = pair.right
        description = ValueChange.between(
            left.description if left else None, right.description if right else None
        )
        if left is None:
            status = DiffStatus.ADDED
        elif right is None:
            status = DiffStatus.REMOVED
        elif _text(left.description) != _text(right.description):
            status = DiffStatus.CHANGED
        else:
            status = DiffStatus.UNCHANGED
        entries.append(
            SpecialRuleDiff(
                status=status,
                name=(right or left).name,
                description=description,
                ambiguous=pair.ambiguous,
            )
        )
    names = diff_list(
        [rule.name for rule in rules_a], [rule.name for rule in rules_b], lambda name: name
    )
    return SpecialRulesDiff(entries=tuple(entries), names=names)


def compare_armies(
    document_a: ArmyDocument | dict[str, Any],
    document_b: ArmyDocument | dict[str, Any],
) -> ArmyComparisonResult:
    """Compare two versions of the same army book.

    Raw mappings are validated first and raise ``InvalidDocument`` when they
    lack the unit list. Anything else missing on either side is treated as
    empty. The inputs are never modified.
    """
    document_a = parse_document(document_a)
    document_b = parse_document(document_b)
    index_a = package_index(document_a)
    index_b = package_index(document_b)

    rows = [
        _unit_row(pair, document_a, document_b, index_a, index_b)
        for pair in match_units(document_a.units, document_b.units)
    ]
    # Stable: encounter order is kept inside each group.
    rows.sort(key=lambda row: row.status is UnitStatus.SAME)

    summary = {status.value: 0 for status in UnitStatus}
    for row in rows:
        summary[row.status.value] += 1
    logger.debug(
        "Compared %s with %s: %s",
        document_a.name or document_a.uid,
        document_b.name or document_b.uid,
        summary,
    )

    return ArmyComparisonResult(
        name_a=document_a.name,
        name_b=document_b.name,
        version_a=document_a.version_string,
        version_b=document_b.version_string,
        unit_rows=tuple(rows),
        summary=summary,
        background_diff=diff_background(document_a.background, document_b.background),
        spells_diff=diff_spells(document_a.spells, document_b.spells),
        special_rules_diff=diff_special_rules(document_a.special_rules, document_b.special_rules),
    )
