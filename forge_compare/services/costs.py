"""Per-unit cost resolution for upgrade options."""

from __future__ import annotations

import logging

from ..schemas import ArmyDocument, Gain, PayloadModel, Unit, UpgradeOption, UpgradePackage

logger = logging.getLogger(__name__)


class ResolvedOption(PayloadModel):
    id: str | None = None
    label: str | None = None
    cost: int | None = None
    gains: tuple[Gain, ...] = ()


class ResolvedSection(PayloadModel):
    id: str | None = None
    label: str | None = None
    options: tuple[ResolvedOption, ...] = ()


class ResolvedPackage(PayloadModel):
    uid: str
    hint: str | None = None
    found: bool = True
    sections: tuple[ResolvedSection, ...] = ()


def resolve_cost(option: UpgradeOption, unit: Unit) -> int | None:
    """Return the option's cost for ``unit``.

    A per-unit entry matching the unit id wins over the flat cost. When
    neither is known the result is ``None`` rather than zero.
    """
    for entry in option.costs:
        if entry.unit_id == unit.id:
            return entry.cost
    return option.cost


def package_index(document: ArmyDocument) -> dict[str, UpgradePackage]:
    index: dict[str, UpgradePackage] = {}
    for package in document.upgrade_packages:
        index.setdefault(package.uid, package)
    return index


def _resolve_package(package: UpgradePackage, unit: Unit) -> ResolvedPackage:
    sections = tuple(
        ResolvedSection(
            id=section.id,
            label=section.label,
            options=tuple(
                ResolvedOption(
                    id=option.id,
                    label=option.label,
                    cost=resolve_cost(option, unit),
                    gains=option.gains,
                )
                for option in section.options
            ),
        )
        for section in package.sections
    )
    return ResolvedPackage(uid=package.uid, hint=package.hint, sections=sections)


def resolve_upgrades(
    unit: Unit,
    document: ArmyDocument,
    index: dict[str, UpgradePackage] | None = None,
) -> tuple[ResolvedPackage, ...]:
    """Resolve every package the unit draws from, in reference order.

    Packages are shared between units, so the result is always a fresh
    structure and the document itself is left untouched.
    """
    if index is None:
        index = package_index(document)
    resolved: list[ResolvedPackage] = []
    for uid in unit.upgrades:
        package = index.get(uid)
        if package is None:
            logger.debug(
                "Unit %s references missing upgrade package %s", unit.id, uid
            )
            resolved.append(ResolvedPackage(uid=uid, found=False))
            continue
        resolved.append(_resolve_package(package, unit))
    return tuple(resolved)
