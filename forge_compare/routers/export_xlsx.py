from __future__ import annotations

import unicodedata
from io import BytesIO
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from ..schemas import InvalidDocument, Rule, Weapon
from ..services.army_store import ArmyStore, ArmyStoreError, get_store
from ..services.comparison import (
    ArmyComparisonResult,
    StatChange,
    UnitFieldDiff,
    UnitStatus,
)
from ..services.sequence_diff import DiffStatus, ListDiff
from .armies import _http_error
from .compare import _load_comparison

router = APIRouter(prefix="/export", tags=["export"])

STATUS_LABELS = {
    UnitStatus.NEW: "Nowa",
    UnitStatus.DELETED: "Usunięta",
    UnitStatus.CHANGED: "Zmieniona",
    UnitStatus.SAME: "Bez zmian",
    DiffStatus.ADDED: "Dodano",
    DiffStatus.REMOVED: "Usunięto",
    DiffStatus.CHANGED: "Zmieniono",
    DiffStatus.UNCHANGED: "Bez zmian",
}


def _fit_columns(sheet: Worksheet, limit: int) -> None:
    for column_cells in sheet.columns:
        max_length = max(len(str(cell.value or "")) for cell in column_cells)
        adjusted = max_length + 2
        column_letter = column_cells[0].column_letter
        sheet.column_dimensions[column_letter].width = min(adjusted, limit)


def _weapon_text(weapon: Weapon) -> str:
    count = f"{weapon.count}x " if weapon.count and weapon.count > 1 else ""
    reach = f'{weapon.range}"' if weapon.range else "Wręcz"
    parts = [reach, f"A{weapon.attacks}" if weapon.attacks is not None else "A-"]
    parts.extend(rule.display_name for rule in weapon.special_rules)
    return f"{count}{weapon.name} ({', '.join(parts)})"


def _value_text(value: Any) -> str:
    if isinstance(value, Weapon):
        return _weapon_text(value)
    if isinstance(value, Rule):
        return value.label or value.display_name
    return str(value)


def _list_diff_text(diff: ListDiff | None) -> str:
    if diff is None:
        return ""
    parts: list[str] = []
    for item in diff.items:
        if item.status is DiffStatus.ADDED:
            parts.append(f"+ {_value_text(item.value)}")
        elif item.status is DiffStatus.REMOVED:
            parts.append(f"- {_value_text(item.value)}")
    return "\n".join(parts)


def _stat_text(change: StatChange | None, fallback: int | None) -> str:
    if change is None:
        return f"{fallback}+" if fallback is not None else "-"
    if not change.changed:
        return f"{change.after}+" if change.after is not None else "-"
    return f"{change.before}+ → {change.after}+"


def _ratings_text(changes: UnitFieldDiff | None) -> str:
    if changes is None:
        return ""
    lines = []
    for change in (*changes.rule_ratings, *changes.weapon_ratings):
        prefix = f"{change.weapon}: " if change.weapon else ""
        lines.append(f"{prefix}{change.name} {change.before} → {change.after}")
    return "\n".join(lines)


def _append_units_sheet(workbook: Workbook, result: ArmyComparisonResult) -> None:
    sheet = workbook.active
    sheet.title = "Jednostki"
    sheet.append(
        [
            "Jednostka",
            "Status",
            "Koszt A",
            "Koszt B",
            "Różnica",
            "Jakość",
            "Obrona",
            "Uzbrojenie",
            "Zasady",
            "Wartości zasad",
        ]
    )
    for row in result.unit_rows:
        changes = row.changes
        unit = row.unit_b or row.unit_a
        sheet.append(
            [
                row.name,
                STATUS_LABELS[row.status],
                row.unit_a.cost if row.unit_a else None,
                row.unit_b.cost if row.unit_b else None,
                changes.cost.delta if changes else None,
                _stat_text(changes.quality if changes else None, unit.quality),
                _stat_text(changes.defense if changes else None, unit.defense),
                _list_diff_text(changes.weapons if changes else None),
                _list_diff_text(changes.rules if changes else None),
                _ratings_text(changes),
            ]
        )
    _fit_columns(sheet, 60)


def _append_upgrades_sheet(workbook: Workbook, result: ArmyComparisonResult) -> None:
    sheet = workbook.create_sheet("Ulepszenia")
    sheet.append(["Jednostka", "Pakiet", "Sekcja", "Opcja", "Status", "Koszt A", "Koszt B"])
    for row in result.unit_rows:
        if row.changes is None:
            continue
        for package in row.changes.upgrades:
            for section in package.sections:
                for option in section.options:
                    if option.status is DiffStatus.UNCHANGED:
                        continue
                    sheet.append(
                        [
                            row.name,
                            package.hint_b or package.hint_a or package.uid,
                            section.label_b or section.label_a or "",
                            option.label or "",
                            STATUS_LABELS[option.status],
                            option.cost_a,
                            option.cost_b,
                        ]
                    )
    _fit_columns(sheet, 50)


def _append_spells_sheet(workbook: Workbook, result: ArmyComparisonResult) -> None:
    sheet = workbook.create_sheet("Czary")
    sheet.append(["Nazwa", "Status", "Próg A", "Próg B", "Efekt"])
    for entry in result.spells_diff.entries:
        sheet.append(
            [
                entry.name,
                STATUS_LABELS[entry.status],
                entry.threshold.before,
                entry.threshold.after,
                entry.effect.after if entry.effect.after is not None else entry.effect.before,
            ]
        )
    _fit_columns(sheet, 80)


def _append_special_rules_sheet(workbook: Workbook, result: ArmyComparisonResult) -> None:
    sheet = workbook.create_sheet("Zasady specjalne")
    sheet.append(["Nazwa", "Status", "Opis A", "Opis B"])
    for entry in result.special_rules_diff.entries:
        sheet.append(
            [
                entry.name,
                STATUS_LABELS[entry.status],
                entry.description.before,
                entry.description.after,
            ]
        )
    _fit_columns(sheet, 80)


def build_comparison_workbook(result: ArmyComparisonResult) -> Workbook:
    workbook = Workbook()
    _append_units_sheet(workbook, result)
    _append_upgrades_sheet(workbook, result)
    _append_spells_sheet(workbook, result)
    _append_special_rules_sheet(workbook, result)
    return workbook


def _content_disposition(filename: str) -> str:
    # Header values must be latin-1; the full name goes in filename*.
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = fallback.replace('"', '') or "army.xlsx"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/compare/{system}/{army_id}.xlsx")
def export_comparison_xlsx(
    system: str,
    army_id: str,
    version_a: str | None = None,
    version_b: str | None = None,
    store: ArmyStore = Depends(get_store),
):
    try:
        result = _load_comparison(store, system, army_id, version_a, version_b)
    except (ArmyStoreError, InvalidDocument) as exc:
        raise _http_error(exc) from exc

    workbook = build_comparison_workbook(result)
    buffer = BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    stem = army_id.rsplit(".", 1)[0].split("(", 1)[0].strip().replace(" ", "_") or "army"
    filename = f"{stem}_{result.version_a}_{result.version_b}.xlsx"
    headers = {"Content-Disposition": _content_disposition(filename)}
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )
