from __future__ import annotations

import glob
import json
import os
import sys
from pathlib import Path
from typing import Any, Iterable

import pytest
import yaml

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from forge_compare.services.comparison import compare_armies


FIXTURE_DIR = Path(__file__).parent / "fixtures" / "armies"


def _load_fixtures() -> Iterable[tuple[str, dict[str, Any]]]:
    patterns = ("*.yml", "*.yaml", "*.json")
    paths = sorted(path for pattern in patterns for path in glob.glob(str(FIXTURE_DIR / pattern)))
    for path in paths:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) if path.endswith((".yml", ".yaml")) else json.load(handle)
        yield os.path.basename(path), data


FIXTURES = list(_load_fixtures())


@pytest.mark.parametrize(("fixture_name", "fixture"), FIXTURES, ids=[name for name, _ in FIXTURES])
def test_comparison_fixture(fixture_name: str, fixture: dict[str, Any]) -> None:
    result = compare_armies(fixture["before"], fixture["after"])
    expected = fixture["expected"]

    rows = [[row.name, row.status.value] for row in result.unit_rows]
    assert rows == expected["rows"], fixture.get("description", fixture_name)

    by_name = {row.name: row for row in result.unit_rows}
    for name, delta in (expected.get("cost_deltas") or {}).items():
        assert by_name[name].changes.cost.delta == delta
    for name, via in (expected.get("matched_via") or {}).items():
        assert by_name[name].matched_via == via

    assert sum(result.summary.values()) == len(result.unit_rows)


def test_fixture_directory_is_not_empty() -> None:
    assert FIXTURES, f"Brak plików w {FIXTURE_DIR}"
