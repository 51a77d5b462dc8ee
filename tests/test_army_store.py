from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from forge_compare.schemas import InvalidDocument
from forge_compare.services import manifests
from forge_compare.services.army_store import (
    AmbiguousArmyMatch,
    ArmyNotFound,
    ArmyStore,
    filter_units,
)


def _write(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def _army(name: str, uid: str, version: str) -> dict:
    return {
        "uid": uid,
        "name": name,
        "versionString": version,
        "units": [
            {"id": "u1", "name": "Captain", "cost": 100, "quality": 3},
            {"id": "u2", "name": "Grunts", "cost": 150, "quality": 4},
            {"id": "u3", "name": "Walker", "cost": 250, "quality": 4},
        ],
    }


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    system = root / "grimdark-future"
    _write(system / "3.2.0" / "Battle Brothers (aaa).json", _army("Battle Brothers", "aaa", "3.2.0"))
    _write(system / "3.2.0" / "Orc Marauders (ccc).json", _army("Orc Marauders", "ccc", "3.2.0"))
    _write(system / "3.3.0" / "Battle Brothers (bbb).json", _army("Battle Brothers", "bbb", "3.3.0"))
    _write(system / "3.3.0" / "Orc Marauders (ccc).json", _army("Orc Marauders", "ccc", "3.3.0"))
    _write(system / "3.3.0" / "Orc Marauders Warband (ddd).json", _army("Orc Marauders Warband", "ddd", "3.3.0"))
    _write(system / "3.3.0" / "index.json", [])
    (root / "age-of-fantasy").mkdir(parents=True)
    return root


def test_lists_systems_and_versions(data_root: Path) -> None:
    store = ArmyStore(data_root)

    assert store.list_systems() == ["age-of-fantasy", "grimdark-future"]
    assert store.list_versions("grimdark-future") == ["3.3.0", "3.2.0"]
    assert store.default_versions("grimdark-future") == ("3.2.0", "3.3.0")


def test_default_versions_need_at_least_one(data_root: Path) -> None:
    store = ArmyStore(data_root)

    with pytest.raises(ArmyNotFound):
        store.default_versions("age-of-fantasy")


def test_missing_root_has_no_systems(tmp_path: Path) -> None:
    assert ArmyStore(tmp_path / "missing").list_systems() == []


def test_list_armies_skips_manifest(data_root: Path) -> None:
    armies = ArmyStore(data_root).list_armies("grimdark-future", "3.3.0")

    assert [summary.id for summary in armies] == [
        "Battle Brothers (bbb).json",
        "Orc Marauders (ccc).json",
        "Orc Marauders Warband (ddd).json",
    ]
    assert armies[0].to_dict() == {"id": "Battle Brothers (bbb).json", "name": "Battle Brothers (bbb)"}


def test_load_army(data_root: Path) -> None:
    document = ArmyStore(data_root).load_army("grimdark-future", "3.2.0", "Battle Brothers (aaa).json")

    assert document.uid == "aaa"
    assert len(document.units) == 3


@pytest.mark.parametrize(
    ("system", "version", "army_id"),
    [
        ("missing", "3.2.0", "Battle Brothers (aaa).json"),
        ("grimdark-future", "9.9.9", "Battle Brothers (aaa).json"),
        ("grimdark-future", "3.2.0", "Nobody (zzz).json"),
        ("grimdark-future", "..", "Battle Brothers (aaa).json"),
        ("grimdark-future", "3.2.0", "../3.3.0/Battle Brothers (bbb).json"),
        ("grimdark-future", "3.3.0", "index.json"),
    ],
)
def test_load_army_not_found(data_root: Path, system: str, version: str, army_id: str) -> None:
    with pytest.raises(ArmyNotFound):
        ArmyStore(data_root).load_army(system, version, army_id)


def test_load_army_with_broken_json(data_root: Path) -> None:
    broken = data_root / "grimdark-future" / "3.2.0" / "Broken (eee).json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidDocument):
        ArmyStore(data_root).load_army("grimdark-future", "3.2.0", broken.name)


def test_counterpart_exact_and_prefix(data_root: Path) -> None:
    store = ArmyStore(data_root)

    exact = store.find_counterpart("grimdark-future", "3.3.0", "Orc Marauders (ccc).json")
    assert exact.id == "Orc Marauders (ccc).json"

    renamed = store.find_counterpart("grimdark-future", "3.3.0", "Battle Brothers (aaa).json")
    assert renamed.id == "Battle Brothers (bbb).json"


def test_counterpart_prefers_exact_name(data_root: Path) -> None:
    store = ArmyStore(data_root)

    summary = store.find_counterpart("grimdark-future", "3.3.0", "Orc Marauders (old).json")

    assert summary.id == "Orc Marauders (ccc).json"


def test_counterpart_ambiguous_prefix(data_root: Path) -> None:
    store = ArmyStore(data_root)

    with pytest.raises(AmbiguousArmyMatch) as excinfo:
        store.find_counterpart("grimdark-future", "3.3.0", "Orc Mar (old).json")

    assert [candidate.id for candidate in excinfo.value.candidates] == [
        "Orc Marauders (ccc).json",
        "Orc Marauders Warband (ddd).json",
    ]


def test_counterpart_ambiguous_exact_names(data_root: Path) -> None:
    _write(
        data_root / "grimdark-future" / "3.3.0" / "Orc Marauders (fff).json",
        _army("Orc Marauders", "fff", "3.3.0"),
    )
    store = ArmyStore(data_root)

    with pytest.raises(AmbiguousArmyMatch) as excinfo:
        store.find_counterpart("grimdark-future", "3.3.0", "Orc Marauders (old).json")

    assert [candidate.id for candidate in excinfo.value.candidates] == [
        "Orc Marauders (ccc).json",
        "Orc Marauders (fff).json",
    ]


def test_counterpart_missing(data_root: Path) -> None:
    with pytest.raises(ArmyNotFound):
        ArmyStore(data_root).find_counterpart("grimdark-future", "3.3.0", "Elves (eee).json")


def test_filter_units(data_root: Path) -> None:
    document = ArmyStore(data_root).load_army("grimdark-future", "3.2.0", "Battle Brothers (aaa).json")

    assert [unit.name for unit in filter_units(document, min_cost=120)] == ["Grunts", "Walker"]
    assert [unit.name for unit in filter_units(document, max_cost=150, quality=4)] == ["Grunts"]
    assert len(filter_units(document)) == 3


def test_generate_manifests(data_root: Path) -> None:
    written = manifests.generate_manifests(data_root)

    # root, two systems, two versions
    assert written == 5
    assert json.loads((data_root / "index.json").read_text(encoding="utf-8")) == [
        "age-of-fantasy",
        "grimdark-future",
    ]
    versions = json.loads((data_root / "grimdark-future" / "index.json").read_text(encoding="utf-8"))
    assert versions == ["3.3.0", "3.2.0"]
    armies = json.loads(
        (data_root / "grimdark-future" / "3.2.0" / "index.json").read_text(encoding="utf-8")
    )
    assert armies == [
        {"id": "Battle Brothers (aaa).json", "name": "Battle Brothers (aaa)"},
        {"id": "Orc Marauders (ccc).json", "name": "Orc Marauders (ccc)"},
    ]


def test_generate_manifests_without_root(tmp_path: Path) -> None:
    assert manifests.generate_manifests(tmp_path / "missing") == 0


def test_organize_exports(tmp_path: Path) -> None:
    _write(
        tmp_path / "dump1.json",
        {"uid": "xyz", "name": "Elves/High", "versionString": "3.1.0", "enabledGameSystems": [4], "units": []},
    )
    _write(tmp_path / "dump2.json", {"name": "Ratmen", "enabledGameSystems": [99], "units": []})
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")

    moved = manifests.organize_exports(tmp_path, {2: "grimdark-future", 4: "age-of-fantasy"})

    assert moved == [
        tmp_path / "age-of-fantasy" / "3.1.0" / "Elves-High (xyz).json",
        tmp_path / "game-99" / "unknown" / "Ratmen (dump2).json",
    ]
    assert all(path.is_file() for path in moved)
    assert (tmp_path / "broken.json").is_file()
    assert not (tmp_path / "dump1.json").exists()


GAME_SYSTEMS = {2: "grimdark-future", 4: "age-of-fantasy"}


def test_catalog_lists_armies_with_uids(data_root: Path) -> None:
    _write(data_root / "grimdark-future" / "3.2.0" / "No Uid.json", {"name": "No Uid", "units": []})
    (data_root / "grimdark-future" / "3.2.0" / "Broken (x).json").write_text("{", encoding="utf-8")
    _write(data_root / "unknown-system" / "1.0" / "Stray (s).json", _army("Stray", "s", "1.0"))
    store = ArmyStore(data_root, GAME_SYSTEMS)

    catalog = store.catalog()

    assert [(entry.uid, entry.version) for entry in catalog] == [
        ("bbb", "3.3.0"),
        ("ccc", "3.3.0"),
        ("ddd", "3.3.0"),
        ("aaa", "3.2.0"),
        ("ccc", "3.2.0"),
    ]
    assert catalog[0].to_dict() == {
        "uid": "bbb",
        "name": "Battle Brothers",
        "genericName": None,
        "unitsCount": 3,
        "enabledGameSystems": [],
        "systemId": 2,
        "system": "grimdark-future",
        "version": "3.3.0",
        "file": "Battle Brothers (bbb).json",
    }
    assert store.catalog(4) == []
    assert len(store.catalog(2)) == 5


def test_find_by_uid_returns_newest(data_root: Path) -> None:
    store = ArmyStore(data_root, GAME_SYSTEMS)

    assert store.find_by_uid("ccc").version_string == "3.3.0"
    assert store.find_by_uid("aaa", 2).version_string == "3.2.0"
    with pytest.raises(ArmyNotFound):
        store.find_by_uid("aaa", 4)
    with pytest.raises(ArmyNotFound):
        store.find_by_uid("zzz")
