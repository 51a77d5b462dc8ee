from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterator

from ..config import DATA_DIR, GAME_SYSTEMS
from ..schemas import ArmyDocument, InvalidDocument, Unit, parse_document

logger = logging.getLogger(__name__)

MANIFEST_NAME = "index.json"


class ArmyStoreError(Exception):
    """Raised when the army data tree cannot answer a query."""


class ArmyNotFound(ArmyStoreError):
    """Raised when a system, version or army file does not exist."""


class AmbiguousArmyMatch(ArmyStoreError):
    """Raised when several armies share the name prefix being looked up."""

    def __init__(self, message: str, *, candidates: list[ArmySummary]) -> None:
        super().__init__(message)
        self.candidates = candidates


@dataclass(frozen=True, slots=True)
class ArmySummary:
    id: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ArmyCatalogEntry:
    uid: str
    name: str
    generic_name: str | None
    units_count: int
    enabled_game_systems: tuple[int, ...]
    system_id: int
    system: str
    version: str
    file: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "name": self.name,
            "genericName": self.generic_name,
            "unitsCount": self.units_count,
            "enabledGameSystems": list(self.enabled_game_systems),
            "systemId": self.system_id,
            "system": self.system,
            "version": self.version,
            "file": self.file,
        }


def _check_segment(value: str, label: str) -> str:
    text = (value or "").strip()
    if not text or text in {".", ".."} or "/" in text or "\\" in text:
        raise ArmyNotFound(f"Nieprawidłowa nazwa ({label}): {value!r}")
    return text


def _name_prefix(army_id: str) -> str:
    return army_id.split("(", 1)[0].strip()


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise InvalidDocument(f"Plik {path.name} nie zawiera poprawnego JSON.") from exc


class ArmyStore:
    """Read access to a ``<system>/<version>/<Name (uid)>.json`` tree."""

    def __init__(self, root: Path, game_systems: dict[int, str] | None = None) -> None:
        self.root = Path(root)
        self.game_systems = dict(GAME_SYSTEMS if game_systems is None else game_systems)

    def _directories(self, path: Path) -> list[str]:
        if not path.is_dir():
            return []
        return sorted(entry.name for entry in path.iterdir() if entry.is_dir())

    def list_systems(self) -> list[str]:
        if not self.root.is_dir():
            logger.warning("Katalog danych %s nie istnieje", self.root)
            return []
        return self._directories(self.root)

    def _system_path(self, system: str) -> Path:
        path = self.root / _check_segment(system, "system")
        if not path.is_dir():
            raise ArmyNotFound(f"Nie znaleziono systemu gry {system}")
        return path

    def _version_path(self, system: str, version: str) -> Path:
        path = self._system_path(system) / _check_segment(version, "wersja")
        if not path.is_dir():
            raise ArmyNotFound(f"Nie znaleziono wersji {version} systemu {system}")
        return path

    def list_versions(self, system: str) -> list[str]:
        # Newest first, version directories sort lexically.
        return list(reversed(self._directories(self._system_path(system))))

    def default_versions(self, system: str) -> tuple[str, str]:
        versions = self.list_versions(system)
        if not versions:
            raise ArmyNotFound(f"System {system} nie ma żadnych wersji")
        if len(versions) == 1:
            return versions[0], versions[0]
        return versions[1], versions[0]

    def list_armies(self, system: str, version: str) -> list[ArmySummary]:
        path = self._version_path(system, version)
        return [
            ArmySummary(id=entry.name, name=entry.stem)
            for entry in sorted(path.iterdir(), key=lambda item: item.name)
            if entry.is_file() and entry.suffix == ".json" and entry.name != MANIFEST_NAME
        ]

    def load_army(self, system: str, version: str, army_id: str) -> ArmyDocument:
        path = self._version_path(system, version) / _check_segment(army_id, "armia")
        if path.name == MANIFEST_NAME or not path.is_file():
            raise ArmyNotFound(f"Nie znaleziono armii {army_id} w wersji {version}")
        return parse_document(_read_json(path))

    def _catalog_files(
        self, game_system_id: int | None
    ) -> Iterator[tuple[ArmyCatalogEntry, dict[str, Any]]]:
        system_ids = {slug: system_id for system_id, slug in self.game_systems.items()}
        for system in self.list_systems():
            system_id = system_ids.get(system)
            if system_id is None:
                continue
            if game_system_id is not None and system_id != game_system_id:
                continue
            for version in self.list_versions(system):
                for summary in self.list_armies(system, version):
                    path = self.root / system / version / summary.id
                    try:
                        data = _read_json(path)
                    except (OSError, InvalidDocument) as exc:
                        logger.warning("Pominięto plik %s: %s", path, exc)
                        continue
                    if not isinstance(data, dict) or not data.get("uid"):
                        continue
                    units = data.get("units")
                    entry = ArmyCatalogEntry(
                        uid=str(data["uid"]),
                        name=data.get("name") or summary.name,
                        generic_name=data.get("genericName"),
                        units_count=len(units) if isinstance(units, list) else 0,
                        enabled_game_systems=tuple(data.get("enabledGameSystems") or ()),
                        system_id=system_id,
                        system=system,
                        version=version,
                        file=summary.id,
                    )
                    yield entry, data

    def catalog(self, game_system_id: int | None = None) -> list[ArmyCatalogEntry]:
        """Summaries of every army book in known game systems, newest version first."""
        entries = [entry for entry, _ in self._catalog_files(game_system_id)]
        logger.debug("Katalog armii: %d pozycji", len(entries))
        return entries

    def find_by_uid(self, uid: str, game_system_id: int | None = None) -> ArmyDocument:
        for entry, data in self._catalog_files(game_system_id):
            if entry.uid == uid:
                return parse_document(data)
        raise ArmyNotFound(f"Nie znaleziono armii o identyfikatorze {uid}")

    def find_counterpart(self, system: str, version: str, army_id: str) -> ArmySummary:
        """Locate the file of the same army in another version.

        File names are normally stable. Otherwise the name before the
        parenthesized uid is compared, exact names first and then names
        starting with it; more than one equally good candidate is reported
        instead of guessed.
        """
        armies = self.list_armies(system, version)
        for summary in armies:
            if summary.id == army_id:
                return summary
        prefix = _name_prefix(army_id)
        if not prefix:
            raise ArmyNotFound(f"Nie znaleziono armii {army_id} w wersji {version}")
        candidates = [summary for summary in armies if _name_prefix(summary.name) == prefix]
        if not candidates:
            candidates = [summary for summary in armies if summary.name.startswith(prefix)]
        if not candidates:
            raise ArmyNotFound(f"Nie znaleziono armii {army_id} w wersji {version}")
        if len(candidates) > 1:
            logger.info(
                "Armia %s ma %d kandydatów w wersji %s", army_id, len(candidates), version
            )
            raise AmbiguousArmyMatch(
                f"Armia {army_id} pasuje do wielu plików w wersji {version}",
                candidates=candidates,
            )
        return candidates[0]


def filter_units(
    document: ArmyDocument,
    *,
    min_cost: int | None = None,
    max_cost: int | None = None,
    quality: int | None = None,
) -> list[Unit]:
    units = list(document.units)
    if min_cost is not None:
        units = [unit for unit in units if unit.cost is not None and unit.cost >= min_cost]
    if max_cost is not None:
        units = [unit for unit in units if unit.cost is not None and unit.cost <= max_cost]
    if quality is not None:
        units = [unit for unit in units if unit.quality == quality]
    return units


def get_store() -> ArmyStore:
    return ArmyStore(DATA_DIR)
