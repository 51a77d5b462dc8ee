"""Static `index.json` listings and layout of exported army books."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any

from .army_store import MANIFEST_NAME, ArmyStore

logger = logging.getLogger(__name__)


def _write_json(path: Path, payload: Any) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)


def generate_manifests(root: Path) -> int:
    """Write listings for systems, versions and armies; return files written."""
    store = ArmyStore(root)
    if not store.root.is_dir():
        logger.warning("Katalog danych %s nie istnieje", store.root)
        return 0
    systems = store.list_systems()
    _write_json(store.root / MANIFEST_NAME, systems)
    written = 1
    for system in systems:
        versions = store.list_versions(system)
        _write_json(store.root / system / MANIFEST_NAME, versions)
        written += 1
        for version in versions:
            armies = [summary.to_dict() for summary in store.list_armies(system, version)]
            _write_json(store.root / system / version / MANIFEST_NAME, armies)
            written += 1
            logger.info("Zapisano listę armii dla %s/%s (%d)", system, version, len(armies))
    logger.info("Wygenerowano %d plików index.json w %s", written, store.root)
    return written


def _system_slug(data: dict[str, Any], game_systems: dict[int, str]) -> str:
    enabled = data.get("enabledGameSystems") or []
    for system_id, slug in game_systems.items():
        if system_id in enabled:
            return slug
    if enabled:
        return f"game-{enabled[0]}"
    return "game-unknown"


def export_file_name(data: dict[str, Any], fallback: str) -> str:
    name = data.get("name") or "Unknown"
    uid = data.get("uid") or fallback
    return f"{name} ({uid}).json".replace("/", "-")


def organize_exports(root: Path, game_systems: dict[int, str]) -> list[Path]:
    """Move loose army book dumps in ``root`` into the versioned tree."""
    root = Path(root)
    moved: list[Path] = []
    if not root.is_dir():
        logger.warning("Katalog danych %s nie istnieje", root)
        return moved
    for path in sorted(root.glob("*.json")):
        if path.name == MANIFEST_NAME:
            continue
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Pominięto plik %s: %s", path.name, exc)
            continue
        if not isinstance(data, dict):
            logger.warning("Pominięto plik %s: oczekiwano obiektu JSON", path.name)
            continue
        version = str(data.get("versionString") or "unknown").replace("/", "-")
        target_dir = root / _system_slug(data, game_systems) / version
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / export_file_name(data, path.stem)
        shutil.move(str(path), str(target))
        logger.info("Przeniesiono %s do %s", path.name, target)
        moved.append(target)
    return moved
