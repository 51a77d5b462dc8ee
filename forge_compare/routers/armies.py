from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import DATA_DIR, GAME_SYSTEMS
from ..schemas import InvalidDocument
from ..services import manifests
from ..services.army_store import (
    AmbiguousArmyMatch,
    ArmyNotFound,
    ArmyStore,
    filter_units,
    get_store,
)

router = APIRouter(prefix="/data", tags=["data"])
logger = logging.getLogger(__name__)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, AmbiguousArmyMatch):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "candidates": [candidate.to_dict() for candidate in exc.candidates],
            },
        )
    if isinstance(exc, ArmyNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidDocument):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/armies")
def army_catalog(
    game_system: int | None = None, store: ArmyStore = Depends(get_store)
) -> list[dict[str, Any]]:
    return [entry.to_dict() for entry in store.catalog(game_system)]


@router.get("/armies/{uid}")
def army_by_uid(
    uid: str, game_system: int | None = None, store: ArmyStore = Depends(get_store)
) -> dict[str, Any]:
    try:
        document = store.find_by_uid(uid, game_system)
    except (ArmyNotFound, InvalidDocument) as exc:
        raise _http_error(exc) from exc
    return document.model_dump(mode="json", by_alias=True)


@router.get("/armies/{uid}/units")
def army_units_by_uid(
    uid: str,
    min_cost: int | None = None,
    max_cost: int | None = None,
    quality: int | None = None,
    store: ArmyStore = Depends(get_store),
) -> list[dict[str, Any]]:
    try:
        document = store.find_by_uid(uid)
    except (ArmyNotFound, InvalidDocument) as exc:
        raise _http_error(exc) from exc
    units = filter_units(document, min_cost=min_cost, max_cost=max_cost, quality=quality)
    return [unit.model_dump(mode="json", by_alias=True) for unit in units]


@router.get("/systems")
def list_systems(store: ArmyStore = Depends(get_store)) -> list[str]:
    return store.list_systems()


@router.get("/{system}/versions")
def list_versions(system: str, store: ArmyStore = Depends(get_store)) -> list[str]:
    try:
        return store.list_versions(system)
    except ArmyNotFound as exc:
        raise _http_error(exc) from exc


@router.get("/{system}/{version}/armies")
def list_armies(
    system: str, version: str, store: ArmyStore = Depends(get_store)
) -> list[dict[str, str]]:
    try:
        armies = store.list_armies(system, version)
    except ArmyNotFound as exc:
        raise _http_error(exc) from exc
    return [summary.to_dict() for summary in armies]


@router.get("/{system}/{version}/armies/{army_id}")
def army_detail(
    system: str, version: str, army_id: str, store: ArmyStore = Depends(get_store)
) -> dict[str, Any]:
    try:
        document = store.load_army(system, version, army_id)
    except (ArmyNotFound, InvalidDocument) as exc:
        raise _http_error(exc) from exc
    return document.model_dump(mode="json", by_alias=True)


@router.get("/{system}/{version}/armies/{army_id}/units")
def army_units(
    system: str,
    version: str,
    army_id: str,
    min_cost: int | None = None,
    max_cost: int | None = None,
    quality: int | None = None,
    store: ArmyStore = Depends(get_store),
) -> list[dict[str, Any]]:
    try:
        document = store.load_army(system, version, army_id)
    except (ArmyNotFound, InvalidDocument) as exc:
        raise _http_error(exc) from exc
    units = filter_units(document, min_cost=min_cost, max_cost=max_cost, quality=quality)
    return [unit.model_dump(mode="json", by_alias=True) for unit in units]


@router.post("/manifests")
def regenerate_manifests() -> dict[str, int]:
    written = manifests.generate_manifests(DATA_DIR)
    logger.info("Odświeżono listy armii (%d plików)", written)
    return {"written": written}


@router.post("/organize")
def organize_exports() -> dict[str, Any]:
    moved = manifests.organize_exports(DATA_DIR, GAME_SYSTEMS)
    written = manifests.generate_manifests(DATA_DIR)
    logger.info("Uporządkowano %d plików eksportu", len(moved))
    return {"moved": [str(path.relative_to(DATA_DIR)) for path in moved], "written": written}
