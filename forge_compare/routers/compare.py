from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from ..schemas import InvalidDocument
from ..services.army_store import ArmyStore, ArmyStoreError, get_store
from ..services.comparison import ArmyComparisonResult, compare_armies
from .armies import _http_error

router = APIRouter(prefix="/compare", tags=["compare"])
logger = logging.getLogger(__name__)


def _load_comparison(
    store: ArmyStore,
    system: str,
    army_id: str,
    version_a: str | None,
    version_b: str | None,
) -> ArmyComparisonResult:
    if not version_a or not version_b:
        default_a, default_b = store.default_versions(system)
        version_a = version_a or default_a
        version_b = version_b or default_b

    document_a = store.load_army(system, version_a, army_id)
    counterpart = store.find_counterpart(system, version_b, army_id)
    document_b = store.load_army(system, version_b, counterpart.id)
    logger.info(
        "Porównanie armii %s: %s -> %s (%s)", army_id, version_a, version_b, counterpart.id
    )

    result = compare_armies(document_a, document_b)
    return result.model_copy(
        update={
            "version_a": result.version_a or version_a,
            "version_b": result.version_b or version_b,
        }
    )


@router.get("/{system}/{army_id}")
def compare_army(
    system: str,
    army_id: str,
    version_a: str | None = None,
    version_b: str | None = None,
    store: ArmyStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        result = _load_comparison(store, system, army_id, version_a, version_b)
    except (ArmyStoreError, InvalidDocument) as exc:
        raise _http_error(exc) from exc
    return result.to_payload()
