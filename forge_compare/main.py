from __future__ import annotations

import logging

from fastapi import FastAPI

from .config import DATA_DIR, DEBUG, DEFAULT_SYSTEM
from .routers import armies, compare, export_xlsx
from .services.army_store import ArmyStore

logger = logging.getLogger(__name__)

app = FastAPI(debug=DEBUG, title="Army Forge Compare")


@app.on_event("startup")
def startup_event() -> None:
    systems = ArmyStore(DATA_DIR).list_systems()
    logger.info("Application started, data in %s (systemy: %s)", DATA_DIR, ", ".join(systems) or "-")


@app.get("/")
def index() -> dict[str, object]:
    return {
        "name": app.title,
        "defaultSystem": DEFAULT_SYSTEM,
        "systems": ArmyStore(DATA_DIR).list_systems(),
    }


app.include_router(armies.router)
app.include_router(compare.router)
app.include_router(export_xlsx.router)
