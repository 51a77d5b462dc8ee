import json
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path(os.getenv("ARMY_DATA_DIR", "data"))
DEBUG = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
DEFAULT_SYSTEM = os.getenv("DEFAULT_SYSTEM", "grimdark-future")

_DEFAULT_GAME_SYSTEMS = {
    2: "grimdark-future",
    3: "grimdark-future-firefight",
    4: "age-of-fantasy",
    5: "age-of-fantasy-skirmish",
}


def _load_json_mapping(env_key: str, default: dict[int, str]) -> dict[int, str]:
    raw_value = os.getenv(env_key)
    if not raw_value:
        return dict(default)
    try:
        parsed = json.loads(raw_value)
    except json.JSONDecodeError:
        return dict(default)
    if not isinstance(parsed, dict):
        return dict(default)
    result: dict[int, str] = {}
    for key, value in parsed.items():
        try:
            system_id = int(key)
        except (TypeError, ValueError):
            continue
        slug = str(value).strip()
        if slug:
            result[system_id] = slug
    return result or dict(default)


GAME_SYSTEMS = _load_json_mapping("GAME_SYSTEMS", _DEFAULT_GAME_SYSTEMS)
