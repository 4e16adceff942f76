import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

SETTINGS_PATH = Path(os.environ.get("MONGOSHELL_SETTINGS", Path(__file__).parent / "settings.json"))
TOKEN_FILE = Path(__file__).parent / ".token"


class Settings(BaseModel):
    token: Optional[str] = None
    server_selection_timeout_ms: int = 3000
    connect_timeout_ms: int = 3000
    socket_timeout_ms: int = 3000
    max_pool_size: int = 10
    log_level: str = "INFO"


def _load_settings_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse {path}: {e}")
    if not isinstance(data, dict):
        raise RuntimeError(f"{path} must contain a JSON object")
    return data


def _load_token(data: dict) -> Optional[str]:
    # 1) settings.json (preferred)
    token = (data.get("token") or "").strip()
    if token:
        return token

    # 2) .token (plain text fallback)
    if TOKEN_FILE.exists():
        token = TOKEN_FILE.read_text(encoding="utf-8").strip()
        if not token:
            raise RuntimeError(".token is empty. Put your token on the first line.")
        return token

    # 3) nothing found: requests are not authenticated
    return None


def load_settings(path: Optional[Path] = None) -> Settings:
    data = _load_settings_file(Path(path) if path else SETTINGS_PATH)
    data["token"] = _load_token(data)
    return Settings(**data)


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
