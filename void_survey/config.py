"""Survey settings.

Read from ``configs/settings.yaml`` and overridden by ``VOID_SURVEY_*``
environment variables (a ``.env`` file is honoured).
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

BASE_DIR = Path(__file__).resolve().parents[1]
CONFIGS_DIR = BASE_DIR / "configs"
ENV_PREFIX = "VOID_SURVEY_"


class SurveySettings(BaseModel):
    catalog_path: Path = CONFIGS_DIR / "sors.json"
    drafts_dir: Path = BASE_DIR / "drafts"
    draft_key: str = "emptyHomesSurveyDraft"
    autosave_delay: float = 0.3  # seconds

    minutes_per_day: float = 400
    recharge_warning_days: float = 5
    lorry_default_cost: Decimal = Decimal("250.00")

    dashboard_url: Optional[str] = None
    dashboard_api_key: Optional[str] = None
    docstore_url: Optional[str] = None
    docstore_collection: str = "surveys"
    docstore_api_key: Optional[str] = None
    submit_timeout: Optional[float] = None  # None keeps httpx's default

    log_level: str = "INFO"
    json_logs: bool = False


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _env_overrides() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in SurveySettings.model_fields:
        val = os.getenv(ENV_PREFIX + name.upper())
        if val is not None and val != "":
            out[name] = val
    return out


def load_settings(path: Optional[Path] = None) -> SurveySettings:
    path = Path(path) if path else CONFIGS_DIR / "settings.yaml"
    data: Dict[str, Any] = _load_yaml(path) if path.exists() else {}
    data.update(_env_overrides())
    settings = SurveySettings(**data)
    # Relative paths in the yaml are relative to the repo, not the cwd
    for name in ("catalog_path", "drafts_dir"):
        p = getattr(settings, name)
        if not p.is_absolute():
            setattr(settings, name, BASE_DIR / p)
    return settings
