"""Application configuration loading utilities."""

from __future__ import annotations

import os
import pathlib
from functools import lru_cache

import yaml
from pydantic import BaseModel, Field

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = BASE_DIR.parent / "config" / "settings.yaml"


class SiteAdapterSettings(BaseModel):
    timeout_seconds: float = Field(default=15.0, gt=0)
    fallback_variant: str = "new-api"


class DashboardSettings(BaseModel):
    max_concurrency: int = Field(default=8, ge=1)


class AppConfig(BaseModel):
    site_adapter: SiteAdapterSettings = Field(default_factory=SiteAdapterSettings)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)


def _config_path(path: pathlib.Path | None) -> pathlib.Path:
    if path is not None:
        return path
    configured = os.getenv("APIHUB_CONFIG")
    return pathlib.Path(configured) if configured else DEFAULT_CONFIG_PATH


@lru_cache(maxsize=1)
def load_config(path: pathlib.Path | None = None) -> AppConfig:
    """Load adapter and dashboard settings from YAML.

    A missing file yields the defaults; an empty file is treated the same way.
    """
    config_path = _config_path(path)
    if not config_path.exists():
        return AppConfig()
    raw = yaml.safe_load(config_path.read_text()) or {}
    return AppConfig(**raw)
