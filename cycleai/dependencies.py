"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from cycleai.config import Settings, get_settings
from cycleai.engine.config_loader import EngineConfig, get_engine_config


def engine_config() -> EngineConfig:
    """Return the active insight engine config.

    The lifespan hook loads ``insight_config_path`` when one is configured;
    otherwise the bundled YAML is loaded lazily on first use.
    """
    return get_engine_config()


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
EngineConfigDep = Annotated[EngineConfig, Depends(engine_config)]
