from __future__ import annotations
import logging
import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

WORLDPOP_DENSITY_URL = (
    "https://worldpop.arcgis.com/arcgis/rest/services/"
    "WorldPop_Population_Density_1km/ImageServer/identify"
)
GLOBAL_AVERAGE_DENSITY = 57      # people/km^2, used when the lookup fails
MAX_POPULATION_DENSITY = 1_000_000  # people/km^2; no 1 km cell on Earth comes close
DEFAULT_TIMEOUT_S = 5.0
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    population_service_url: str = WORLDPOP_DENSITY_URL
    population_timeout_s: float = DEFAULT_TIMEOUT_S
    population_fallback_density: int = GLOBAL_AVERAGE_DENSITY
    log_level: str = "INFO"
    clamp_to_ui_ranges: bool = False
    host: str = "127.0.0.1"
    port: int = 8000


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"[config] {name}={raw!r} is not a number; using {default}")
        return default
    if value <= 0:
        logger.warning(f"[config] {name}={raw!r} must be positive; using {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"[config] {name}={raw!r} is not an integer; using {default}")
        return default
    if value < 0:
        logger.warning(f"[config] {name}={raw!r} must be >= 0; using {default}")
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Read settings from the environment (and a .env file, if present)."""
    load_dotenv()
    return Settings(
        population_service_url=os.getenv("POPULATION_SERVICE_URL") or WORLDPOP_DENSITY_URL,
        population_timeout_s=_env_float("POPULATION_TIMEOUT_S", DEFAULT_TIMEOUT_S),
        population_fallback_density=_env_int("POPULATION_FALLBACK_DENSITY", GLOBAL_AVERAGE_DENSITY),
        log_level=(os.getenv("IMPACT_LOG_LEVEL") or "INFO").upper(),
        clamp_to_ui_ranges=_env_bool("IMPACT_CLAMP_TO_UI_RANGES", False),
        host=os.getenv("IMPACT_HOST") or "127.0.0.1",
        port=_env_int("IMPACT_PORT", 8000),
    )


def setup_logging(level: str = "INFO") -> None:
    """Attach a console handler to the package logger. Safe to call repeatedly."""
    pkg_logger = logging.getLogger("impact_api")
    pkg_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    pkg_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg_logger.addHandler(handler)
