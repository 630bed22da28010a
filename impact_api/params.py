"""
Input normalization for the impact engine.

Turns raw control values (numbers or numeric strings, as they arrive from a
form or query string) into validated ImpactParameters / ImpactLocation.
"""
from __future__ import annotations
from math import isfinite
from typing import Any, Optional, Tuple

from .impact_model import ImpactModel, ImpactParameters, ImpactLocation


class InvalidParameterError(ValueError):
    """Raised when an impact parameter or coordinate is out of its physical domain."""


# Bulk densities of the material presets offered by the UI (kg/m^3)
MATERIAL_DENSITIES = {
    "ordinary_chondrite": 3500.0,
    "carbonaceous_chondrite": 3200.0,
    "iron": 7800.0,
    "stony_iron": 5200.0,
    "achondrite": 2700.0,
}

# Nominal slider ranges; the engine itself accepts any positive value
UI_RANGES = {
    "diameter_m": (1.0, 2000.0),
    "speed_km_s": (1.0, 72.0),
    "angle_deg": (1.0, 89.0),
}

DEFAULT_PARAMETERS = ImpactParameters(
    diameter_m=500.0,
    speed_km_s=17.0,
    angle_deg=45.0,
    density_kgpm3=MATERIAL_DENSITIES["ordinary_chondrite"],
)


def _to_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidParameterError(f"{name} must be a number, got {value!r}.")
    try:
        x = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} must be a number, got {value!r}.") from None
    if not isfinite(x):
        raise InvalidParameterError(f"{name} must be finite, got {value!r}.")
    return x


def _material_key(name: str) -> str:
    return name.strip().lower().replace("-", "_").replace(" ", "_")


def resolve_density(value: Any) -> float:
    """Density in kg/m^3 from a number, numeric string or material preset name."""
    if isinstance(value, str):
        key = _material_key(value)
        if key in MATERIAL_DENSITIES:
            return MATERIAL_DENSITIES[key]
    return _to_float("density", value)


def _clamp(x: float, bounds: Tuple[float, float]) -> float:
    lo, hi = bounds
    return max(lo, min(x, hi))


def normalize_parameters(diameter: Any, speed: Any, angle: Any, density: Any,
                         clamp: bool = False) -> ImpactParameters:
    """
    Validate raw impactor values.

    Diameter (m), speed (km/s) and density (kg/m^3, or a preset name) must be
    positive; angle (degrees above horizontal) must lie in (0, 90].
    With clamp=True, values are then pulled into the UI slider ranges.
    """
    d = _to_float("diameter", diameter)
    v = _to_float("speed", speed)
    a = _to_float("angle", angle)
    rho = resolve_density(density)

    if d <= 0.0:
        raise InvalidParameterError(f"diameter must be positive, got {d}.")
    if v <= 0.0:
        raise InvalidParameterError(f"speed must be positive, got {v}.")
    if rho <= 0.0:
        raise InvalidParameterError(f"density must be positive, got {rho}.")
    if not 0.0 < a <= 90.0:
        raise InvalidParameterError(f"angle must be in (0, 90] degrees, got {a}.")

    if clamp:
        d = _clamp(d, UI_RANGES["diameter_m"])
        v = _clamp(v, UI_RANGES["speed_km_s"])
        a = _clamp(a, UI_RANGES["angle_deg"])

    params = ImpactParameters(diameter_m=d, speed_km_s=v, angle_deg=a, density_kgpm3=rho)
    _check_energy(params)
    return params


def _check_energy(params: ImpactParameters) -> None:
    """Reject impactors whose yield is not a positive, finite float (overflow or underflow)."""
    try:
        mt = ImpactModel(params, 0).energy_mt_tnt()
    except OverflowError:
        mt = float("inf")
    if not isfinite(mt):
        raise InvalidParameterError("impactor energy is too large to model; reduce diameter, speed or density.")
    if mt <= 0.0:
        raise InvalidParameterError("impactor energy is too small to model; increase diameter, speed or density.")


def normalize_location(lat: Any, lng: Any) -> ImpactLocation:
    """Validate latitude; wrap an out-of-range longitude into [-180, 180)."""
    la = _to_float("lat", lat)
    lo = _to_float("lng", lng)
    if not -90.0 <= la <= 90.0:
        raise InvalidParameterError(f"lat must be in [-90, 90], got {la}.")
    if not -180.0 <= lo <= 180.0:
        # map clicks on a panned world map
        lo = (lo + 180.0) % 360.0 - 180.0
    return ImpactLocation(lat=la, lng=lo)


def parameters_from_mapping(raw: dict, defaults: Optional[ImpactParameters] = None,
                            clamp: bool = False) -> ImpactParameters:
    """Partial settings update: missing keys keep their current (default) value."""
    base = defaults or DEFAULT_PARAMETERS
    return normalize_parameters(
        raw.get("diameter_m", base.diameter_m),
        raw.get("speed_km_s", base.speed_km_s),
        raw.get("angle_deg", base.angle_deg),
        raw.get("density_kgpm3", base.density_kgpm3),
        clamp=clamp,
    )
