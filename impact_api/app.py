from contextlib import asynccontextmanager
import logging
from typing import Optional, Union

from fastapi import FastAPI, Query, HTTPException, Request
from pydantic import BaseModel, Field

from .config import MAX_POPULATION_DENSITY, load_settings, setup_logging
from .impact_model import compute_impact
from .params import (
    InvalidParameterError, MATERIAL_DENSITIES, UI_RANGES, DEFAULT_PARAMETERS,
    normalize_location, parameters_from_mapping,
)
from .population import PopulationResolver

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    setup_logging(settings.log_level)
    app.state.settings = settings
    app.state.resolver = PopulationResolver(
        url=settings.population_service_url,
        timeout_s=settings.population_timeout_s,
        fallback_density=settings.population_fallback_density,
    )
    logger.info(f"[start] population_service={settings.population_service_url} "
                f"timeout_s={settings.population_timeout_s}")
    try:
        yield
    finally:
        await app.state.resolver.aclose()


app = FastAPI(title="Asteroid Impact Calculator", version="1.0.0", lifespan=lifespan)

# -------------------------------
# Health + small utility endpoints
# -------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/materials")
def materials():
    d = DEFAULT_PARAMETERS
    return {
        "materials_kgpm3": MATERIAL_DENSITIES,
        "ranges": {k: list(v) for k, v in UI_RANGES.items()},
        "defaults": {"diameter_m": d.diameter_m, "speed_km_s": d.speed_km_s,
                     "angle_deg": d.angle_deg, "density_kgpm3": d.density_kgpm3},
    }

@app.get("/population")
async def population(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude in decimal degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in decimal degrees"),
):
    density = await request.app.state.resolver.resolve(lat, lon)
    return {"lat": lat, "lon": lon, "population_density": density, "is_ocean": density == 0}

# -------------------------------
# Impact simulation endpoint
# -------------------------------

class ParametersIn(BaseModel):
    # omitted fields keep the calculator defaults (see /materials)
    diameter_m: Optional[float] = Field(None, description="Impactor diameter in meters")
    speed_km_s: Optional[float] = Field(None, description="Impact speed in km/s")
    angle_deg: Optional[float] = Field(None, description="Impact angle above horizontal in degrees (90 = vertical)")
    density_kgpm3: Optional[Union[float, str]] = Field(
        None, description="Bulk density in kg/m^3 or a material preset name")

class LocationIn(BaseModel):
    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")

class ImpactRequest(BaseModel):
    parameters: ParametersIn = Field(default_factory=ParametersIn)
    location: LocationIn
    population_density: Optional[int] = Field(
        None, ge=0, le=MAX_POPULATION_DENSITY,
        description="Skip the lookup and use this density (people/km^2)")

@app.post("/impact")
async def impact(req: ImpactRequest, request: Request):
    settings = request.app.state.settings
    try:
        params = parameters_from_mapping(
            req.parameters.model_dump(exclude_none=True),
            clamp=settings.clamp_to_ui_ranges,
        )
        location = normalize_location(req.location.lat, req.location.lng)
    except InvalidParameterError as e:
        raise HTTPException(status_code=422, detail=str(e))

    density = req.population_density
    if density is None:
        density = await request.app.state.resolver.resolve(location.lat, location.lng)

    result = compute_impact(params, location, density)
    logger.info(f"[impact] d={params.diameter_m}m v={params.speed_km_s}km/s angle={params.angle_deg} "
                f"rho={params.density_kgpm3} density={density} Mt={result.megatons:.3g} "
                f"airburst={result.will_airburst}")
    return result.summary()
