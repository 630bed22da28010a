from __future__ import annotations
from dataclasses import dataclass, asdict
from math import pi, sin, radians, log10

# -----------------------------
# Physical constants & defaults
# -----------------------------
J_PER_MT_TNT = 4.184e15          # J in 1 megaton TNT
J_PER_KT_TNT = 4.184e12          # J in 1 kiloton TNT
MPS_TO_MPH = 2.237
AU_M = 149_597_870_700.0         # m
HURRICANE_J_PER_DAY = 1.5e16     # J released by a hurricane per day

# Angle scaling: sin(angle)^0.67
ANGLE_SCALING_EXPONENT = 0.67

# Crater: D0 = 0.02 * E^(1/3.4); oblique craters keep >= 30 % of D0
CRATER_COEFFICIENT = 0.02
CRATER_ENERGY_EXPONENT = 1.0 / 3.4
CRATER_MIN_FRACTION = 0.3
CRATER_DEPTH_RATIO = 0.2
BLAST_TO_CRATER_RATIO = 2.5
CIRCULAR_ANGLE_DEG = 60.0
ELLIPTICAL_ANGLE_DEG = 30.0

# Airburst: small, fast, steep
AIRBURST_MAX_DIAMETER_M = 200.0
AIRBURST_MIN_SPEED_KMS = 11.0
AIRBURST_MIN_ANGLE_DEG = 15.0

# Fireball: r = E_kt^0.4 km
FIREBALL_EXPONENT = 0.4
FIREBALL_SCALE_M = 1000.0
TREE_FIRE_TO_FIREBALL_RATIO = 10.0

# Shock wave: r = E_kt^0.33 * 2 km
SHOCKWAVE_EXPONENT = 0.33
SHOCKWAVE_SCALE_M = 2000.0
SHOCKWAVE_BASE_DB = 180.0
SHOCKWAVE_MAX_DB = 300.0
SHOCKWAVE_RINGS = {
    "lung_damage": 0.3,
    "eardrum_rupture": 0.4,
    "building_collapse": 0.7,
    "home_collapse": 0.9,
}

# Wind blast: v = E_kt^0.25 * 500 mph, r = E_kt^0.3 * 1.5 km
WIND_SPEED_EXPONENT = 0.25
WIND_SPEED_SCALE_MPH = 500.0
WIND_RADIUS_EXPONENT = 0.3
WIND_RADIUS_SCALE_M = 1500.0
WIND_RINGS = {
    "jupiter_wind": 0.2,
    "leveled": 0.4,
    "tornado": 0.7,
    "tree_knockdown": 1.2,
}

# Earthquake: M = 4 + log10(Mt), felt out to 10^M * 10 m
EARTHQUAKE_BASE_MAGNITUDE = 4.0
EARTHQUAKE_MAX_MAGNITUDE = 10.0
EARTHQUAKE_RADIUS_SCALE_M = 10.0

# Fatality rates per zone (fraction of the exposed population)
CRATER_FATALITY_RATE = 1.0
FIREBALL_FATALITY_RATE = 0.9
BURNS_3RD_DEGREE_RATE = 0.05
BURNS_2ND_DEGREE_RATE = 0.1
SHOCKWAVE_FATALITY_RATE = 0.3
WIND_FATALITY_RATE = 0.4
EARTHQUAKE_FATALITY_RATE = 0.001
TSUNAMI_FATALITY_RATE = 0.2

# Tsunami (ocean impacts above 1 Mt only)
TSUNAMI_MIN_MEGATONS = 1.0
TSUNAMI_HEIGHT_COEFFICIENT = 0.5
TSUNAMI_HEIGHT_ENERGY_REF_J = 1e15
TSUNAMI_HEIGHT_EXPONENT = 0.25
TSUNAMI_MIN_HEIGHT_M = 0.01
TSUNAMI_MAX_HEIGHT_M = 200.0
TSUNAMI_RADIUS_SCALE_KM = 100.0
TSUNAMI_RADIUS_EXPONENT = 0.25
TSUNAMI_MAX_RADIUS_KM = 5000.0
TSUNAMI_COAST_SEGMENT_KM = 500.0
TSUNAMI_COASTLINE_FRACTION = 0.1
TSUNAMI_INUNDATION_KM = 2.0
COASTAL_POPULATION_DENSITY = 150  # people/km^2

# Deflection
PHA_THRESHOLD_AU = 0.05
DETECTION_MIN_AU = 1.0
DETECTION_PHA_MULTIPLE = 20.0
MIN_DEFLECTION_EFFICIENCY = 0.1

# Reference explosive yields (Mt), largest first
HIROSHIMA_MT = 0.015
MODERN_WARHEAD_MT = 0.1
TSAR_BOMBA_MT = 50.0
BOMB_REFERENCES = (
    (TSAR_BOMBA_MT, "Tsar Bomba"),
    (MODERN_WARHEAD_MT, "modern nukes"),
    (HIROSHIMA_MT, "Hiroshima bombs"),
)

# Recurrence: (energy floor in Mt, years between impacts), largest first
IMPACT_FREQUENCY_STEPS = (
    (10_000.0, 65_000_000),
    (1_000.0, 650_000),
    (100.0, 65_000),
    (10.0, 6_500),
    (1.0, 650),
)
SMALLEST_IMPACT_FREQUENCY_YEARS = 65


@dataclass(frozen=True)
class ImpactParameters:
    diameter_m: float
    speed_km_s: float
    angle_deg: float  # 90 = vertical
    density_kgpm3: float

    @property
    def radius_m(self) -> float:
        return 0.5 * self.diameter_m

    @property
    def volume_m3(self) -> float:
        return (4.0 / 3.0) * pi * self.radius_m ** 3

    @property
    def mass_kg(self) -> float:
        return self.density_kgpm3 * self.volume_m3

    @property
    def speed_mps(self) -> float:
        return self.speed_km_s * 1000.0

    @property
    def angle_rad(self) -> float:
        return radians(self.angle_deg)


@dataclass(frozen=True)
class ImpactLocation:
    lat: float
    lng: float


@dataclass(frozen=True)
class ImpactResult:
    """Every derived quantity of one impact. Never mutated; recompute instead."""
    # location
    lat: float
    lng: float
    # kinetic
    mass_kg: float
    velocity_mps: float
    impact_speed_mph: float
    energy_j: float
    megatons: float
    gigatons: float
    # crater
    base_crater_diameter_m: float
    crater_diameter_m: float
    crater_depth_m: float
    crater_angle_scaling_pct: float
    crater_shape: str
    blast_radius_m: float
    crater_vaporized: int
    # fireball
    fireball_radius_m: float
    fireball_deaths: int
    burns_3rd_degree: int
    burns_2nd_degree: int
    tree_fire_radius_m: float
    # shock wave
    shockwave_decibels: float
    shockwave_radius_m: float
    shockwave_deaths: int
    lung_damage_radius_m: float
    eardrum_rupture_radius_m: float
    building_collapse_radius_m: float
    home_collapse_radius_m: float
    # wind
    wind_speed_mph: float
    wind_radius_m: float
    wind_deaths: int
    jupiter_wind_radius_m: float
    leveled_radius_m: float
    tornado_radius_m: float
    tree_knockdown_radius_m: float
    # earthquake
    earthquake_magnitude: float
    earthquake_radius_m: float
    earthquake_deaths: int
    # tsunami
    tsunami_height_m: float
    tsunami_radius_m: float
    tsunami_deaths: int
    tsunami_affected_coasts: int
    # deflection
    deflection_delta_v_mps: float
    deflection_energy_j: float
    deflection_megatons: float
    deflection_bomb_comparison: str
    deflection_angle_efficiency: float
    deflection_angle_efficiency_pct: float
    # meta
    will_airburst: bool
    is_ocean_impact: bool
    impact_angle_deg: float
    population_density: int
    impact_frequency_years: int
    hurricane_comparison: float

    def as_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> dict:
        """Grouped view of the result, shaped for JSON transport."""
        return {
            "location": {"lat": self.lat, "lng": self.lng},
            "kinetic": {
                "mass_kg": self.mass_kg,
                "velocity_mps": self.velocity_mps,
                "impact_speed_mph": self.impact_speed_mph,
                "energy_j": self.energy_j,
                "tnt_megatons": self.megatons,
                "tnt_gigatons": self.gigatons,
            },
            "crater": {
                "base_diameter_m": self.base_crater_diameter_m,
                "diameter_m": self.crater_diameter_m,
                "depth_m": self.crater_depth_m,
                "angle_scaling_pct": self.crater_angle_scaling_pct,
                "shape": self.crater_shape,
                "blast_radius_m": self.blast_radius_m,
                "vaporized": self.crater_vaporized,
            },
            "fireball": {
                "radius_m": self.fireball_radius_m,
                "deaths": self.fireball_deaths,
                "burns_3rd_degree": self.burns_3rd_degree,
                "burns_2nd_degree": self.burns_2nd_degree,
                "tree_fire_radius_m": self.tree_fire_radius_m,
            },
            "shockwave": {
                "decibels": self.shockwave_decibels,
                "radius_m": self.shockwave_radius_m,
                "deaths": self.shockwave_deaths,
                "lung_damage_radius_m": self.lung_damage_radius_m,
                "eardrum_rupture_radius_m": self.eardrum_rupture_radius_m,
                "building_collapse_radius_m": self.building_collapse_radius_m,
                "home_collapse_radius_m": self.home_collapse_radius_m,
            },
            "wind": {
                "peak_speed_mph": self.wind_speed_mph,
                "radius_m": self.wind_radius_m,
                "deaths": self.wind_deaths,
                "jupiter_wind_radius_m": self.jupiter_wind_radius_m,
                "leveled_radius_m": self.leveled_radius_m,
                "tornado_radius_m": self.tornado_radius_m,
                "tree_knockdown_radius_m": self.tree_knockdown_radius_m,
            },
            "earthquake": {
                "magnitude": self.earthquake_magnitude,
                "felt_radius_m": self.earthquake_radius_m,
                "deaths": self.earthquake_deaths,
            },
            "tsunami": {
                "height_m": self.tsunami_height_m,
                "radius_m": self.tsunami_radius_m,
                "deaths": self.tsunami_deaths,
                "affected_coasts": self.tsunami_affected_coasts,
            },
            "deflection": {
                "delta_v_mps": self.deflection_delta_v_mps,
                "energy_j": self.deflection_energy_j,
                "megatons": self.deflection_megatons,
                "bomb_comparison": self.deflection_bomb_comparison,
                "angle_efficiency": self.deflection_angle_efficiency,
                "angle_efficiency_pct": self.deflection_angle_efficiency_pct,
            },
            "meta": {
                "will_airburst": self.will_airburst,
                "is_ocean_impact": self.is_ocean_impact,
                "impact_angle_deg": self.impact_angle_deg,
                "population_density": self.population_density,
                "impact_frequency_years": self.impact_frequency_years,
                "hurricane_comparison": self.hurricane_comparison,
            },
        }


def _area_km2(radius_m: float) -> float:
    r_km = radius_m / 1000.0
    return pi * r_km * r_km


def _casualties(area_km2: float, density: float, rate: float) -> int:
    """People affected in a zone, rounded half up (never above round(area*density))."""
    return int(area_km2 * density * rate + 0.5)


def bomb_comparison(megatons: float) -> str:
    for yield_mt, label in BOMB_REFERENCES:
        if megatons >= yield_mt:
            return f"{megatons / yield_mt:.1f}x {label}"
    return f"{megatons * 1000.0:.1f} kilotons"


def impact_frequency_years(megatons: float) -> int:
    for floor_mt, years in IMPACT_FREQUENCY_STEPS:
        if megatons > floor_mt:
            return years
    return SMALLEST_IMPACT_FREQUENCY_YEARS


def crater_shape(angle_deg: float) -> str:
    if angle_deg > CIRCULAR_ANGLE_DEG:
        return "Circular"
    if angle_deg > ELLIPTICAL_ANGLE_DEG:
        return "Elliptical"
    return "Highly Elongated"


class ImpactModel:
    """
    Kinetic + crater + airburst + fireball + shock wave + wind + earthquake
    + tsunami + deflection + recurrence.
    Closed-form empirical scaling laws only; assumes validated, positive inputs.
    """

    def __init__(self, params: ImpactParameters, population_density: int):
        self.p = params
        self.density = max(int(population_density), 0)

    # ---------- Energetics ----------
    def kinetic_energy_J(self) -> float:
        return 0.5 * self.p.mass_kg * self.p.speed_mps ** 2

    def energy_mt_tnt(self) -> float:
        return self.kinetic_energy_J() / J_PER_MT_TNT

    def energy_kt_tnt(self) -> float:
        return self.kinetic_energy_J() / J_PER_KT_TNT

    # ---------- Crater ----------
    def angle_scaling(self) -> float:
        return sin(self.p.angle_rad) ** ANGLE_SCALING_EXPONENT

    def base_crater_diameter_m(self) -> float:
        """Vertical-impact crater diameter."""
        return CRATER_COEFFICIENT * self.kinetic_energy_J() ** CRATER_ENERGY_EXPONENT

    def crater_diameter_m(self) -> float:
        s = self.angle_scaling()
        return self.base_crater_diameter_m() * (CRATER_MIN_FRACTION + (1.0 - CRATER_MIN_FRACTION) * s)

    def crater_depth_m(self) -> float:
        return self.crater_diameter_m() * CRATER_DEPTH_RATIO * self.angle_scaling()

    def blast_radius_m(self) -> float:
        return self.crater_diameter_m() * BLAST_TO_CRATER_RATIO

    def will_airburst(self) -> bool:
        return (self.p.diameter_m < AIRBURST_MAX_DIAMETER_M
                and self.p.speed_km_s > AIRBURST_MIN_SPEED_KMS
                and self.p.angle_deg > AIRBURST_MIN_ANGLE_DEG)

    def crater_summary(self) -> dict:
        D = self.crater_diameter_m()
        return {
            "base_crater_diameter_m": self.base_crater_diameter_m(),
            "crater_diameter_m": D,
            "crater_depth_m": self.crater_depth_m(),
            "crater_angle_scaling_pct": round(self.angle_scaling() * 100.0, 1),
            "crater_shape": crater_shape(self.p.angle_deg),
            "blast_radius_m": D * BLAST_TO_CRATER_RATIO,
            "crater_vaporized": _casualties(_area_km2(D / 2.0), self.density, CRATER_FATALITY_RATE),
        }

    # ---------- Thermal ----------
    def fireball_radius_m(self) -> float:
        return self.energy_kt_tnt() ** FIREBALL_EXPONENT * FIREBALL_SCALE_M

    def fireball_summary(self) -> dict:
        Rf = self.fireball_radius_m()
        area = _area_km2(Rf)
        return {
            "fireball_radius_m": Rf,
            "fireball_deaths": _casualties(area, self.density, FIREBALL_FATALITY_RATE),
            "burns_3rd_degree": _casualties(area, self.density, BURNS_3RD_DEGREE_RATE),
            "burns_2nd_degree": _casualties(area, self.density, BURNS_2ND_DEGREE_RATE),
            "tree_fire_radius_m": Rf * TREE_FIRE_TO_FIREBALL_RATIO,
        }

    # ---------- Air blast ----------
    def shockwave_decibels(self) -> float:
        db = SHOCKWAVE_BASE_DB + 20.0 * log10(self.energy_mt_tnt())
        return min(SHOCKWAVE_MAX_DB, max(db, 0.0))

    def shockwave_radius_m(self) -> float:
        return self.energy_kt_tnt() ** SHOCKWAVE_EXPONENT * SHOCKWAVE_SCALE_M

    def shockwave_summary(self) -> dict:
        r = self.shockwave_radius_m()
        out = {
            "shockwave_decibels": self.shockwave_decibels(),
            "shockwave_radius_m": r,
            "shockwave_deaths": _casualties(_area_km2(r), self.density, SHOCKWAVE_FATALITY_RATE),
        }
        out.update({f"{k}_radius_m": r * f for k, f in SHOCKWAVE_RINGS.items()})
        return out

    def wind_speed_mph(self) -> float:
        return self.energy_kt_tnt() ** WIND_SPEED_EXPONENT * WIND_SPEED_SCALE_MPH

    def wind_radius_m(self) -> float:
        return self.energy_kt_tnt() ** WIND_RADIUS_EXPONENT * WIND_RADIUS_SCALE_M

    def wind_summary(self) -> dict:
        r = self.wind_radius_m()
        out = {
            "wind_speed_mph": self.wind_speed_mph(),
            "wind_radius_m": r,
            "wind_deaths": _casualties(_area_km2(r), self.density, WIND_FATALITY_RATE),
        }
        out.update({f"{k}_radius_m": r * f for k, f in WIND_RINGS.items()})
        return out

    # ---------- Seismic ----------
    def earthquake_magnitude(self) -> float:
        return min(EARTHQUAKE_MAX_MAGNITUDE, EARTHQUAKE_BASE_MAGNITUDE + log10(self.energy_mt_tnt()))

    def earthquake_summary(self) -> dict:
        M = self.earthquake_magnitude()
        r = 10.0 ** M * EARTHQUAKE_RADIUS_SCALE_M
        return {
            "earthquake_magnitude": M,
            "earthquake_radius_m": r,
            "earthquake_deaths": _casualties(_area_km2(r), self.density, EARTHQUAKE_FATALITY_RATE),
        }

    # ---------- Tsunami ----------
    def is_ocean_impact(self) -> bool:
        # No land/sea mask: zero population stands in for open water.
        return self.density == 0

    def tsunami_summary(self) -> dict:
        """Zero-filled unless an ocean impact above TSUNAMI_MIN_MEGATONS."""
        E_mt = self.energy_mt_tnt()
        if not self.is_ocean_impact() or E_mt <= TSUNAMI_MIN_MEGATONS:
            return {"tsunami_height_m": 0.0, "tsunami_radius_m": 0.0,
                    "tsunami_deaths": 0, "tsunami_affected_coasts": 0}

        h = TSUNAMI_HEIGHT_COEFFICIENT * (self.kinetic_energy_J() / TSUNAMI_HEIGHT_ENERGY_REF_J) ** TSUNAMI_HEIGHT_EXPONENT
        h = max(TSUNAMI_MIN_HEIGHT_M, min(h, TSUNAMI_MAX_HEIGHT_M))
        r_km = min(TSUNAMI_MAX_RADIUS_KM, TSUNAMI_RADIUS_SCALE_KM * E_mt ** TSUNAMI_RADIUS_EXPONENT)

        # inhabited coastal strip reached by the wave
        coast_km = 2.0 * pi * r_km * TSUNAMI_COASTLINE_FRACTION
        strip_km2 = coast_km * TSUNAMI_INUNDATION_KM
        return {
            "tsunami_height_m": h,
            "tsunami_radius_m": r_km * 1000.0,
            "tsunami_deaths": _casualties(strip_km2, COASTAL_POPULATION_DENSITY, TSUNAMI_FATALITY_RATE),
            "tsunami_affected_coasts": max(1, int(r_km / TSUNAMI_COAST_SEGMENT_KM + 0.5)),
        }

    # ---------- Deflection ----------
    def deflection_angle_efficiency(self) -> float:
        return max(sin(self.p.angle_rad), MIN_DEFLECTION_EFFICIENCY)

    def deflection_delta_v_mps(self) -> float:
        pha_m = PHA_THRESHOLD_AU * AU_M
        detection_m = max(DETECTION_MIN_AU * AU_M, DETECTION_PHA_MULTIPLE * pha_m)
        base_angle = pha_m / detection_m  # rad
        return self.p.speed_mps * base_angle / self.deflection_angle_efficiency()

    def deflection_summary(self) -> dict:
        dv = self.deflection_delta_v_mps()
        E = 0.5 * self.p.mass_kg * dv * dv
        E_mt = E / J_PER_MT_TNT
        eff = self.deflection_angle_efficiency()
        return {
            "deflection_delta_v_mps": dv,
            "deflection_energy_j": E,
            "deflection_megatons": E_mt,
            "deflection_bomb_comparison": bomb_comparison(E_mt),
            "deflection_angle_efficiency": eff,
            "deflection_angle_efficiency_pct": round(eff * 100.0, 1),
        }

    # ---------- Recurrence & comparisons ----------
    def impact_frequency_years(self) -> int:
        return impact_frequency_years(self.energy_mt_tnt())

    def hurricane_comparison(self) -> float:
        return self.kinetic_energy_J() / HURRICANE_J_PER_DAY

    # ---------- Assembly ----------
    def result(self, location: ImpactLocation) -> ImpactResult:
        E = self.kinetic_energy_J()
        E_mt = E / J_PER_MT_TNT
        v = self.p.speed_mps
        return ImpactResult(
            lat=location.lat,
            lng=location.lng,
            mass_kg=self.p.mass_kg,
            velocity_mps=v,
            impact_speed_mph=v * MPS_TO_MPH,
            energy_j=E,
            megatons=E_mt,
            gigatons=E_mt / 1000.0,
            **self.crater_summary(),
            **self.fireball_summary(),
            **self.shockwave_summary(),
            **self.wind_summary(),
            **self.earthquake_summary(),
            **self.tsunami_summary(),
            **self.deflection_summary(),
            will_airburst=self.will_airburst(),
            is_ocean_impact=self.is_ocean_impact(),
            impact_angle_deg=self.p.angle_deg,
            population_density=self.density,
            impact_frequency_years=self.impact_frequency_years(),
            hurricane_comparison=self.hurricane_comparison(),
        )


def compute_impact(params: ImpactParameters, location: ImpactLocation,
                   population_density: int) -> ImpactResult:
    """Pure and deterministic: same inputs, identical result."""
    return ImpactModel(params, population_density).result(location)
