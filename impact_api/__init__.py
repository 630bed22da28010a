from .impact_model import ImpactParameters, ImpactLocation, ImpactResult, ImpactModel, compute_impact
from .params import InvalidParameterError, normalize_parameters, normalize_location
from .population import PopulationResolver, ImpactSession, resolve_population_density

__all__ = [
    "ImpactParameters", "ImpactLocation", "ImpactResult", "ImpactModel", "compute_impact",
    "InvalidParameterError", "normalize_parameters", "normalize_location",
    "PopulationResolver", "ImpactSession", "resolve_population_density",
]
