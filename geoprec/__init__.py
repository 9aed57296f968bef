__version__ = "4.1.0"

from .geo_core.models import GeoEstimate, SourceObservation, ConfidenceTier, AccuracyLabel, IspType
from .geo_core.config import EngineConfig, ConfigManager
from .geo_core.exceptions import GeoPrecError, InvalidIPAddressError, NoProvidersRespondedError
from .geo_engine.precision_engine import PrecisionEngine, create_precision_engine

__all__ = [
    "GeoEstimate", "SourceObservation", "ConfidenceTier", "AccuracyLabel", "IspType",
    "EngineConfig", "ConfigManager",
    "GeoPrecError", "InvalidIPAddressError", "NoProvidersRespondedError",
    "PrecisionEngine", "create_precision_engine",
]
