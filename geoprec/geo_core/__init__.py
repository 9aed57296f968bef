from .models import (
    SourceObservation, ClusterMembership, RefinementState, GeoEstimate, SourceDetail,
    ConfidenceTier, AccuracyLabel, IspType
)
from .config import EngineConfig, ProviderSettings, ConfigManager
from .exceptions import (
    GeoPrecError, ConfigurationError, InvalidIPAddressError, ProviderError,
    ProviderUnavailableError, ProviderResponseError, NoProvidersRespondedError
)
from .utils import haversine_km, validate_ip_address, is_public_ip

__all__ = [
    "SourceObservation", "ClusterMembership", "RefinementState", "GeoEstimate", "SourceDetail",
    "ConfidenceTier", "AccuracyLabel", "IspType",
    "EngineConfig", "ProviderSettings", "ConfigManager",
    "GeoPrecError", "ConfigurationError", "InvalidIPAddressError", "ProviderError",
    "ProviderUnavailableError", "ProviderResponseError", "NoProvidersRespondedError",
    "haversine_km", "validate_ip_address", "is_public_ip",
]
