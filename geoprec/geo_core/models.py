"""GeoPrec Core Models - Observations, cluster memberships, refinement snapshots and the published estimate"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, Any, Tuple

from .constants import ENGINE_VERSION
from .exceptions import NoProvidersRespondedError


# ===============================================================================
# CORE ENUMERATIONS
# ===============================================================================

class IspType(Enum):
    """Access network classification of the observed IP"""
    FIXED = "fixed"
    MOBILE = "mobile"
    HOSTING = "hosting"
    UNKNOWN = "unknown"


class ConfidenceTier(Enum):
    """Ordered confidence tiers, lowest first"""
    SINGLE_SOURCE = "single-source"   # one source, no consensus, or divergent group
    MEDIA = "media"                   # partial agreement, moderate divergence
    ALTA = "alta"                     # sources agree within city scale
    MUITO_ALTA = "muito-alta"         # triangulated
    EXATA = "exata"                   # tightly triangulated, usually zip-confirmed

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def upgraded(self) -> 'ConfidenceTier':
        """Next tier up (EXATA stays EXATA)"""
        return _TIER_ORDER[min(self.rank + 1, len(_TIER_ORDER) - 1)]

    def capped_at(self, ceiling: 'ConfidenceTier') -> 'ConfidenceTier':
        return self if self.rank <= ceiling.rank else ceiling


_TIER_ORDER = [
    ConfidenceTier.SINGLE_SOURCE,
    ConfidenceTier.MEDIA,
    ConfidenceTier.ALTA,
    ConfidenceTier.MUITO_ALTA,
    ConfidenceTier.EXATA,
]


class AccuracyLabel(Enum):
    """Human-readable accuracy vocabulary"""
    MULTI_TRIANGULADO = "multi-triangulado"
    TRIANGULADO_PRECISO = "triangulado-preciso"
    ZIP_TRIANGULADO = "zip-triangulado"
    TRIANGULADO = "triangulado"
    PRECISO = "preciso"
    MAIORIA_PROXIMA = "maioria-proxima"
    MAIORIA_CONFIRMADA = "maioria-confirmada"
    CIDADE_CONFIRMADA = "cidade-confirmada"
    REGIAO_CONFIRMADA = "regiao-confirmada"
    DIVERGENTE = "divergente"
    SEM_CONSENSO = "sem-consenso"
    FONTE_UNICA = "fonte-unica"
    SEM_DADOS = "sem-dados"


# Label modifiers appended to the base label
ZIP_SUFFIX = "+zip"
MOBILE_CAP_SUFFIX = "|mobile-cap"


# ===============================================================================
# COORDINATES
# ===============================================================================

def parse_coordinate(value: Any) -> Optional[float]:
    """Parse a provider coordinate; None for missing, blank or non-numeric values"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def valid_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    """Finite, in range and not the (0, 0) placeholder some providers return for unknown IPs"""
    if lat is None or lon is None:
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return False
    return not (lat == 0.0 and lon == 0.0)


# ===============================================================================
# OBSERVATION AND CLUSTER STATE
# ===============================================================================

@dataclass(frozen=True)
class SourceObservation:
    """One provider's answer for one IP lookup"""
    source: str
    fetch_succeeded: bool = True
    lat: Optional[float] = None
    lon: Optional[float] = None
    city: str = ""
    region: str = ""
    country: str = ""
    country_code: str = ""
    district: str = ""
    zip: str = ""
    timezone: str = ""
    isp: str = ""
    org: str = ""
    asn: str = ""
    isp_type: IspType = IspType.UNKNOWN
    is_vpn: bool = False
    is_proxy: bool = False
    is_hosting: bool = False
    response_ms: float = 0.0
    error: Optional[str] = None

    @classmethod
    def failure(cls, source: str, error: str, response_ms: float = 0.0) -> 'SourceObservation':
        """Observation recorded for a provider that did not deliver usable data"""
        return cls(source=source, fetch_succeeded=False, error=error, response_ms=response_ms)

    @property
    def usable(self) -> bool:
        return self.fetch_succeeded and valid_coordinates(self.lat, self.lon)

    @property
    def country_key(self) -> str:
        """Comparison key for country agreement: ISO code when known, else folded name"""
        if self.country_code:
            return self.country_code.strip().upper()
        return (self.country or '').strip().casefold()

    @property
    def response_order_key(self) -> Tuple[float, str]:
        """Earliest responder first; source name keeps the order total"""
        return (self.response_ms, self.source)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'source': self.source,
            'fetchSucceeded': self.fetch_succeeded,
            'lat': self.lat,
            'lon': self.lon,
            'city': self.city,
            'region': self.region,
            'country': self.country,
            'countryCode': self.country_code,
            'district': self.district,
            'zip': self.zip,
            'timezone': self.timezone,
            'isp': self.isp,
            'org': self.org,
            'asn': self.asn,
            'ispType': self.isp_type.value,
            'isVpn': self.is_vpn,
            'isProxy': self.is_proxy,
            'isHosting': self.is_hosting,
            'responseMs': self.response_ms,
            'error': self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SourceObservation':
        """Create from a dictionary using either camelCase or snake_case keys"""
        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        isp_type = pick('ispType', 'isp_type', default=IspType.UNKNOWN.value)
        return cls(
            source=str(pick('source', default='unknown')),
            fetch_succeeded=bool(pick('fetchSucceeded', 'fetch_succeeded', default=True)),
            lat=parse_coordinate(pick('lat', 'latitude')),
            lon=parse_coordinate(pick('lon', 'longitude')),
            city=pick('city', default=''),
            region=pick('region', default=''),
            country=pick('country', default=''),
            country_code=pick('countryCode', 'country_code', default=''),
            district=pick('district', default=''),
            zip=str(pick('zip', 'postal', default='')),
            timezone=pick('timezone', default=''),
            isp=pick('isp', default=''),
            org=pick('org', default=''),
            asn=str(pick('asn', default='')),
            isp_type=isp_type if isinstance(isp_type, IspType) else IspType(isp_type),
            is_vpn=bool(pick('isVpn', 'is_vpn', default=False)),
            is_proxy=bool(pick('isProxy', 'is_proxy', default=False)),
            is_hosting=bool(pick('isHosting', 'is_hosting', default=False)),
            response_ms=float(pick('responseMs', 'response_ms', default=0.0)),
            error=pick('error'),
        )


@dataclass(frozen=True)
class ClusterMembership:
    """Derived per-observation state; replaced, never mutated, as the pipeline advances"""
    observation: SourceObservation
    in_cluster: bool = False
    country_filtered: bool = False
    distance_to_centroid_km: float = 0.0
    weight: float = 0.0
    effective_weight: float = 0.0
    refined: bool = False

    @property
    def source(self) -> str:
        return self.observation.source


@dataclass(frozen=True)
class RefinementState:
    """Snapshot of one IWCR round"""
    centroid: Tuple[float, float]
    round: int
    delta_m: float
    memberships: Tuple[ClusterMembership, ...]

    @property
    def lat(self) -> float:
        return self.centroid[0]

    @property
    def lon(self) -> float:
        return self.centroid[1]


# ===============================================================================
# PUBLISHED RESULT
# ===============================================================================

@dataclass
class SourceDetail:
    """Per-source audit row of a GeoEstimate"""
    source: str
    city: str
    lat: float
    lon: float
    distance_to_avg_km: float
    in_cluster: bool
    weight: float
    effective_weight: float
    refined: bool
    vpn: bool
    zip: str
    country_filtered: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'city': self.city,
            'lat': round(self.lat, 4),
            'lon': round(self.lon, 4),
            'distanceToAvgKm': round(self.distance_to_avg_km, 1),
            'inCluster': self.in_cluster,
            'weight': round(self.weight, 2),
            'effectiveWeight': round(self.effective_weight, 2),
            'refined': self.refined,
            'vpn': self.vpn,
            'zip': self.zip,
            'countryFiltered': self.country_filtered,
        }


@dataclass
class GeoEstimate:
    """Best-estimate location of one IP, with its evidence and uncertainty"""
    requested_ip: str
    available: bool = True
    unavailable_reason: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    sources_queried: int = 0
    sources_succeeded: int = 0
    sources_agree: int = 0
    source_list: List[SourceDetail] = field(default_factory=list)
    unavailable_sources: List[str] = field(default_factory=list)
    outlier_sources: List[str] = field(default_factory=list)
    vpn_sources: List[str] = field(default_factory=list)
    confidence_tier: ConfidenceTier = ConfidenceTier.SINGLE_SOURCE
    accuracy_label: str = AccuracyLabel.SEM_DADOS.value
    max_divergence_km: float = 0.0
    avg_divergence_km: float = 0.0
    global_divergence_km: float = 0.0
    zip_confirmed: bool = False
    confirmed_zip: Optional[str] = None
    isp_type: IspType = IspType.UNKNOWN
    estimated_accuracy_m: Optional[float] = None
    p68_radius_m: Optional[float] = None
    p95_radius_m: Optional[float] = None
    max_radius_m: Optional[float] = None
    iwcr_rounds: int = 0
    iwcr_convergence_delta_m: float = 0.0
    refined_count: int = 0
    country_filtered_count: int = 0
    city: str = ""
    region: str = ""
    country: str = ""
    country_code: str = ""
    district: str = ""
    timezone: str = ""
    isp: str = ""
    org: str = ""
    asn: str = ""
    is_vpn: bool = False
    is_proxy: bool = False
    is_hosting: bool = False
    engine_version: str = ENGINE_VERSION

    @property
    def has_coordinates(self) -> bool:
        return self.available and self.lat is not None and self.lon is not None

    def raise_for_unavailable(self) -> 'GeoEstimate':
        """Raise NoProvidersRespondedError for the distinguished unavailable result"""
        if not self.available:
            raise NoProvidersRespondedError(self.requested_ip, self.unavailable_sources)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible record consumed by audit, mapping and alerting"""
        return {
            'requestedIp': self.requested_ip,
            'available': self.available,
            'unavailableReason': self.unavailable_reason,
            'lat': round(self.lat, 7) if self.lat is not None else None,
            'lon': round(self.lon, 7) if self.lon is not None else None,
            'sourcesQueried': self.sources_queried,
            'sourcesSucceeded': self.sources_succeeded,
            'sourcesAgree': self.sources_agree,
            'sourceList': [detail.to_dict() for detail in self.source_list],
            'unavailableSources': list(self.unavailable_sources),
            'outlierSources': list(self.outlier_sources),
            'vpnSources': list(self.vpn_sources),
            'confidenceTier': self.confidence_tier.value,
            'accuracyLabel': self.accuracy_label,
            'maxDivergenceKm': round(self.max_divergence_km, 1),
            'avgDivergenceKm': round(self.avg_divergence_km, 1),
            'globalDivergenceKm': round(self.global_divergence_km, 1),
            'zipConfirmed': self.zip_confirmed,
            'confirmedZip': self.confirmed_zip,
            'ispType': self.isp_type.value,
            'estimatedAccuracyM': self.estimated_accuracy_m,
            'p68RadiusM': self.p68_radius_m,
            'p95RadiusM': self.p95_radius_m,
            'maxRadiusM': self.max_radius_m,
            'iwcrRounds': self.iwcr_rounds,
            'iwcrConvergenceDeltaM': round(self.iwcr_convergence_delta_m, 1),
            'refinedCount': self.refined_count,
            'countryFilteredCount': self.country_filtered_count,
            'city': self.city,
            'region': self.region,
            'country': self.country,
            'countryCode': self.country_code,
            'district': self.district,
            'timezone': self.timezone,
            'isp': self.isp,
            'org': self.org,
            'asn': self.asn,
            'isVpn': self.is_vpn,
            'isProxy': self.is_proxy,
            'isHosting': self.is_hosting,
            'engineVersion': self.engine_version,
        }
