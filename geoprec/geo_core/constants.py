"""
GeoPrec Configuration Constants
Centralized defaults for the precision engine, providers and heuristics
"""

ENGINE_VERSION = "v4.1"

# Provider timeouts (in seconds)
DEFAULT_PROVIDER_TIMEOUT = 8.0

# Clustering
DEFAULT_AGREEMENT_THRESHOLD_KM = 25.0

# IWCR settings
DEFAULT_MAX_ROUNDS = 5
DEFAULT_SMALL_CLUSTER_ROUNDS = 1     # clusters below IWCR_FULL_ROUNDS_MIN_SIZE
IWCR_FULL_ROUNDS_MIN_SIZE = 3
DEFAULT_CONVERGENCE_THRESHOLD_M = 1.0
DEFAULT_REFINE_TOLERANCE = 0.01
IWCR_BASE_SHARPNESS = 2.0
IWCR_SHARPNESS_STEP = 3.0

# Outlier pre-pass (RANSAC-like) applied before IWCR
OUTLIER_MEDIAN_FACTOR = 2.5
OUTLIER_MIN_THRESHOLD_KM = 3.0
OUTLIER_MIN_DISTANCE_KM = 5.0
OUTLIER_WEIGHT_FACTOR = 0.4

# Postal codes shorter than this are ignored
MIN_ZIP_LENGTH = 4

# Uncertainty estimation (meters)
P68_FLOOR_M = 50.0
P95_FLOOR_M = 80.0
FALLBACK_P68_M = 10000.0
FALLBACK_P95_M = 25000.0
FALLBACK_MAX_M = 50000.0
NO_ZIP_PENALTY = 1.5
MOBILE_PENALTY = 1.5

# Source reliability priors
DEFAULT_SOURCE_WEIGHT = 0.5
SOURCE_WEIGHTS = {
    'ip-api.com': 1.0,
    'ipwho.is': 0.95,
    'maxmind': 0.90,
    'ipapi.co': 0.85,
    'ipwhois.app': 0.85,
    'freeipapi.com': 0.75,
    'reallyfreegeoip.org': 0.70,
    'iplocate.io': 0.70,
    'geoplugin.net': 0.65,
}

DEFAULT_USER_AGENT = 'geoprec/4.1 (+ip-geolocation-precision)'

# Logging configuration
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_LEVEL = 'INFO'

# Third-party loggers to suppress
NOISY_LOGGERS = [
    'aiohttp.access',
    'aiohttp.client',
    'asyncio',
    'urllib3.connectionpool',
]

# VPN / datacenter heuristics (matched against ISP, org and ASN text)
VPN_KEYWORDS = [
    'vpn', 'proxy', 'tunnel', 'anonymo', 'mullvad', 'nordvpn', 'expressvpn',
    'surfshark', 'cyberghost', 'protonvpn', 'private internet', 'torguard',
    'hidemy', 'windscribe', 'astrill', 'purevpn', 'ivpn', 'tor exit', 'tor relay',
    'datacenter', 'data center', 'hostinger', 'digitalocean', 'amazon', 'aws',
    'google cloud', 'azure', 'linode', 'vultr', 'ovh', 'hetzner', 'scaleway',
    'contabo', 'choopa', 'cogent', 'm247', 'quadranet', 'psychz', 'leaseweb',
]

VPN_ASNS = frozenset([
    9009, 16276, 20473, 14061, 16509, 15169, 8075, 24940, 63949, 396982,
    13335, 46562, 36352, 54113, 20940,
    30633, 62563, 206264, 212238, 57043, 398101, 44592, 13213,
    197540, 51396, 199524, 132203, 45090, 40676,
    62240, 211680, 399486, 210756, 398493, 212815,
    47583, 399820, 53667, 206216, 63473,
])

# Mobile carrier heuristics (matched against ISP and org text)
MOBILE_ISP_KEYWORDS = [
    'claro', 'vivo', 'tim ', 'oi ', 'nextel', 'algar', 'sercomtel',
    't-mobile', 'vodafone', 'orange', 'telefonica', 'movistar', 'at&t wireless',
    'mobile', 'celular', 'wireless', '4g', '5g', 'lte',
]

# City suffixes dropped before comparing names across providers
CITY_SUFFIXES = (
    'city', 'town', 'village', 'municipality', 'distrito', 'bairro',
    'metro', 'metropolitan area',
)
