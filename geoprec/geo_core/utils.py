"""GeoPrec Core Utilities - Geodesy, address checks and provider heuristics"""

import ipaddress
import logging
import math
import re
import unicodedata
from typing import Optional, List, Sequence, Tuple

from .constants import (
    VPN_KEYWORDS, VPN_ASNS, MOBILE_ISP_KEYWORDS, CITY_SUFFIXES, MIN_ZIP_LENGTH
)
from .models import IspType

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


# ===============================================================================
# GEODESY
# ===============================================================================

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def pairwise_distances_km(points: Sequence[Tuple[float, float]]) -> List[float]:
    """All unordered pairwise distances of a point list"""
    distances = []
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            distances.append(haversine_km(points[i][0], points[i][1], points[j][0], points[j][1]))
    return distances


def weighted_percentile(values: Sequence[float], weights: Sequence[float], fraction: float) -> float:
    """Smallest value whose cumulative weight share reaches `fraction`

    Values are sorted ascending with their weights. When weights are all zero
    the unweighted rank is used instead.
    """
    if not values:
        return 0.0
    pairs = sorted(zip(values, weights), key=lambda pair: pair[0])
    total = sum(max(w, 0.0) for _, w in pairs)
    if total <= 0:
        index = min(len(pairs) - 1, int(math.ceil(len(pairs) * fraction)) - 1)
        return pairs[max(index, 0)][0]

    cumulative = 0.0
    for value, weight in pairs:
        cumulative += max(weight, 0.0)
        if cumulative / total >= fraction - 1e-12:
            return value
    return pairs[-1][0]


# ===============================================================================
# ADDRESS VALIDATION
# ===============================================================================

def validate_ip_address(ip_str: str) -> bool:
    """Validate IPv4/IPv6 address"""
    try:
        ipaddress.ip_address(str(ip_str).strip())
        return True
    except ValueError:
        return False


def is_public_ip(ip_str: str) -> bool:
    """True for globally routable addresses worth geolocating"""
    try:
        ip = ipaddress.ip_address(str(ip_str).strip())
    except ValueError:
        return False
    return not (ip.is_private or ip.is_loopback or ip.is_link_local
                or ip.is_multicast or ip.is_reserved or ip.is_unspecified)


# ===============================================================================
# TEXT NORMALIZATION
# ===============================================================================

def normalize_city(city: Optional[str]) -> str:
    """Fold a city name so spellings from different providers compare equal"""
    if not city:
        return ""
    text = unicodedata.normalize('NFD', city.strip().lower())
    text = ''.join(ch for ch in text if unicodedata.category(ch) != 'Mn')
    text = re.sub(r'[-_]', ' ', text)
    text = re.sub(r'\s+', ' ', text)
    text = re.sub(r'^saint ', 'st ', text)
    text = re.sub(r'\s*[\(\[].*?[\)\]]', '', text)
    text = re.sub(r'\s+-\s*[a-z]{2}$', '', text)
    for suffix in CITY_SUFFIXES:
        if text.endswith(' ' + suffix):
            text = text[:-len(suffix) - 1]
            break
    return text.strip()


def cities_match(city_a: Optional[str], city_b: Optional[str]) -> bool:
    a, b = normalize_city(city_a), normalize_city(city_b)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def normalize_zip(zip_code: Optional[str]) -> str:
    """Canonical postal code, or "" when too short to corroborate anything"""
    if not zip_code:
        return ""
    text = re.sub(r'[\s\-]', '', str(zip_code)).upper()
    return text if len(text) >= MIN_ZIP_LENGTH else ""


# ===============================================================================
# NETWORK HEURISTICS
# ===============================================================================

def extract_asn_number(asn: Optional[str]) -> Optional[int]:
    """Extract ASN number from strings like "AS15169 Google LLC" or "15169" """
    if not asn:
        return None
    match = re.search(r'\d+', str(asn))
    return int(match.group(0)) if match else None


def detect_vpn_heuristic(isp: Optional[str], org: Optional[str], asn: Optional[str]) -> bool:
    """Keyword and ASN based VPN/datacenter detection"""
    combined = f"{(isp or '').lower()} {(org or '').lower()} {(asn or '').lower()}"
    if any(keyword in combined for keyword in VPN_KEYWORDS):
        return True
    asn_number = extract_asn_number(asn)
    return bool(asn_number and asn_number in VPN_ASNS)


def detect_mobile_isp(isp: Optional[str], org: Optional[str] = None) -> bool:
    """Check for mobile carrier indicators"""
    # trailing space lets 'tim '/'oi ' match at the end of a name
    combined = f"{(isp or '').lower()} {(org or '').lower()} "
    return any(keyword in combined for keyword in MOBILE_ISP_KEYWORDS)


def classify_isp_type(isp: Optional[str], org: Optional[str],
                      is_mobile: bool = False, is_hosting: bool = False) -> IspType:
    """Derive the access network type from provider flags, falling back to keywords"""
    if is_mobile:
        return IspType.MOBILE
    if is_hosting:
        return IspType.HOSTING
    if detect_mobile_isp(isp, org):
        return IspType.MOBILE
    if isp or org:
        return IspType.FIXED
    return IspType.UNKNOWN
