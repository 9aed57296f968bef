"""
Geolocation Providers - One normalizer per external IP-geolocation service

Each provider knows its endpoint and how to turn that service's JSON into a
SourceObservation. Providers raise ProviderError subclasses on failure; the
SourceAdapter turns those into failed observations.

Supported providers:
- ip-api.com, ipwho.is, ipapi.co, ipwhois.app, freeipapi.com,
  reallyfreegeoip.org, geoplugin.net, iplocate.io (HTTP, free tier)
- maxmind (local GeoLite2/GeoIP2 City database, requires the geoip2 extra)
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

import aiohttp

from ..geo_core.config import EngineConfig, ProviderSettings
from ..geo_core.exceptions import (
    ConfigurationError, ProviderResponseError, ProviderUnavailableError
)
from ..geo_core.models import SourceObservation, parse_coordinate, valid_coordinates
from ..geo_core.utils import classify_isp_type, detect_vpn_heuristic

logger = logging.getLogger(__name__)


class GeoProvider(ABC):
    """Common interface of all geolocation providers"""

    name: str = ""
    url_template: str = ""
    key_param: Optional[str] = None     # query parameter carrying the API key, if supported

    def __init__(self, settings: Optional[ProviderSettings] = None,
                 timeout: float = 8.0, weight: Optional[float] = None):
        self.settings = settings or ProviderSettings(name=self.name)
        self.timeout = timeout
        self.weight = weight
        self.url_template = self.settings.url or self.url_template

    def build_url(self, ip_address: str) -> str:
        return self.url_template.format(ip=ip_address)

    def query_params(self) -> Dict[str, str]:
        if self.key_param and self.settings.api_key:
            return {self.key_param: self.settings.api_key}
        return {}

    async def fetch(self, session: aiohttp.ClientSession, ip_address: str) -> Dict[str, Any]:
        """GET the provider endpoint and decode its JSON body"""
        url = self.build_url(ip_address)
        try:
            async with session.get(url, params=self.query_params() or None) as response:
                if response.status != 200:
                    raise ProviderUnavailableError(
                        f"HTTP {response.status}", self.name, status_code=response.status
                    )
                # some providers label JSON as text/html
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ProviderUnavailableError(f"Request failed: {e}", self.name) from e
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderResponseError(f"Invalid JSON: {e}", self.name) from e

        if not isinstance(data, dict):
            raise ProviderResponseError("Response is not a JSON object", self.name)
        return data

    @abstractmethod
    def parse(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Map provider JSON onto SourceObservation field names.

        Must raise ProviderResponseError when the provider reports a failure.
        Recognised extra key: ``is_mobile``.
        """

    def normalize(self, data: Dict[str, Any], response_ms: float = 0.0) -> SourceObservation:
        """Build a validated observation from provider JSON"""
        fields = self.parse(data)
        lat = parse_coordinate(fields.pop('lat', None))
        lon = parse_coordinate(fields.pop('lon', None))
        if not valid_coordinates(lat, lon):
            raise ProviderResponseError(f"Missing or impossible coordinates ({lat}, {lon})", self.name)

        text = {key: _text(fields.get(key)) for key in (
            'city', 'region', 'country', 'country_code', 'district', 'zip',
            'timezone', 'isp', 'org', 'asn',
        )}
        is_proxy = bool(fields.get('is_proxy'))
        is_hosting = bool(fields.get('is_hosting'))
        is_vpn = (bool(fields.get('is_vpn')) or is_proxy or is_hosting
                  or detect_vpn_heuristic(text['isp'], text['org'], text['asn']))

        return SourceObservation(
            source=self.name,
            lat=lat,
            lon=lon,
            isp_type=classify_isp_type(text['isp'], text['org'],
                                       is_mobile=bool(fields.get('is_mobile')),
                                       is_hosting=is_hosting),
            is_vpn=is_vpn,
            is_proxy=is_proxy,
            is_hosting=is_hosting,
            response_ms=response_ms,
            **text,
        )

    async def observe(self, session: aiohttp.ClientSession, ip_address: str) -> SourceObservation:
        """Fetch and normalize; raises ProviderError on failure"""
        start_time = time.monotonic()
        data = await self.fetch(session, ip_address)
        response_ms = (time.monotonic() - start_time) * 1000
        return self.normalize(data, response_ms)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', timeout={self.timeout}, weight={self.weight})"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# ===============================================================================
# HTTP PROVIDERS
# ===============================================================================

class IpApiProvider(GeoProvider):
    name = "ip-api.com"
    url_template = ("http://ip-api.com/json/{ip}?fields=status,message,country,countryCode,"
                    "regionName,city,district,zip,lat,lon,timezone,isp,org,as,mobile,proxy,hosting,query")

    def parse(self, data):
        if data.get('status') != 'success':
            raise ProviderResponseError(data.get('message') or "status != success", self.name)
        return {
            'lat': data.get('lat'), 'lon': data.get('lon'),
            'country': data.get('country'), 'country_code': data.get('countryCode'),
            'region': data.get('regionName'), 'city': data.get('city'),
            'district': data.get('district'), 'zip': data.get('zip'),
            'timezone': data.get('timezone'),
            'isp': data.get('isp'), 'org': data.get('org'), 'asn': data.get('as'),
            'is_proxy': data.get('proxy'), 'is_hosting': data.get('hosting'),
            'is_mobile': data.get('mobile'),
        }


class IpWhoIsProvider(GeoProvider):
    name = "ipwho.is"
    url_template = "https://ipwho.is/{ip}"

    def parse(self, data):
        if not data.get('success'):
            raise ProviderResponseError(data.get('message') or "success = false", self.name)
        connection = data.get('connection') or {}
        security = data.get('security') or {}
        timezone = data.get('timezone') or {}
        asn = connection.get('asn')
        return {
            'lat': data.get('latitude'), 'lon': data.get('longitude'),
            'country': data.get('country'), 'country_code': data.get('country_code'),
            'region': data.get('region'), 'city': data.get('city'),
            'zip': data.get('postal'),
            'timezone': timezone.get('id') if isinstance(timezone, dict) else timezone,
            'isp': connection.get('isp'), 'org': connection.get('org'),
            'asn': f"AS{asn}" if asn else "",
            'is_proxy': security.get('proxy'), 'is_hosting': security.get('hosting'),
            'is_vpn': security.get('vpn') or security.get('tor'),
        }


class IpapiCoProvider(GeoProvider):
    name = "ipapi.co"
    url_template = "https://ipapi.co/{ip}/json/"
    key_param = "key"

    def parse(self, data):
        if data.get('error'):
            raise ProviderResponseError(data.get('reason') or "error = true", self.name)
        return {
            'lat': data.get('latitude'), 'lon': data.get('longitude'),
            'country': data.get('country_name'), 'country_code': data.get('country_code'),
            'region': data.get('region'), 'city': data.get('city'),
            'zip': data.get('postal'), 'timezone': data.get('timezone'),
            'isp': data.get('org'), 'org': data.get('org'), 'asn': data.get('asn'),
        }


class IpWhoisAppProvider(GeoProvider):
    name = "ipwhois.app"
    url_template = ("https://ipwhois.app/json/{ip}?objects=success,message,country,country_code,"
                    "region,city,latitude,longitude,postal,timezone,isp,org,asn,security")

    def parse(self, data):
        if data.get('success') is False:
            raise ProviderResponseError(data.get('message') or "success = false", self.name)
        security = data.get('security') or {}
        return {
            'lat': data.get('latitude'), 'lon': data.get('longitude'),
            'country': data.get('country'), 'country_code': data.get('country_code'),
            'region': data.get('region'), 'city': data.get('city'),
            'zip': data.get('postal'), 'timezone': data.get('timezone'),
            'isp': data.get('isp'), 'org': data.get('org'), 'asn': data.get('asn'),
            'is_proxy': security.get('proxy'), 'is_hosting': security.get('hosting'),
            'is_vpn': security.get('vpn') or security.get('tor'),
        }


class FreeIpApiProvider(GeoProvider):
    name = "freeipapi.com"
    url_template = "https://freeipapi.com/api/json/{ip}"

    def parse(self, data):
        return {
            'lat': data.get('latitude'), 'lon': data.get('longitude'),
            'country': data.get('countryName'), 'country_code': data.get('countryCode'),
            'region': data.get('regionName'), 'city': data.get('cityName'),
            'zip': data.get('zipCode'), 'timezone': data.get('timeZone'),
            'is_proxy': data.get('isProxy'),
        }


class ReallyFreeGeoIpProvider(GeoProvider):
    name = "reallyfreegeoip.org"
    url_template = "https://reallyfreegeoip.org/json/{ip}"

    def parse(self, data):
        return {
            'lat': data.get('latitude'), 'lon': data.get('longitude'),
            'country': data.get('country_name'), 'country_code': data.get('country_code'),
            'region': data.get('region_name'), 'city': data.get('city'),
            'zip': data.get('zip_code'), 'timezone': data.get('time_zone'),
        }


class GeoPluginProvider(GeoProvider):
    name = "geoplugin.net"
    url_template = "http://www.geoplugin.net/json.gp?ip={ip}"

    def parse(self, data):
        status = data.get('geoplugin_status')
        if status not in (200, 206, '200', '206'):
            raise ProviderResponseError(f"geoplugin_status = {status}", self.name)
        return {
            'lat': data.get('geoplugin_latitude'), 'lon': data.get('geoplugin_longitude'),
            'country': data.get('geoplugin_countryName'),
            'country_code': data.get('geoplugin_countryCode'),
            'region': data.get('geoplugin_region'), 'city': data.get('geoplugin_city'),
            'timezone': data.get('geoplugin_timezone'),
        }


class IpLocateProvider(GeoProvider):
    name = "iplocate.io"
    url_template = "https://www.iplocate.io/api/lookup/{ip}"
    key_param = "apikey"

    def parse(self, data):
        if data.get('error'):
            raise ProviderResponseError(str(data.get('error')), self.name)
        asn = data.get('asn')
        org = data.get('org')
        # v2 responses nest ASN details in an object
        if isinstance(asn, dict):
            org = org or asn.get('name')
            asn = asn.get('asn')
        privacy = data.get('privacy') or {}
        asn_text = str(asn) if asn else ""
        if asn_text and not asn_text.upper().startswith('AS'):
            asn_text = f"AS{asn_text}"
        return {
            'lat': data.get('latitude'), 'lon': data.get('longitude'),
            'country': data.get('country'), 'country_code': data.get('country_code'),
            'region': data.get('subdivision'), 'city': data.get('city'),
            'zip': data.get('postal_code'), 'timezone': data.get('time_zone'),
            'isp': org, 'org': org, 'asn': asn_text,
            'is_proxy': privacy.get('is_proxy'), 'is_hosting': privacy.get('is_hosting'),
            'is_vpn': privacy.get('is_vpn') or privacy.get('is_tor'),
        }


# ===============================================================================
# LOCAL DATABASE PROVIDER
# ===============================================================================

class MaxMindProvider(GeoProvider):
    """Local GeoLite2/GeoIP2 City database lookup, executed off the event loop"""

    name = "maxmind"

    def __init__(self, settings: Optional[ProviderSettings] = None,
                 timeout: float = 8.0, weight: Optional[float] = None):
        super().__init__(settings, timeout, weight)
        if not self.settings.db_path:
            raise ConfigurationError("Provider 'maxmind' requires db_path")
        try:
            import geoip2.database
            import geoip2.errors
        except ImportError as e:
            raise ConfigurationError(
                "Provider 'maxmind' requires the geoip2 package: pip install geoprec[maxmind]"
            ) from e
        self._not_found_error = geoip2.errors.AddressNotFoundError
        self.reader = geoip2.database.Reader(self.settings.db_path)
        logger.info(f"GeoIP2 database loaded from: {self.settings.db_path}")

    def _lookup(self, ip_address: str) -> Dict[str, Any]:
        try:
            response = self.reader.city(ip_address)
        except self._not_found_error as e:
            raise ProviderResponseError(f"{ip_address} not in database", self.name) from e
        except ValueError as e:
            raise ProviderResponseError(str(e), self.name) from e

        traits = response.traits
        return {
            'lat': response.location.latitude, 'lon': response.location.longitude,
            'country': response.country.name, 'country_code': response.country.iso_code,
            'region': response.subdivisions.most_specific.name, 'city': response.city.name,
            'zip': response.postal.code, 'timezone': response.location.time_zone,
            'is_hosting': getattr(traits, 'is_hosting_provider', False),
            'is_proxy': getattr(traits, 'is_anonymous_proxy', False),
            'is_vpn': getattr(traits, 'is_anonymous_vpn', False),
        }

    def parse(self, data):
        return data

    async def observe(self, session, ip_address: str) -> SourceObservation:
        start_time = time.monotonic()
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._lookup, ip_address)
        return self.normalize(data, (time.monotonic() - start_time) * 1000)

    def close(self):
        self.reader.close()


# ===============================================================================
# REGISTRY
# ===============================================================================

PROVIDER_REGISTRY: Dict[str, Type[GeoProvider]] = {
    cls.name: cls for cls in (
        IpApiProvider,
        IpWhoIsProvider,
        IpapiCoProvider,
        IpWhoisAppProvider,
        FreeIpApiProvider,
        ReallyFreeGeoIpProvider,
        GeoPluginProvider,
        IpLocateProvider,
        MaxMindProvider,
    )
}


def create_provider(settings: ProviderSettings, config: Optional[EngineConfig] = None) -> GeoProvider:
    """Instantiate a registered provider from its settings"""
    config = config or EngineConfig()
    provider_cls = PROVIDER_REGISTRY.get(settings.name)
    if provider_cls is None:
        raise ConfigurationError(
            f"Unknown provider '{settings.name}'. Available: {', '.join(sorted(PROVIDER_REGISTRY))}"
        )
    return provider_cls(settings, timeout=config.timeout_for(settings),
                        weight=config.weight_for(settings.name))


def create_providers(config: EngineConfig) -> List[GeoProvider]:
    """Instantiate every enabled provider in configuration order"""
    return [create_provider(settings, config) for settings in config.enabled_providers]
