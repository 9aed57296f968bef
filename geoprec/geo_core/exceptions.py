"""
GeoPrec Custom Exceptions
Standardized exception hierarchy for the precision engine
"""

from typing import Optional


class GeoPrecError(Exception):
    """Base exception for all GeoPrec errors"""
    pass


class ConfigurationError(GeoPrecError):
    """Configuration-related errors"""
    pass


class InvalidIPAddressError(GeoPrecError, ValueError):
    """The requested address is not a valid IPv4/IPv6 address"""

    def __init__(self, ip_address: str):
        super().__init__(f"Invalid IP address: {ip_address!r}")
        self.ip_address = ip_address


class ProviderError(GeoPrecError):
    """Base class for errors raised while querying a single provider"""

    def __init__(self, message: str, source_name: str):
        super().__init__(message)
        self.source_name = source_name


class ProviderUnavailableError(ProviderError):
    """Provider timed out, refused the connection or answered with an HTTP error"""

    def __init__(self, message: str, source_name: str, status_code: Optional[int] = None):
        super().__init__(message, source_name)
        self.status_code = status_code


class ProviderResponseError(ProviderError):
    """Provider answered, but the payload is malformed or has impossible coordinates"""
    pass


class NoProvidersRespondedError(GeoPrecError):
    """Every configured provider failed for a lookup"""

    def __init__(self, ip_address: str, attempted_sources=None):
        attempted = list(attempted_sources or [])
        super().__init__(
            f"No geolocation available for {ip_address}: "
            f"{len(attempted)} provider(s) queried, none responded"
        )
        self.ip_address = ip_address
        self.attempted_sources = attempted
