"""
Precision Engine - Facade wiring source collection and fusion

    observations = SourceAdapter.collect(ip)
    country filter -> consensus clustering -> IWCR -> zip validation
    -> classifier -> uncertainty -> GeoEstimate

`estimate()` is the pure fusion step and needs no network; `locate()` adds the
live provider fan-out in front of it.
"""

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

import aiohttp

from ..geo_core.config import EngineConfig
from ..geo_core.exceptions import InvalidIPAddressError
from ..geo_core.models import ClusterMembership, GeoEstimate, SourceObservation
from ..geo_core.utils import haversine_km, is_public_ip, validate_ip_address
from .assembler import (
    PRIVATE_ADDRESS_REASON, aggregate_isp_type, assemble_estimate, build_unavailable,
    divergence_stats, representative_members
)
from .classifier import ClassificationEvidence, classify_accuracy, classify_confidence
from .clustering import find_consensus
from .country_filter import filter_by_country
from .providers import GeoProvider
from .refinement import refine
from .source_adapter import SourceAdapter
from .uncertainty import estimate_uncertainty
from .zip_validation import validate_zip

logger = logging.getLogger(__name__)


class PrecisionEngine:
    """Multi-source IP geolocation with consensus and calibrated uncertainty"""

    def __init__(self, config: Optional[EngineConfig] = None,
                 providers: Optional[Sequence[GeoProvider]] = None):
        self.config = config or EngineConfig()
        self.adapter = SourceAdapter(self.config, providers)

    @property
    def providers(self) -> List[GeoProvider]:
        return self.adapter.providers

    def weight_for(self, source: str) -> float:
        """Reliability prior of a source: the provider's own weight, else the configured one"""
        for provider in self.providers:
            if provider.name == source and provider.weight is not None:
                return provider.weight
        return self.config.weight_for(source)

    # ===========================================================================
    # LIVE LOOKUPS
    # ===========================================================================

    async def locate(self, ip_address: str,
                     session: Optional[aiohttp.ClientSession] = None) -> GeoEstimate:
        """Query all providers for `ip_address` and fuse their answers"""
        ip_address = str(ip_address).strip()
        if not validate_ip_address(ip_address):
            raise InvalidIPAddressError(ip_address)

        if not is_public_ip(ip_address):
            logger.info(f"{ip_address}: private or reserved address, skipping providers")
            return build_unavailable(ip_address, [], PRIVATE_ADDRESS_REASON, sources_queried=0)

        observations = await self.adapter.collect(ip_address, session)
        return self.estimate(ip_address, observations)

    async def locate_many(self, ip_addresses: Sequence[str],
                          session: Optional[aiohttp.ClientSession] = None) -> List[GeoEstimate]:
        """Concurrent lookups over one shared HTTP session, results in input order.

        Every address is validated before any provider is queried; one
        malformed entry raises InvalidIPAddressError before any network call.
        """
        ip_addresses = [str(ip).strip() for ip in ip_addresses]
        for ip_address in ip_addresses:
            if not validate_ip_address(ip_address):
                raise InvalidIPAddressError(ip_address)

        if session is not None:
            return list(await asyncio.gather(*(self.locate(ip, session) for ip in ip_addresses)))

        async with aiohttp.ClientSession(headers={'User-Agent': self.config.user_agent}) as own_session:
            return list(await asyncio.gather(*(self.locate(ip, own_session) for ip in ip_addresses)))

    def locate_sync(self, ip_address: str) -> GeoEstimate:
        """Blocking wrapper around locate() for callers without an event loop"""
        return asyncio.run(self.locate(ip_address))

    # ===========================================================================
    # FUSION
    # ===========================================================================

    def estimate(self, ip_address: str, observations: Sequence[SourceObservation],
                 sources_queried: Optional[int] = None) -> GeoEstimate:
        """Fuse already collected observations into a GeoEstimate; no I/O"""
        usable = [o for o in observations if o.usable]
        for rejected in (o for o in observations if o.fetch_succeeded and not o.usable):
            logger.debug(f"{ip_address}: {rejected.source} reported invalid coordinates "
                         f"({rejected.lat}, {rejected.lon}), treated as failed")
        if not usable:
            logger.info(f"{ip_address}: no geolocation available, "
                        f"{len(observations)} provider(s) queried, none responded")
            return build_unavailable(ip_address, observations, sources_queried=sources_queried)

        memberships = [
            ClusterMembership(observation=o, weight=self.weight_for(o.source),
                              effective_weight=self.weight_for(o.source))
            for o in usable
        ]
        memberships = filter_by_country(memberships)
        memberships = find_consensus(memberships, self.config)

        history = refine(memberships, self.config)
        if history:
            memberships = list(history[-1].memberships)
            centroid = history[-1].centroid
        else:
            anchor = representative_members(memberships)[0].observation
            centroid = (anchor.lat, anchor.lon)

        memberships = [
            replace(m, distance_to_centroid_km=haversine_km(
                m.observation.lat, m.observation.lon, centroid[0], centroid[1]))
            for m in memberships
        ]

        in_cluster = [m for m in memberships if m.in_cluster]
        zip_validation = validate_zip(memberships)
        isp_type = aggregate_isp_type(representative_members(memberships))
        max_divergence, _ = divergence_stats(in_cluster)

        evidence = ClassificationEvidence(
            source_count=len(usable),
            agree_count=len(in_cluster),
            max_divergence_km=max_divergence,
            zip_confirmed=zip_validation.confirmed,
            isp_type=isp_type,
            consensus=bool(in_cluster),
        )
        tier = classify_confidence(evidence, self.config)
        label = classify_accuracy(evidence, self.config)
        uncertainty = estimate_uncertainty(memberships, zip_validation.confirmed, isp_type, self.config)

        result = assemble_estimate(
            ip_address, observations, memberships, centroid, history, zip_validation,
            uncertainty, tier, label, isp_type, sources_queried=sources_queried,
        )

        logger.info(f"{ip_address}: {result.city or '?'}, {result.country or '?'} "
                    f"[{tier.value}/{label}] {result.sources_agree}/{result.sources_queried} agree, "
                    f"p68 {result.p68_radius_m:.0f}m")
        return result

    def close(self):
        """Release provider resources such as local databases"""
        for provider in self.providers:
            close = getattr(provider, 'close', None)
            if callable(close):
                close()


def create_precision_engine(config: Optional[EngineConfig] = None) -> PrecisionEngine:
    """Create a PrecisionEngine for the enabled providers of a configuration"""
    return PrecisionEngine(config)
