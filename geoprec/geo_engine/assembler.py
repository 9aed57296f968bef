"""Result Assembler - Turn the fused cluster state into a published GeoEstimate"""

import logging
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

from ..geo_core.models import (
    AccuracyLabel, ClusterMembership, ConfidenceTier, GeoEstimate, IspType,
    RefinementState, SourceDetail, SourceObservation
)
from ..geo_core.utils import haversine_km, normalize_city, pairwise_distances_km
from .uncertainty import UncertaintyEstimate
from .zip_validation import ZipValidation

logger = logging.getLogger(__name__)

PRIVATE_ADDRESS_REASON = "private-address"
NO_PROVIDERS_REASON = "no-providers-responded"


# ===============================================================================
# SELECTION HELPERS
# ===============================================================================

def most_trusted(memberships: Sequence[ClusterMembership]) -> Optional[ClusterMembership]:
    """Highest reliability weight, earliest responder on ties; country-filtered last"""
    if not memberships:
        return None
    return min(memberships, key=lambda m: (m.country_filtered, -m.weight, m.observation.response_order_key))


def representative_members(memberships: Sequence[ClusterMembership]) -> List[ClusterMembership]:
    """The consensus cluster, or the most trusted source when there is none"""
    members = [m for m in memberships if m.in_cluster]
    if members:
        return members
    fallback = most_trusted(memberships)
    return [fallback] if fallback else []


def aggregate_isp_type(members: Sequence[ClusterMembership]) -> IspType:
    types = {m.observation.isp_type for m in members}
    for isp_type in (IspType.MOBILE, IspType.HOSTING, IspType.FIXED):
        if isp_type in types:
            return isp_type
    return IspType.UNKNOWN


def consensus_city(members: Sequence[ClusterMembership]) -> str:
    """Reliability-weighted vote over city names, compared after folding"""
    votes = OrderedDict()
    spelling = {}
    for member in sorted(members, key=lambda m: (-m.weight, m.observation.response_order_key)):
        city = member.observation.city.strip()
        key = normalize_city(city)
        if not key:
            continue
        votes[key] = votes.get(key, 0.0) + member.weight
        spelling.setdefault(key, city)
    if not votes:
        return ""
    best = max(votes, key=lambda key: votes[key])
    return spelling[best]


def richest_record(members: Sequence[ClusterMembership]) -> Optional[SourceObservation]:
    """Member observation with the most populated metadata fields"""
    if not members:
        return None

    def richness(member: ClusterMembership):
        obs = member.observation
        filled = sum(1 for value in (obs.district, obs.zip, obs.org, obs.asn, obs.isp, obs.timezone) if value)
        return (-filled, -member.weight, obs.response_order_key)

    return min(members, key=richness).observation


def divergence_stats(members: Sequence[ClusterMembership]) -> Tuple[float, float]:
    """Max and mean pairwise distance in km"""
    distances = pairwise_distances_km([(m.observation.lat, m.observation.lon) for m in members])
    if not distances:
        return 0.0, 0.0
    return max(distances), sum(distances) / len(distances)


# ===============================================================================
# ASSEMBLY
# ===============================================================================

def build_unavailable(ip_address: str, observations: Sequence[SourceObservation],
                      reason: str = NO_PROVIDERS_REASON,
                      sources_queried: Optional[int] = None) -> GeoEstimate:
    """The distinguished "no geolocation available" record"""
    return GeoEstimate(
        requested_ip=ip_address,
        available=False,
        unavailable_reason=reason,
        sources_queried=len(observations) if sources_queried is None else sources_queried,
        sources_succeeded=0,
        sources_agree=0,
        unavailable_sources=[o.source for o in observations if not o.usable],
        confidence_tier=ConfidenceTier.SINGLE_SOURCE,
        accuracy_label=AccuracyLabel.SEM_DADOS.value,
    )


def assemble_estimate(ip_address: str,
                      observations: Sequence[SourceObservation],
                      memberships: Sequence[ClusterMembership],
                      centroid: Tuple[float, float],
                      history: Sequence[RefinementState],
                      zip_validation: ZipValidation,
                      uncertainty: UncertaintyEstimate,
                      confidence_tier: ConfidenceTier,
                      accuracy_label: str,
                      isp_type: IspType,
                      sources_queried: Optional[int] = None) -> GeoEstimate:
    """Assemble the published record; pure, no I/O"""
    usable = sorted(memberships, key=lambda m: m.observation.response_order_key)
    in_cluster = [m for m in usable if m.in_cluster]
    representatives = representative_members(usable)
    representative_sources = {m.source for m in representatives}

    source_list = [
        SourceDetail(
            source=m.source,
            city=m.observation.city or "?",
            lat=m.observation.lat,
            lon=m.observation.lon,
            distance_to_avg_km=haversine_km(m.observation.lat, m.observation.lon, centroid[0], centroid[1]),
            in_cluster=m.in_cluster,
            weight=m.weight,
            effective_weight=m.effective_weight,
            refined=m.refined,
            vpn=m.observation.is_vpn,
            zip=m.observation.zip,
            country_filtered=m.country_filtered,
        )
        for m in usable
    ]

    max_div, avg_div = divergence_stats(in_cluster)
    global_div, _ = divergence_stats(usable)
    richest = richest_record(representatives)
    city = consensus_city(representatives) or (richest.city if richest else "")

    estimate = GeoEstimate(
        requested_ip=ip_address,
        lat=centroid[0],
        lon=centroid[1],
        sources_queried=len(observations) if sources_queried is None else sources_queried,
        sources_succeeded=len(usable),
        sources_agree=len(in_cluster),
        source_list=source_list,
        unavailable_sources=[o.source for o in observations if not o.usable],
        outlier_sources=[m.source for m in usable if m.source not in representative_sources],
        vpn_sources=[m.source for m in usable if m.observation.is_vpn],
        confidence_tier=confidence_tier,
        accuracy_label=accuracy_label,
        max_divergence_km=max_div,
        avg_divergence_km=avg_div,
        global_divergence_km=global_div,
        zip_confirmed=zip_validation.confirmed,
        confirmed_zip=zip_validation.zip_code,
        isp_type=isp_type,
        estimated_accuracy_m=uncertainty.estimated_accuracy_m,
        p68_radius_m=uncertainty.p68_m,
        p95_radius_m=uncertainty.p95_m,
        max_radius_m=uncertainty.max_m,
        iwcr_rounds=len(history),
        iwcr_convergence_delta_m=history[-1].delta_m if history else 0.0,
        refined_count=sum(1 for m in usable if m.refined),
        country_filtered_count=sum(1 for m in usable if m.country_filtered),
        city=city,
        is_vpn=any(m.observation.is_vpn for m in usable),
        is_proxy=any(m.observation.is_proxy for m in usable),
        is_hosting=any(m.observation.is_hosting for m in usable),
    )

    if richest is not None:
        estimate.region = richest.region
        estimate.country = richest.country
        estimate.country_code = richest.country_code
        estimate.district = richest.district
        estimate.timezone = richest.timezone
        estimate.isp = richest.isp
        estimate.org = richest.org
        estimate.asn = richest.asn

    return estimate
