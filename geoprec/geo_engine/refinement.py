"""
IWCR - Iterative Weighted Centroid Refinement

Starting from provider reliability priors, each round computes the weighted
centroid of the consensus cluster and re-weights every member by its distance
to that centroid, with a sharpness that grows each round. Members far from
the consensus core lose influence; the centroid converges on the dense core.
"""

import logging
import statistics
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from ..geo_core import constants as C
from ..geo_core.config import EngineConfig
from ..geo_core.models import ClusterMembership, RefinementState
from ..geo_core.utils import haversine_km

logger = logging.getLogger(__name__)


def weighted_centroid(members: Sequence[ClusterMembership], weights: Sequence[float]) -> Tuple[float, float]:
    """Weighted mean position; plain mean when all weights vanish"""
    total = sum(weights)
    if total <= 0:
        weights = [1.0] * len(members)
        total = float(len(members))
    lat = sum(m.observation.lat * w for m, w in zip(members, weights)) / total
    lon = sum(m.observation.lon * w for m, w in zip(members, weights)) / total
    return lat, lon


def _distance_km(member: ClusterMembership, centroid: Tuple[float, float]) -> float:
    return haversine_km(member.observation.lat, member.observation.lon, centroid[0], centroid[1])


def outlier_priors(members: Sequence[ClusterMembership]) -> List[float]:
    """RANSAC-like pre-pass: demote members far beyond the median spread"""
    priors = [m.weight for m in members]
    if len(members) < C.IWCR_FULL_ROUNDS_MIN_SIZE:
        return priors

    mean = weighted_centroid(members, [1.0] * len(members))
    distances = [_distance_km(m, mean) for m in members]
    threshold = max(statistics.median(distances) * C.OUTLIER_MEDIAN_FACTOR, C.OUTLIER_MIN_THRESHOLD_KM)

    for i, distance in enumerate(distances):
        if distance > threshold and distance > C.OUTLIER_MIN_DISTANCE_KM:
            logger.debug(f"Pre-pass demotes {members[i].source}: {distance:.1f}km > {threshold:.1f}km")
            priors[i] *= C.OUTLIER_WEIGHT_FACTOR
    return priors


def round_limit(cluster_size: int, config: EngineConfig) -> int:
    if cluster_size <= 1:
        return 0
    if cluster_size >= C.IWCR_FULL_ROUNDS_MIN_SIZE:
        return config.max_rounds
    return config.small_cluster_rounds


def refine(memberships: Sequence[ClusterMembership], config: EngineConfig) -> List[RefinementState]:
    """Run IWCR over the in-cluster members.

    Returns one RefinementState per executed round; the last one holds the
    final centroid and effective weights. Clusters of one member yield no
    rounds. Members outside the cluster are carried through unchanged.
    """
    index = [i for i, m in enumerate(memberships) if m.in_cluster]
    members = [memberships[i] for i in index]
    limit = round_limit(len(members), config)
    if limit == 0:
        return []

    priors = outlier_priors(members) if config.outlier_prepass else [m.weight for m in members]
    centroid = weighted_centroid(members, priors)
    history: List[RefinementState] = []

    for round_number in range(1, limit + 1):
        sharpness = C.IWCR_BASE_SHARPNESS + C.IWCR_SHARPNESS_STEP * (round_number - 1)
        weights = [
            prior / (1.0 + _distance_km(member, centroid) ** 2 * sharpness)
            for member, prior in zip(members, priors)
        ]
        new_centroid = weighted_centroid(members, weights)
        delta_m = haversine_km(centroid[0], centroid[1], new_centroid[0], new_centroid[1]) * 1000
        centroid = new_centroid

        updated: Dict[int, ClusterMembership] = {}
        for i, member, weight in zip(index, members, weights):
            effective = min(weight, member.weight)
            # stays set once a member has been down-weighted in any earlier round
            was_refined = history[-1].memberships[i].refined if history else member.refined
            updated[i] = replace(
                member,
                distance_to_centroid_km=_distance_km(member, centroid),
                effective_weight=effective,
                refined=was_refined or effective < member.weight * (1.0 - config.refine_tolerance),
            )
        snapshot = tuple(updated.get(i, m) for i, m in enumerate(memberships))
        history.append(RefinementState(centroid=centroid, round=round_number,
                                       delta_m=delta_m, memberships=snapshot))

        logger.debug(f"IWCR round {round_number}: centroid ({centroid[0]:.5f}, {centroid[1]:.5f}), "
                     f"delta {delta_m:.1f}m")
        if delta_m < config.convergence_threshold_m:
            break

    return history
