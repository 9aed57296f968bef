"""Uncertainty Estimator - p68/p95/max radii from the dispersion of agreeing sources"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..geo_core.config import EngineConfig
from ..geo_core.models import ClusterMembership, IspType
from ..geo_core.utils import weighted_percentile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UncertaintyEstimate:
    """Radii in meters"""
    p68_m: float
    p95_m: float
    max_m: float
    fallback: bool = False

    @property
    def estimated_accuracy_m(self) -> float:
        return self.p68_m


def estimate_uncertainty(memberships: Sequence[ClusterMembership], zip_confirmed: bool,
                         isp_type: IspType, config: Optional[EngineConfig] = None) -> UncertaintyEstimate:
    """Weighted-percentile radii of in-cluster distances to the final centroid.

    `memberships` must carry final distances and effective weights. With fewer
    than two in-cluster members the fixed ISP-hub band is used, because a lone
    source usually places the IP at its provider's hub rather than the user.
    """
    config = config or EngineConfig()
    members = [m for m in memberships if m.in_cluster]

    if len(members) < 2:
        p68, p95, worst = config.fallback_p68_m, config.fallback_p95_m, config.fallback_max_m
        fallback = True
    else:
        distances_m = [m.distance_to_centroid_km * 1000 for m in members]
        weights = [m.effective_weight for m in members]
        p68 = weighted_percentile(distances_m, weights, 0.68)
        p95 = weighted_percentile(distances_m, weights, 0.95)
        worst = max(distances_m)
        fallback = False

    p68 = max(p68, config.p68_floor_m)
    p95 = max(p95, config.p95_floor_m, p68)
    worst = max(worst, p95)

    factor = 1.0
    if not zip_confirmed:
        factor *= config.no_zip_penalty
    if isp_type is IspType.MOBILE:
        factor *= config.mobile_penalty

    estimate = UncertaintyEstimate(
        p68_m=float(round(p68 * factor)),
        p95_m=float(round(p95 * factor)),
        max_m=float(round(worst * factor)),
        fallback=fallback,
    )
    logger.debug(f"Uncertainty p68={estimate.p68_m}m p95={estimate.p95_m}m max={estimate.max_m}m "
                 f"(factor {factor}, fallback={fallback})")
    return estimate
