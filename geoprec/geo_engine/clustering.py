"""Consensus Clustering - Largest group of mutually consistent observations"""

import logging
from dataclasses import replace
from typing import Dict, List, Sequence, Set

from ..geo_core.config import EngineConfig
from ..geo_core.models import ClusterMembership
from ..geo_core.utils import cities_match, haversine_km

logger = logging.getLogger(__name__)


def observations_agree(a: ClusterMembership, b: ClusterMembership, config: EngineConfig) -> bool:
    """Two observations agree when close enough, or when they name the same city"""
    obs_a, obs_b = a.observation, b.observation
    if haversine_km(obs_a.lat, obs_a.lon, obs_b.lat, obs_b.lon) < config.agreement_threshold_km:
        return True
    if not config.cluster_city_match:
        return False
    same_country = (not obs_a.country_key or not obs_b.country_key
                    or obs_a.country_key == obs_b.country_key)
    return same_country and cities_match(obs_a.city, obs_b.city)


def connected_components(memberships: Sequence[ClusterMembership], config: EngineConfig) -> List[List[int]]:
    """Connected components of the agreement graph, as index lists"""
    count = len(memberships)
    adjacency: Dict[int, Set[int]] = {i: set() for i in range(count)}
    for i in range(count):
        for j in range(i + 1, count):
            if observations_agree(memberships[i], memberships[j], config):
                adjacency[i].add(j)
                adjacency[j].add(i)

    seen: Set[int] = set()
    components = []
    for start in range(count):
        if start in seen:
            continue
        stack = [start]
        component = []
        seen.add(start)
        while stack:
            node = stack.pop()
            component.append(node)
            for neighbour in adjacency[node]:
                if neighbour not in seen:
                    seen.add(neighbour)
                    stack.append(neighbour)
        components.append(sorted(component))
    return components


def find_consensus(memberships: Sequence[ClusterMembership], config: EngineConfig) -> List[ClusterMembership]:
    """Flag the members of the consensus cluster with in_cluster=True.

    Members start with effective_weight equal to their reliability weight;
    everyone else carries zero.

    Only observations that survived the country filter take part. The largest
    component wins; ties go to the higher summed reliability weight, then to
    the lexicographically smallest source name. When two or more observations
    take part but none agree, nothing is flagged.
    """
    result = [replace(m, in_cluster=False, effective_weight=0.0) for m in memberships]
    eligible = [i for i, m in enumerate(result) if not m.country_filtered]
    if not eligible:
        return result

    candidates = [result[i] for i in eligible]
    components = connected_components(candidates, config)

    def rank(component):
        weight_sum = round(sum(candidates[i].weight for i in component), 9)
        return (-len(component), -weight_sum, min(candidates[i].source for i in component))

    best = min(components, key=rank)
    if len(best) == 1 and len(eligible) > 1:
        logger.debug(f"No consensus among {len(eligible)} observations")
        return result

    for index in best:
        target = eligible[index]
        result[target] = replace(result[target], in_cluster=True, effective_weight=result[target].weight)

    logger.debug(f"Consensus cluster: {sorted(candidates[i].source for i in best)} "
                 f"({len(best)}/{len(eligible)})")
    return result
