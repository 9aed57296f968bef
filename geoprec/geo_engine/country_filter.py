"""Country Consistency Filter - Discard observations that disagree with the majority country"""

import logging
from collections import Counter
from dataclasses import replace
from typing import List, Optional, Sequence

from ..geo_core.models import ClusterMembership

logger = logging.getLogger(__name__)


def majority_country(memberships: Sequence[ClusterMembership]) -> Optional[str]:
    """Plurality country key among unfiltered observations.

    Ties go to the country of the earliest responder. Returns None when no
    country is reported at least twice, since a single vote cannot outvote
    anything.
    """
    candidates = [m for m in memberships if not m.country_filtered and m.observation.country_key]
    if not candidates:
        return None

    votes = Counter(m.observation.country_key for m in candidates)
    top_count = max(votes.values())
    if top_count < 2:
        return None

    first_seen = {}
    for membership in sorted(candidates, key=lambda m: m.observation.response_order_key):
        first_seen.setdefault(membership.observation.country_key, membership.observation.response_order_key)

    tied = [key for key, count in votes.items() if count == top_count]
    return min(tied, key=lambda key: first_seen[key])


def filter_by_country(memberships: Sequence[ClusterMembership]) -> List[ClusterMembership]:
    """Mark observations outside the majority country as country_filtered.

    Observations without any country are never filtered. Applying the filter
    to its own output changes nothing.
    """
    majority = majority_country(memberships)
    if majority is None:
        return list(memberships)

    result = []
    for membership in memberships:
        key = membership.observation.country_key
        if key and key != majority and not membership.country_filtered:
            logger.debug(f"{membership.source} filtered: country {key} != majority {majority}")
            membership = replace(membership, country_filtered=True)
        result.append(membership)
    return result
