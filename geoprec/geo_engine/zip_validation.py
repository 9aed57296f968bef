"""Postal (ZIP) Cross-Validation - Independent sources reporting the same postal code"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional, Sequence

from ..geo_core.models import ClusterMembership
from ..geo_core.utils import normalize_zip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZipValidation:
    confirmed: bool = False
    zip_code: Optional[str] = None
    votes: int = 0


def validate_zip(memberships: Sequence[ClusterMembership]) -> ZipValidation:
    """Confirm the postal code when two or more in-cluster sources report it.

    The most reported code wins; ties go to the earliest responder.
    """
    members = sorted((m for m in memberships if m.in_cluster),
                     key=lambda m: m.observation.response_order_key)
    zips = [normalize_zip(m.observation.zip) for m in members]
    votes = Counter(z for z in zips if z)
    if not votes:
        return ZipValidation()

    top_count = max(votes.values())
    if top_count < 2:
        return ZipValidation(votes=top_count)

    # zips is in response order, so the first tied code seen is the earliest
    zip_code = next(z for z in zips if z and votes[z] == top_count)
    logger.debug(f"Zip {zip_code} confirmed by {top_count} sources")
    return ZipValidation(confirmed=True, zip_code=zip_code, votes=top_count)
