"""
Match Ranker - filter, score and order the donors for an emergency request
"""

import logging
from dataclasses import dataclass, field

from algorithms.eligibility import filter_candidates
from algorithms.scoring import score_factors, score_from_factors

DEFAULT_MAX_MATCHES = 10

logger = logging.getLogger(__name__)


@dataclass
class MatchCandidate:
    """A donor that survived filtering, with its score snapshot"""
    donor: object
    distance_km: float
    score: float
    factors: dict = field(default_factory=dict)

    @property
    def donor_id(self):
        return self.donor.pk


def rank(emergency_request, donor_pool, max_matches=DEFAULT_MAX_MATCHES):
    """
    Rank donors for an emergency request.

    Steps:
    1. Filter compatible, available donors inside the radius
    2. Score every survivor for the request's urgency
    3. Sort by score (highest first), then distance, then donor id
    4. Keep at most max_matches

    Returns:
        List of MatchCandidate, possibly empty
    """
    if max_matches <= 0:
        return []

    scored = []
    for donor, distance in filter_candidates(emergency_request, donor_pool):
        factors = score_factors(emergency_request, donor, distance)
        scored.append(MatchCandidate(
            donor=donor,
            distance_km=distance,
            score=score_from_factors(factors, emergency_request.urgency),
            factors=factors,
        ))

    scored.sort(key=lambda c: (-c.score, c.distance_km, c.donor_id))

    logger.info(
        f"{len(scored)} candidates ranked for emergency request "
        f"{getattr(emergency_request, 'pk', None)}, keeping {min(len(scored), max_matches)}"
    )
    return scored[:max_matches]
