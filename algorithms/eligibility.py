import logging
from algorithms.haversine import haversine_distance
from algorithms.blood_compatibility import is_compatible

AVAILABLE = 'AVAILABLE'

# Logger
logger = logging.getLogger(__name__)


def is_donor_eligible(donor, emergency_request) -> bool:
    """
    Check the static criteria of a donor for a given emergency request.

    Criteria:
    - Donor blood type compatible with request
    - Donor is available
    - Donor has known coordinates

    The radius check needs the distance, see filter_candidates.
    """
    if not is_compatible(emergency_request.abo_type, emergency_request.rh,
                         donor.abo_type, donor.rh):
        return False

    if donor.availability != AVAILABLE:
        return False

    if donor.latitude is None or donor.longitude is None:
        return False

    return True


def filter_candidates(emergency_request, donor_pool):
    """
    Keep the donors that can serve an emergency request.

    Args:
        emergency_request: object with abo_type, rh, latitude, longitude, radius_km
        donor_pool: iterable of donor objects (queryset or list)

    Returns:
        List of tuples: (donor, distance_km) in pool order
    """
    candidates = []

    for donor in donor_pool:
        if not is_donor_eligible(donor, emergency_request):
            continue

        distance = haversine_distance(
            emergency_request.latitude,
            emergency_request.longitude,
            donor.latitude,
            donor.longitude
        )
        if distance > emergency_request.radius_km:
            continue

        candidates.append((donor, distance))

    logger.debug(f"{len(candidates)} candidates survived filtering")
    return candidates
