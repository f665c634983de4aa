# algorithms/scoring.py
import numpy as np

# Weights per urgency tier (compatibility always counts in full)
URGENCY_WEIGHTS = {
    'LOW':      {'distance': 0.3, 'donation_history': 0.3, 'response_rate': 0.2, 'availability': 0.2},
    'MEDIUM':   {'distance': 0.4, 'donation_history': 0.3, 'response_rate': 0.2, 'availability': 0.1},
    'HIGH':     {'distance': 0.5, 'donation_history': 0.2, 'response_rate': 0.2, 'availability': 0.1},
    'CRITICAL': {'distance': 0.6, 'donation_history': 0.1, 'response_rate': 0.2, 'availability': 0.1},
}

# Order of the weighted factors in the dot product
WEIGHTED_FACTORS = ['distance', 'availability', 'donation_history', 'response_rate']

NEUTRAL_FACTOR = 0.5
DONATION_HISTORY_CAP = 10


def score_factors(emergency_request, donor, distance_km):
    """
    Individual suitability factors, each normalized to 0-1

    1. Compatibility (already verified by the filter)
    2. Distance (closer is better, 0 at the edge of the radius)
    3. Availability (already verified by the filter)
    4. Donation history (capped at 10 donations)
    5. Response rate
    """
    radius = emergency_request.radius_km
    if radius > 0:
        distance = max(0.0, 1 - distance_km / radius)
    else:
        distance = 1.0 if distance_km == 0 else 0.0

    if donor.donation_count is None:
        donation_history = NEUTRAL_FACTOR
    else:
        donation_history = min(1.0, donor.donation_count / DONATION_HISTORY_CAP)

    if donor.response_rate is None:
        response_rate = NEUTRAL_FACTOR
    else:
        response_rate = float(donor.response_rate)

    return {
        'compatibility': 1.0,
        'distance': distance,
        'availability': 1.0,
        'donation_history': donation_history,
        'response_rate': response_rate,
    }


def weights_for(urgency):
    try:
        weights = URGENCY_WEIGHTS[urgency]
    except KeyError:
        raise ValueError(f"Unknown urgency tier: {urgency!r}")
    return np.array([weights[name] for name in WEIGHTED_FACTORS], dtype=float)


def score(emergency_request, donor, distance_km):
    """
    Composite suitability score of a candidate donor.

    The compatibility factor adds a flat 1.0 on top of the weighted sum,
    so scores fall between 1.0 and 2.0.
    """
    factors = score_factors(emergency_request, donor, distance_km)
    return score_from_factors(factors, emergency_request.urgency)


def score_from_factors(factors, urgency):
    values = np.array([factors[name] for name in WEIGHTED_FACTORS], dtype=float)
    weighted = float(np.dot(values, weights_for(urgency)))
    return factors['compatibility'] * 1.0 + weighted
