"""
Haversine Algorithm - Calculate distance between two geographical points
Used to find donors nearest to the location of an emergency request
"""

import math

EARTH_RADIUS_KM = 6371

# Rough conversion used for bounding boxes: 1 degree of latitude
KM_PER_DEGREE = 111


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate straight-line distance between two points.
    Note: This is "as the crow flies" distance, not road distance.

    Args:
        lat1, lon1: Latitude and longitude of point 1 (request)
        lat2, lon2: Latitude and longitude of point 2 (donor)

    Returns:
        Distance in kilometers
    """
    # Convert decimal degrees to radians
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    # Haversine formula
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat/2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon/2)**2
    # min() guards against rounding pushing a just above 1 for antipodes
    c = 2 * math.asin(math.sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_KM


def bounding_box(lat, lon, radius_km):
    """
    Approximate lat/lon window around a point.

    Cheap enough to push into a database query; anything it lets through
    is re-checked with haversine_distance.

    Returns:
        Tuple: (min_lat, max_lat, min_lon, max_lon)
    """
    lat_delta = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6:
        # Near the poles every longitude is close
        lon_delta = 180.0
    else:
        lon_delta = radius_km / (KM_PER_DEGREE * cos_lat)

    return lat - lat_delta, lat + lat_delta, lon - lon_delta, lon + lon_delta
