"""Plain stand-ins and geometry helpers shared by the tests"""
from types import SimpleNamespace

# Kathmandu
BASE_LAT = 27.7172
BASE_LNG = 85.3240

# One degree of latitude on a 6371km sphere
KM_PER_LAT_DEGREE = 111.19492664455873


def north_of(lat, km):
    """Latitude exactly km kilometers north along the meridian"""
    return lat + km / KM_PER_LAT_DEGREE


def donor_stub(pk, blood_type='O+', km=0.0, availability='AVAILABLE', donation_count=None,
               response_rate=None, has_location=True):
    """Object with the attributes the ranking code reads"""
    return SimpleNamespace(
        pk=pk,
        abo_type=blood_type[:-1],
        rh=blood_type[-1],
        availability=availability,
        latitude=north_of(BASE_LAT, km) if has_location else None,
        longitude=BASE_LNG if has_location else None,
        donation_count=donation_count,
        response_rate=response_rate,
    )


def request_stub(blood_type='O+', urgency='MEDIUM', radius_km=10.0):
    return SimpleNamespace(
        pk=None,
        abo_type=blood_type[:-1],
        rh=blood_type[-1],
        urgency=urgency,
        latitude=BASE_LAT,
        longitude=BASE_LNG,
        radius_km=radius_km,
    )
