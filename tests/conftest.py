import itertools

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from donors.models import DonorProfile
from emergencies.models import EmergencyRequest

from factories import BASE_LAT, BASE_LNG, north_of

User = get_user_model()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(user_type='donor', **kwargs):
        n = next(counter)
        return User.objects.create_user(
            username=kwargs.pop('username', f'user{n}'),
            email=kwargs.pop('email', f'user{n}@example.com'),
            password=kwargs.pop('password', 'pass1234'),
            user_type=user_type,
            **kwargs
        )
    return _make


@pytest.fixture
def make_donor(make_user):
    def _make(blood_type='O+', km=1.0, user=None, has_location=True, **kwargs):
        user = user or make_user()
        return DonorProfile.objects.create(
            user=user,
            full_name=kwargs.pop('full_name', f'Donor {user.username}'),
            abo_type=blood_type[:-1],
            rh=blood_type[-1],
            latitude=north_of(BASE_LAT, km) if has_location else None,
            longitude=BASE_LNG if has_location else None,
            **kwargs
        )
    return _make


@pytest.fixture
def requester(make_user):
    return make_user(user_type='requester', username='requester', email='requester@example.com')


@pytest.fixture
def staff_user(make_user):
    return make_user(user_type='staff', username='nurse', email='nurse@example.com')


@pytest.fixture
def make_request(requester):
    def _make(blood_type='O+', urgency='MEDIUM', radius_km=10.0, **kwargs):
        return EmergencyRequest.objects.create(
            requester=kwargs.pop('requester', requester),
            abo_type=blood_type[:-1],
            rh=blood_type[-1],
            urgency=urgency,
            latitude=BASE_LAT,
            longitude=BASE_LNG,
            radius_km=radius_km,
            **kwargs
        )
    return _make


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
