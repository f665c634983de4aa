import threading
from datetime import timedelta
from unittest import mock

import pytest
from django.db import OperationalError, connections
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from algorithms.ranking import rank
from donors.models import DonationHistory
from emergencies import lifecycle
from emergencies.exceptions import (
    AlreadyMatched,
    AlreadyResponded,
    Conflict,
    IllegalTransition,
    RequestNotOpen,
    UpstreamError,
)
from emergencies.models import EmergencyRequest, RequestMatch

pytestmark = pytest.mark.django_db


def notify(emergency_request, donors):
    return lifecycle.create_matches(emergency_request, rank(emergency_request, donors))


def refreshed(obj):
    obj.refresh_from_db()
    return obj


# ============================================
# create_matches
# ============================================
def test_create_matches_in_rank_order(make_request, make_donor):
    req = make_request()
    far, near = make_donor(km=6), make_donor(km=1)

    matches = notify(req, [far, near])

    assert [m.donor for m in matches] == [near, far]
    assert [m.rank for m in matches] == [1, 2]
    assert all(m.status == RequestMatch.NOTIFIED and m.notified_at for m in matches)
    assert matches[0].distance_km == pytest.approx(1)
    assert matches[0].score > matches[1].score


def test_create_matches_is_a_noop_once_request_closed(make_request, make_donor):
    req = make_request(status=EmergencyRequest.CANCELED)
    assert notify(req, [make_donor()]) == []
    assert not RequestMatch.objects.exists()


def test_create_matches_skips_requester_and_known_donors(make_request, make_donor, requester):
    req = make_request()
    own = make_donor(user=requester)
    other = make_donor()

    notify(req, [own, other])
    again = notify(req, [other])

    assert list(req.matches.values_list('donor', flat=True)) == [other.pk]
    assert again == []


# ============================================
# accept
# ============================================
def test_accept_claims_the_request(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    notify(req, [donor])

    match = lifecycle.accept(req.pk, donor.pk)

    req = refreshed(req)
    assert match.status == RequestMatch.ACCEPTED
    assert match.responded_at is not None
    assert req.status == EmergencyRequest.MATCHED
    assert req.matched_at is not None
    assert refreshed(donor).response_rate == 1.0


def test_only_one_of_many_donors_wins(make_request, make_donor):
    req = make_request()
    donors = [make_donor(km=km) for km in (1, 2, 3, 4, 5)]
    notify(req, donors)

    winners, conflicts = [], []
    for donor in donors:
        try:
            winners.append(lifecycle.accept(req.pk, donor.pk))
        except AlreadyMatched as exc:
            conflicts.append(exc)

    assert len(winners) == 1
    assert len(conflicts) == 4
    assert refreshed(req).status == EmergencyRequest.MATCHED
    assert req.matches.filter(status__in=RequestMatch.COMMITTED_STATUSES).count() == 1
    assert req.matches.filter(status=RequestMatch.NOTIFIED).count() == 4


def test_second_accept_conflicts_without_reverting(make_request, make_donor):
    req = make_request()
    first, second = make_donor(), make_donor()

    match = lifecycle.accept(req.pk, first.pk)
    with pytest.raises(Conflict) as excinfo:
        lifecycle.accept(req.pk, second.pk)

    assert excinfo.value.status_code == 409
    assert match.status == RequestMatch.ACCEPTED
    assert refreshed(req).status == EmergencyRequest.MATCHED
    # The loser left nothing behind
    assert list(req.matches.values_list('donor', flat=True)) == [first.pk]


def test_accept_without_notification_snapshots_distance(make_request, make_donor):
    req = make_request()
    donor = make_donor(km=3)

    match = lifecycle.accept(req.pk, donor.pk)

    assert match.distance_km == pytest.approx(3)
    assert 1.0 <= match.score <= 2.0
    assert match.rank is None


def test_accept_twice_is_already_responded(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    lifecycle.accept(req.pk, donor.pk)

    with pytest.raises(AlreadyResponded):
        lifecycle.accept(req.pk, donor.pk)


def test_accept_after_decline_is_already_responded(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    lifecycle.decline(req.pk, donor.pk)

    with pytest.raises(AlreadyResponded):
        lifecycle.accept(req.pk, donor.pk)
    assert refreshed(req).status == EmergencyRequest.OPEN


def test_accept_rejects_incompatible_donor(make_request, make_donor):
    req = make_request(blood_type='O-')
    with pytest.raises(ValidationError):
        lifecycle.accept(req.pk, make_donor(blood_type='O+').pk)
    assert refreshed(req).status == EmergencyRequest.OPEN


def test_requester_cannot_accept_own_request(make_request, make_donor, requester):
    req = make_request()
    with pytest.raises(ValidationError):
        lifecycle.accept(req.pk, make_donor(user=requester).pk)


def test_accept_unknown_ids(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    with pytest.raises(NotFound):
        lifecycle.accept(req.pk + 100, donor.pk)
    with pytest.raises(NotFound):
        lifecycle.accept(req.pk, donor.pk + 100)


@pytest.mark.parametrize('status', [
    EmergencyRequest.CANCELED,
    EmergencyRequest.EXPIRED,
    EmergencyRequest.FULFILLED,
])
def test_accept_closed_request(make_request, make_donor, status):
    req = make_request(status=status)
    with pytest.raises(RequestNotOpen):
        lifecycle.accept(req.pk, make_donor().pk)
    assert refreshed(req).status == status


def test_accept_past_expiry_before_sweep(make_request, make_donor):
    req = make_request(expires_at=timezone.now() - timedelta(minutes=1))

    with pytest.raises(RequestNotOpen):
        lifecycle.accept(req.pk, make_donor().pk)

    assert lifecycle.expire_stale() == 1
    assert refreshed(req).status == EmergencyRequest.EXPIRED


def test_concurrent_accepts_have_one_winner(transactional_db, make_request, make_donor):
    req = make_request()
    donors = [make_donor(km=km) for km in (1, 2, 3, 4, 5, 6)]
    notify(req, donors)
    barrier = threading.Barrier(len(donors))
    outcomes = []

    def attempt(donor_id):
        try:
            barrier.wait()
            lifecycle.accept(req.pk, donor_id)
            outcomes.append('won')
        except Exception as exc:
            outcomes.append(exc)
        finally:
            connections.close_all()

    threads = [threading.Thread(target=attempt, args=(donor.pk,)) for donor in donors]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    losers = [outcome for outcome in outcomes if outcome != 'won']
    assert outcomes.count('won') == 1
    assert len(losers) == 5
    assert all(isinstance(exc, AlreadyMatched) for exc in losers), losers
    assert refreshed(req).status == EmergencyRequest.MATCHED
    assert req.matches.filter(status=RequestMatch.ACCEPTED).count() == 1


def test_lock_timeout_after_another_donor_won(make_request, make_donor):
    req = make_request()
    winner, late = make_donor(), make_donor()
    lifecycle.accept(req.pk, winner.pk)

    with mock.patch('emergencies.lifecycle._check_donor_for_request',
                    side_effect=OperationalError('database is locked')):
        with pytest.raises(AlreadyMatched):
            lifecycle.accept(req.pk, late.pk)


def test_lock_timeout_on_open_request_is_upstream(make_request, make_donor):
    req = make_request()

    with mock.patch('emergencies.lifecycle.refresh_response_stats',
                    side_effect=OperationalError('database is locked')):
        with pytest.raises(UpstreamError):
            lifecycle.accept(req.pk, make_donor().pk)

    assert refreshed(req).status == EmergencyRequest.OPEN


# ============================================
# decline
# ============================================
def test_decline_leaves_request_open(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    notify(req, [donor])

    match = lifecycle.decline(req.pk, donor.pk)

    assert match.status == RequestMatch.DECLINED
    assert refreshed(req).status == EmergencyRequest.OPEN
    assert refreshed(donor).response_rate == 1.0

    with pytest.raises(AlreadyResponded):
        lifecycle.decline(req.pk, donor.pk)


def test_decline_without_notification(make_request, make_donor):
    req = make_request()
    match = lifecycle.decline(req.pk, make_donor().pk)
    assert match.status == RequestMatch.DECLINED
    assert match.rank is None


def test_decline_closed_request_without_match(make_request, make_donor):
    req = make_request(status=EmergencyRequest.CANCELED)
    with pytest.raises(RequestNotOpen):
        lifecycle.decline(req.pk, make_donor().pk)


def test_response_rate_counts_unanswered_notifications(make_request, make_donor):
    donor = make_donor()
    answered, ignored = make_request(), make_request()
    notify(answered, [donor])
    notify(ignored, [donor])

    lifecycle.decline(answered.pk, donor.pk)

    donor = refreshed(donor)
    assert donor.response_rate == 0.5
    assert donor.avg_response_minutes is not None


# ============================================
# advance / fulfill
# ============================================
@pytest.fixture
def accepted(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    notify(req, [donor])
    return lifecycle.accept(req.pk, donor.pk)


def test_advance_through_en_route(accepted):
    donor_id = accepted.donor_id
    assert lifecycle.advance(accepted.pk, RequestMatch.EN_ROUTE, donor_id).status == RequestMatch.EN_ROUTE
    assert lifecycle.advance(accepted.pk, RequestMatch.ARRIVED, donor_id).status == RequestMatch.ARRIVED


def test_advance_may_skip_en_route(accepted):
    match = lifecycle.advance(accepted.pk, RequestMatch.ARRIVED, accepted.donor_id)
    assert match.status == RequestMatch.ARRIVED


@pytest.mark.parametrize('new_status', [RequestMatch.NOTIFIED, RequestMatch.DECLINED, RequestMatch.ACCEPTED])
def test_advance_rejects_backward_moves(accepted, new_status):
    with pytest.raises(IllegalTransition):
        lifecycle.advance(accepted.pk, new_status, accepted.donor_id)


def test_advance_from_arrived_is_illegal(accepted):
    lifecycle.advance(accepted.pk, RequestMatch.ARRIVED, accepted.donor_id)
    with pytest.raises(IllegalTransition):
        lifecycle.advance(accepted.pk, RequestMatch.EN_ROUTE, accepted.donor_id)


def test_advance_notified_match_is_illegal(make_request, make_donor):
    req = make_request()
    donor = make_donor()
    match = notify(req, [donor])[0]
    with pytest.raises(IllegalTransition):
        lifecycle.advance(match.pk, RequestMatch.EN_ROUTE, donor.pk)


def test_advance_by_another_donor(accepted, make_donor):
    with pytest.raises(PermissionDenied):
        lifecycle.advance(accepted.pk, RequestMatch.EN_ROUTE, make_donor().pk)


def test_advance_unknown_status(accepted):
    with pytest.raises(ValidationError):
        lifecycle.advance(accepted.pk, 'TELEPORTED', accepted.donor_id)


def test_fulfill_credits_the_donor(accepted, requester):
    lifecycle.advance(accepted.pk, RequestMatch.ARRIVED, accepted.donor_id)

    req = lifecycle.fulfill(accepted.pk, requester)

    donor = refreshed(accepted.donor)
    assert req.status == EmergencyRequest.FULFILLED
    assert req.closed_at is not None
    assert donor.donation_count == 1
    assert donor.last_donation_date == timezone.localdate()
    assert DonationHistory.objects.filter(donor=donor, emergency_request=req).count() == 1


def test_staff_can_confirm(accepted, staff_user):
    lifecycle.advance(accepted.pk, RequestMatch.ARRIVED, accepted.donor_id)
    assert lifecycle.fulfill(accepted.pk, staff_user).status == EmergencyRequest.FULFILLED


def test_fulfill_by_stranger(accepted, make_user):
    lifecycle.advance(accepted.pk, RequestMatch.ARRIVED, accepted.donor_id)
    with pytest.raises(PermissionDenied):
        lifecycle.fulfill(accepted.pk, make_user())


def test_fulfill_before_arrival(accepted, requester):
    with pytest.raises(IllegalTransition):
        lifecycle.fulfill(accepted.pk, requester)
    assert refreshed(accepted.emergency_request).status == EmergencyRequest.MATCHED


# ============================================
# cancel / expire_stale
# ============================================
def test_cancel_open_request(make_request, requester):
    req = lifecycle.cancel(make_request().pk, requester.pk)
    assert req.status == EmergencyRequest.CANCELED
    assert req.closed_at is not None

    with pytest.raises(RequestNotOpen):
        lifecycle.cancel(req.pk, requester.pk)


def test_cancel_by_someone_else(make_request, make_user):
    with pytest.raises(PermissionDenied):
        lifecycle.cancel(make_request().pk, make_user().pk)


def test_cancel_matched_request(accepted, requester):
    with pytest.raises(AlreadyMatched):
        lifecycle.cancel(accepted.emergency_request_id, requester.pk)


def test_expire_stale_is_idempotent(make_request):
    now = timezone.now()
    stale = make_request(expires_at=now - timedelta(hours=1))
    fresh = make_request()

    assert lifecycle.expire_stale(now=now) == 1
    assert lifecycle.expire_stale(now=now) == 0

    assert refreshed(stale).status == EmergencyRequest.EXPIRED
    assert refreshed(fresh).status == EmergencyRequest.OPEN


def test_expire_stale_leaves_matched_requests(accepted):
    later = timezone.now() + timedelta(days=2)
    assert lifecycle.expire_stale(now=later) == 0
    assert refreshed(accepted.emergency_request).status == EmergencyRequest.MATCHED
