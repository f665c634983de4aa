# emergencies/lifecycle.py
"""
Request / match lifecycle.

Every state change runs in one short transaction and is written as a
conditional UPDATE (``... WHERE status = <expected>``) whose affected-row
count decides the outcome. Nothing here reads a status and then writes
it back in a separate step.

Request:  OPEN -> MATCHED -> FULFILLED, OPEN -> CANCELED, OPEN -> EXPIRED
Match:    NOTIFIED -> ACCEPTED -> EN_ROUTE -> ARRIVED, ACCEPTED -> ARRIVED,
          NOTIFIED -> DECLINED
"""
import logging
from functools import wraps

from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from algorithms.blood_compatibility import is_compatible
from algorithms.haversine import haversine_distance
from algorithms.scoring import score
from donors.models import DonorProfile
from donors.utils import credit_donation, refresh_response_stats
from emergencies.exceptions import (
    AlreadyMatched,
    AlreadyResponded,
    DuplicateMatch,
    IllegalTransition,
    RequestNotOpen,
    UpstreamError,
)
from emergencies.models import EmergencyRequest, RequestMatch

logger = logging.getLogger(__name__)

# Transitions reachable through advance(); accept/decline own the rest
MATCH_TRANSITIONS = {
    RequestMatch.ACCEPTED: (RequestMatch.EN_ROUTE, RequestMatch.ARRIVED),
    RequestMatch.EN_ROUTE: (RequestMatch.ARRIVED,),
}


def surfaces_upstream_errors(func):
    """Re-raise database failures (other than constraint violations) as UpstreamError"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError:
            raise
        except DatabaseError as exc:
            logger.error(f"{func.__name__} failed in the database: {exc}")
            raise UpstreamError() from exc
    return wrapper


# ============================================
# LOOKUPS
# ============================================
def _get_request(request_id):
    try:
        return EmergencyRequest.objects.get(pk=request_id)
    except EmergencyRequest.DoesNotExist:
        raise NotFound(f"Emergency request {request_id} not found.")


def _get_donor(donor_id):
    try:
        return DonorProfile.objects.get(pk=donor_id)
    except DonorProfile.DoesNotExist:
        raise NotFound(f"Donor {donor_id} not found.")


def _get_match(match_id):
    try:
        return RequestMatch.objects.select_related('emergency_request', 'donor').get(pk=match_id)
    except RequestMatch.DoesNotExist:
        raise NotFound(f"Match {match_id} not found.")


def _not_open_error(request_id):
    """Pick the conflict that explains why a request could not be claimed"""
    current = EmergencyRequest.objects.filter(pk=request_id).values_list('status', flat=True).first()
    if current == EmergencyRequest.MATCHED:
        return AlreadyMatched()
    if current == EmergencyRequest.OPEN:
        return RequestNotOpen('This request has expired.')
    return RequestNotOpen(f"This request is {str(current).lower()}.")


def _snapshot(emergency_request, donor):
    """Distance and score for a donor who was not ranked beforehand"""
    if not donor.has_location:
        return None, None
    distance = haversine_distance(
        emergency_request.latitude, emergency_request.longitude,
        donor.latitude, donor.longitude
    )
    return distance, score(emergency_request, donor, distance)


def _check_donor_for_request(emergency_request, donor):
    if donor.user_id == emergency_request.requester_id:
        raise ValidationError({'donor': 'Requesters cannot respond to their own request.'})
    if not is_compatible(emergency_request.abo_type, emergency_request.rh, donor.abo_type, donor.rh):
        raise ValidationError({'donor': f"Blood type {donor.blood_type} cannot give to {emergency_request.blood_type}."})


# ============================================
# MATCH CREATION
# ============================================
@surfaces_upstream_errors
def create_matches(emergency_request, ranked_candidates, now=None):
    """
    Persist one NOTIFIED match per ranked candidate, in rank order.

    Does nothing (returns []) when the request is no longer OPEN.
    The requester and donors that already have a match are skipped.
    """
    now = now or timezone.now()

    with transaction.atomic():
        locked = EmergencyRequest.objects.select_for_update().filter(
            pk=emergency_request.pk,
            status=EmergencyRequest.OPEN,
        ).first()
        if locked is None:
            logger.info(f"Request {emergency_request.pk} is no longer open, no matches created")
            return []

        seen = set(
            RequestMatch.objects.filter(emergency_request=locked).values_list('donor_id', flat=True)
        )
        matches = []
        for position, candidate in enumerate(ranked_candidates, start=1):
            donor = candidate.donor
            if donor.user_id == locked.requester_id or donor.pk in seen:
                continue
            seen.add(donor.pk)
            matches.append(RequestMatch.objects.create(
                emergency_request=locked,
                donor=donor,
                distance_km=candidate.distance_km,
                score=candidate.score,
                rank=position,
                status=RequestMatch.NOTIFIED,
                notified_at=now,
            ))

    logger.info(f"{len(matches)} donors notified for request {emergency_request.pk}")
    return matches


# ============================================
# DONOR RESPONSES
# ============================================
@surfaces_upstream_errors
def accept(request_id, donor_id, now=None):
    """
    Commit a donor to an open request.

    Exactly one donor can win: the request is claimed with
    ``UPDATE ... SET status=MATCHED WHERE status=OPEN`` inside the same
    transaction that marks the donor's match ACCEPTED. Losers get
    AlreadyMatched and nothing they touched is kept.

    Raises:
        NotFound: unknown request or donor
        ValidationError: donor is the requester or blood type incompatible
        AlreadyResponded: donor already accepted or declined this request
        AlreadyMatched: another donor won the request
        RequestNotOpen: request is canceled, expired or fulfilled
    """
    now = now or timezone.now()
    donor = _get_donor(donor_id)

    try:
        with transaction.atomic():
            emergency_request = _get_request(request_id)
            _check_donor_for_request(emergency_request, donor)

            existing = RequestMatch.objects.filter(
                emergency_request_id=emergency_request.pk, donor=donor
            ).first()
            if existing is not None and existing.status != RequestMatch.NOTIFIED:
                raise AlreadyResponded()

            claimed = EmergencyRequest.objects.filter(
                pk=emergency_request.pk,
                status=EmergencyRequest.OPEN,
                expires_at__gte=now,
            ).update(status=EmergencyRequest.MATCHED, matched_at=now, updated_at=now)
            if not claimed:
                raise _not_open_error(emergency_request.pk)

            if existing is not None:
                updated = RequestMatch.objects.filter(
                    pk=existing.pk, status=RequestMatch.NOTIFIED
                ).update(status=RequestMatch.ACCEPTED, responded_at=now, updated_at=now)
                if not updated:
                    raise AlreadyResponded()
                existing.refresh_from_db()
                match = existing
            else:
                distance, match_score = _snapshot(emergency_request, donor)
                match = RequestMatch.objects.create(
                    emergency_request=emergency_request,
                    donor=donor,
                    distance_km=distance,
                    score=match_score,
                    status=RequestMatch.ACCEPTED,
                    responded_at=now,
                )

            refresh_response_stats(donor)
            transaction.on_commit(lambda: _notify_acceptance(match.pk))
    except (AlreadyMatched, RequestNotOpen, AlreadyResponded) as exc:
        logger.warning(f"Donor {donor_id} could not accept request {request_id}: {exc.default_code}")
        raise
    except IntegrityError as exc:
        logger.warning(f"Donor {donor_id} hit a match constraint on request {request_id}: {exc}")
        raise DuplicateMatch() from exc
    except OperationalError as exc:
        # Lock wait ran out; if another donor won in the meantime that is the answer
        current = EmergencyRequest.objects.filter(pk=request_id).values_list('status', flat=True).first()
        if current in (None, EmergencyRequest.OPEN):
            raise
        logger.warning(f"Donor {donor_id} timed out on request {request_id}, now {current}")
        raise _not_open_error(request_id) from exc

    logger.info(f"Donor {donor_id} accepted request {request_id}")
    return match


@surfaces_upstream_errors
def decline(request_id, donor_id, now=None):
    """
    Record that a donor will not help. The request status is left alone.

    A donor who was never notified gets a DECLINED match of their own,
    as long as the request is still OPEN or MATCHED.
    """
    now = now or timezone.now()
    donor = _get_donor(donor_id)

    try:
        with transaction.atomic():
            emergency_request = _get_request(request_id)
            existing = RequestMatch.objects.filter(
                emergency_request_id=emergency_request.pk, donor=donor
            ).first()

            if existing is not None:
                updated = RequestMatch.objects.filter(
                    pk=existing.pk, status=RequestMatch.NOTIFIED
                ).update(status=RequestMatch.DECLINED, responded_at=now, updated_at=now)
                if not updated:
                    raise AlreadyResponded()
                existing.refresh_from_db()
                match = existing
            else:
                if donor.user_id == emergency_request.requester_id:
                    raise ValidationError({'donor': 'Requesters cannot respond to their own request.'})
                active = EmergencyRequest.objects.select_for_update().filter(
                    pk=emergency_request.pk,
                    status__in=[EmergencyRequest.OPEN, EmergencyRequest.MATCHED],
                ).first()
                if active is None:
                    raise RequestNotOpen()
                distance, match_score = _snapshot(emergency_request, donor)
                match = RequestMatch.objects.create(
                    emergency_request=active,
                    donor=donor,
                    distance_km=distance,
                    score=match_score,
                    status=RequestMatch.DECLINED,
                    responded_at=now,
                )

            refresh_response_stats(donor)
    except IntegrityError as exc:
        raise DuplicateMatch() from exc

    logger.info(f"Donor {donor_id} declined request {request_id}")
    return match


# ============================================
# MATCH PROGRESS
# ============================================
@surfaces_upstream_errors
def advance(match_id, new_status, donor_id, now=None):
    """
    Move an accepted match along: ACCEPTED -> EN_ROUTE -> ARRIVED
    (EN_ROUTE may be skipped). Only the match's donor may do this.
    """
    if new_status not in dict(RequestMatch.STATUS_CHOICES):
        raise ValidationError({'status': f"Unknown match status: {new_status}."})

    now = now or timezone.now()
    sources = [source for source, targets in MATCH_TRANSITIONS.items() if new_status in targets]

    with transaction.atomic():
        match = _get_match(match_id)
        if match.donor_id != donor_id:
            raise PermissionDenied('Only the matched donor can update this match.')

        updated = RequestMatch.objects.filter(
            pk=match.pk, status__in=sources
        ).update(status=new_status, updated_at=now)
        if not updated:
            match.refresh_from_db(fields=['status'])
            raise IllegalTransition(f"Cannot move a {match.status} match to {new_status}.")

        match.refresh_from_db()

    logger.info(f"Match {match_id} advanced to {new_status}")
    return match


@surfaces_upstream_errors
def fulfill(match_id, confirmed_by, now=None):
    """
    Confirm the donation of an ARRIVED donor: the request becomes
    FULFILLED and the donor's history is credited.

    Only the requester or hospital staff may confirm.
    """
    now = now or timezone.now()

    with transaction.atomic():
        match = _get_match(match_id)
        emergency_request = match.emergency_request
        if emergency_request.requester_id != confirmed_by.pk and not getattr(confirmed_by, 'is_confirmer', False):
            raise PermissionDenied('Only the requester or hospital staff can confirm a donation.')

        if match.status != RequestMatch.ARRIVED:
            raise IllegalTransition('Only the donation of an arrived donor can be confirmed.')

        updated = EmergencyRequest.objects.filter(
            pk=emergency_request.pk, status=EmergencyRequest.MATCHED
        ).update(status=EmergencyRequest.FULFILLED, closed_at=now, updated_at=now)
        if not updated:
            raise RequestNotOpen('This request is not awaiting a donation.')

        credit_donation(match.donor, emergency_request)
        emergency_request.refresh_from_db()

    logger.info(f"Request {emergency_request.pk} fulfilled by donor {match.donor_id}")
    return emergency_request


# ============================================
# REQUEST CLOSURE
# ============================================
@surfaces_upstream_errors
def cancel(request_id, requester_id, now=None):
    """Requester withdraws an OPEN request"""
    now = now or timezone.now()

    with transaction.atomic():
        emergency_request = _get_request(request_id)
        if emergency_request.requester_id != requester_id:
            raise PermissionDenied('Only the requester can cancel this request.')

        updated = EmergencyRequest.objects.filter(
            pk=emergency_request.pk, status=EmergencyRequest.OPEN
        ).update(status=EmergencyRequest.CANCELED, closed_at=now, updated_at=now)
        if not updated:
            raise _not_open_error(emergency_request.pk)

        emergency_request.refresh_from_db()

    logger.info(f"Request {request_id} canceled by its requester")
    return emergency_request


@surfaces_upstream_errors
def expire_stale(now=None):
    """
    Mark OPEN requests past their expiry as EXPIRED.

    Safe to call any number of times; returns how many requests changed.
    """
    now = now or timezone.now()

    expired = EmergencyRequest.objects.filter(
        status=EmergencyRequest.OPEN,
        expires_at__lt=now,
    ).update(status=EmergencyRequest.EXPIRED, closed_at=now, updated_at=now)

    if expired:
        logger.info(f"{expired} stale requests expired")
    return expired


def _notify_acceptance(match_id):
    from emergencies.tasks import notify_requester_of_acceptance
    notify_requester_of_acceptance.delay(match_id)
