import logging
from django.conf import settings
from django.db import transaction

from algorithms.blood_compatibility import get_compatible_donors
from algorithms.ranking import rank
from donors.utils import query_donors_near
from emergencies import lifecycle

# Logger setup
logger = logging.getLogger(__name__)


def match_request(emergency_request, max_matches=None):
    """
    Match and rank donors for an emergency request, then notify them.

    Steps:
    1. Load available donors of compatible types around the request
    2. Filter, score and rank them for the request's urgency
    3. Persist the top candidates as NOTIFIED matches
    4. After commit, hand the notifications to Celery

    Returns:
        List of RequestMatch in rank order (empty when nobody qualifies)
    """
    if max_matches is None:
        max_matches = settings.DONORMATCH_MAX_MATCHES

    donor_pool = query_donors_near(
        emergency_request.latitude,
        emergency_request.longitude,
        emergency_request.radius_km,
        blood_types=get_compatible_donors(emergency_request.abo_type, emergency_request.rh),
        exclude_user_id=emergency_request.requester_id,
    )

    ranked = rank(emergency_request, donor_pool, max_matches=max_matches)
    if not ranked:
        logger.info(f"No eligible donors found for request {emergency_request.pk}")
        return []

    matches = lifecycle.create_matches(emergency_request, ranked)
    if matches:
        transaction.on_commit(lambda: _dispatch_notifications(emergency_request.pk))
    return matches


def _dispatch_notifications(request_id):
    from emergencies.tasks import notify_matched_donors
    notify_matched_donors.delay(request_id)


def share_payload(emergency_request):
    """
    Shareable message for an emergency request
    """
    share_url = f"{settings.SITE_URL}/requests/{emergency_request.pk}"
    patient = emergency_request.patient_name or 'A patient'
    place = emergency_request.hospital or 'a nearby hospital'

    message = (
        f"Urgent blood needed! {patient} requires {emergency_request.blood_type} blood at {place}. "
        f"Your help can save a life. Please share or donate if you can."
    )

    return {
        'title': f"Blood Request: {emergency_request.blood_type} Needed",
        'message': message,
        'url': share_url,
    }
