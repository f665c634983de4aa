# emergencies/tasks.py
"""
Celery tasks for donor notifications and request expiry
"""
import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from emergencies import lifecycle
from emergencies.models import EmergencyRequest, RequestMatch

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_requests():
    """
    Periodic sweep (celery beat) moving OPEN requests past expiry to EXPIRED
    """
    expired = lifecycle.expire_stale()
    return f"{expired} requests expired"


@shared_task
def notify_matched_donors(request_id):
    """
    Send the request to every NOTIFIED donor who accepts notifications.
    """
    try:
        emergency_request = EmergencyRequest.objects.get(pk=request_id)
    except EmergencyRequest.DoesNotExist:
        logger.warning(f"Emergency request {request_id} vanished before notification")
        return 0

    if emergency_request.status != EmergencyRequest.OPEN:
        logger.info(f"Request {request_id} is {emergency_request.status}, skipping notifications")
        return 0

    matches = emergency_request.matches.filter(
        status=RequestMatch.NOTIFIED,
        donor__notifications_enabled=True,
    ).select_related('donor', 'donor__user')

    sent = 0
    for match in matches:
        try:
            if send_donor_email(match):
                sent += 1
        except Exception as e:
            logger.error(f"Email to donor {match.donor_id} for request {request_id} failed: {e}")

    logger.info(f"Notified {sent} donors for request {request_id}")
    return sent


@shared_task
def notify_requester_of_acceptance(match_id):
    """
    Tell the requester a donor accepted. Contact details are
    included only when the donor consented to share them.
    """
    match = RequestMatch.objects.select_related(
        'donor', 'emergency_request', 'emergency_request__requester'
    ).get(pk=match_id)
    donor = match.donor
    emergency_request = match.emergency_request

    contact = donor.phone if donor.consent_share_contact and donor.phone else 'shared through the platform'
    distance = f"{match.distance_km:.2f}km away" if match.distance_km is not None else 'distance unknown'

    message = f"""
GOOD NEWS! A donor has accepted your blood request.

Request ID: {emergency_request.pk}
Blood Type Needed: {emergency_request.blood_type}

DONOR DETAILS:
Name: {donor.full_name}
Blood Type: {donor.blood_type}
Distance: {distance}
Contact: {contact}

Track the donor: {settings.SITE_URL}/requests/{emergency_request.pk}
    """.strip()

    recipient = emergency_request.requester.email
    if not recipient:
        return False

    send_mail(
        subject=f"Donor Accepted: Blood Request #{emergency_request.pk}",
        message=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
        fail_silently=False,
    )
    logger.info(f"Requester of request {emergency_request.pk} told about donor {donor.pk}")
    return True


def send_donor_email(match):
    """Send the emergency request to one notified donor"""
    donor = match.donor
    emergency_request = match.emergency_request

    if not donor.user.email:
        return False

    distance = f"{match.distance_km:.2f}km from you" if match.distance_km is not None else 'near you'
    message = f"""
URGENT BLOOD NEEDED - {emergency_request.urgency}

Blood Type: {emergency_request.blood_type}
Units: {emergency_request.units_needed}
Hospital: {emergency_request.hospital or 'See request details'}
Distance: {distance}

The first donor to accept is matched with this request.
Respond here: {settings.SITE_URL}/requests/{emergency_request.pk}

You are Priority #{match.rank}
Thank you for being a lifesaver!
    """.strip()

    send_mail(
        subject=f"URGENT: {emergency_request.blood_type} blood needed",
        message=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[donor.user.email],
        fail_silently=False,
    )
    logger.info(f"Email sent to donor {donor.pk} for request {emergency_request.pk}")
    return True
