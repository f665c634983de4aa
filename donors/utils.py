import logging
from django.db import DatabaseError
from django.db.models import Count, F, Q
from django.db.models.functions import Coalesce
from django.utils import timezone

from algorithms.haversine import bounding_box
from donors.models import DonorProfile, DonationHistory
from emergencies.exceptions import UpstreamError

# Logger setup
logger = logging.getLogger(__name__)


def query_donors_near(lat, lng, radius_km, blood_types=None, exclude_user_id=None):
    """
    Load the available donors inside a bounding box around a point.

    The box is approximate: callers must re-check the exact distance.
    blood_types narrows the pool to labels such as ['O-', 'O+'].

    Raises:
        UpstreamError: the database could not be queried
    """
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_km)

    donors = DonorProfile.objects.filter(
        availability=DonorProfile.AVAILABLE,
        latitude__gte=min_lat,
        latitude__lte=max_lat,
        longitude__gte=min_lng,
        longitude__lte=max_lng,
    )
    if blood_types is not None:
        by_type = Q(pk__in=[])
        for label in blood_types:
            by_type |= Q(abo_type=label[:-1], rh=label[-1])
        donors = donors.filter(by_type)
    if exclude_user_id is not None:
        donors = donors.exclude(user_id=exclude_user_id)

    try:
        pool = list(donors.order_by('pk'))
    except DatabaseError as exc:
        logger.error(f"Donor pool query failed near ({lat}, {lng}): {exc}")
        raise UpstreamError() from exc

    logger.info(f"{len(pool)} donors in bounding box of {radius_km}km around ({lat}, {lng})")
    return pool


def refresh_response_stats(donor):
    """
    Recompute a donor's response rate and average response time
    from all of their matches.
    """
    from emergencies.models import RequestMatch

    matches = RequestMatch.objects.filter(donor=donor)
    responded = matches.filter(responded_at__isnull=False)

    totals = matches.aggregate(
        total=Count('pk'),
        responded=Count('pk', filter=Q(responded_at__isnull=False)),
    )
    if not totals['total']:
        return donor

    delays = [
        (responded_at - notified_at).total_seconds() / 60
        for notified_at, responded_at in responded.filter(
            notified_at__isnull=False
        ).values_list('notified_at', 'responded_at')
    ]

    donor.response_rate = round(totals['responded'] / totals['total'], 4)
    donor.avg_response_minutes = round(sum(delays) / len(delays), 2) if delays else None
    donor.save(update_fields=['response_rate', 'avg_response_minutes', 'updated_at'])

    logger.debug(f"Donor {donor.pk} response rate now {donor.response_rate}")
    return donor


def credit_donation(donor, emergency_request, units=1):
    """
    Record a completed donation against the donor's stats.
    """
    today = timezone.localdate()

    DonorProfile.objects.filter(pk=donor.pk).update(
        donation_count=Coalesce(F('donation_count'), 0) + 1,
        last_donation_date=today,
        updated_at=timezone.now(),
    )
    history = DonationHistory.objects.create(
        donor=donor,
        emergency_request=emergency_request,
        date_donated=today,
        units_donated=units,
    )
    donor.refresh_from_db(fields=['donation_count', 'last_donation_date'])

    logger.info(f"Donor {donor.pk} credited for request {emergency_request.pk} (total {donor.donation_count})")
    return history
