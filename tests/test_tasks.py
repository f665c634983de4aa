from datetime import timedelta
from smtplib import SMTPException
from unittest import mock

import pytest
from django.core.mail import send_mail
from django.utils import timezone

from algorithms.ranking import rank
from emergencies import lifecycle
from emergencies.models import EmergencyRequest
from emergencies.tasks import expire_stale_requests, notify_matched_donors, notify_requester_of_acceptance

pytestmark = pytest.mark.django_db


def test_notify_matched_donors(make_request, make_donor, mailoutbox):
    req = make_request(urgency='CRITICAL')
    first, second = make_donor(km=1), make_donor(km=2)
    make_donor(km=3, notifications_enabled=False)
    lifecycle.create_matches(req, rank(req, [first, second]))

    assert notify_matched_donors(req.pk) == 2
    assert sorted(mail.to[0] for mail in mailoutbox) == sorted([first.user.email, second.user.email])
    assert 'CRITICAL' in mailoutbox[0].body


def test_notify_skips_closed_requests(make_request, make_donor, mailoutbox):
    req = make_request()
    lifecycle.create_matches(req, rank(req, [make_donor()]))
    EmergencyRequest.objects.filter(pk=req.pk).update(status=EmergencyRequest.CANCELED)

    assert notify_matched_donors(req.pk) == 0
    assert notify_matched_donors(req.pk + 100) == 0
    assert mailoutbox == []


def test_requester_hears_about_acceptance(make_request, make_donor, requester, mailoutbox):
    req = make_request()
    donor = make_donor(phone='9841000000', full_name='Asha Gurung')
    match = lifecycle.accept(req.pk, donor.pk)

    assert notify_requester_of_acceptance(match.pk) is True
    assert mailoutbox[0].to == [requester.email]
    assert 'Asha Gurung' in mailoutbox[0].body
    assert '9841000000' in mailoutbox[0].body


def test_acceptance_mail_respects_contact_consent(make_request, make_donor, mailoutbox):
    req = make_request()
    donor = make_donor(phone='9841000000', consent_share_contact=False)
    match = lifecycle.accept(req.pk, donor.pk)

    notify_requester_of_acceptance(match.pk)

    assert '9841000000' not in mailoutbox[0].body


def test_acceptance_dispatched_on_commit(make_request, make_donor, mailoutbox,
                                         django_capture_on_commit_callbacks):
    req = make_request()
    with django_capture_on_commit_callbacks(execute=True):
        lifecycle.accept(req.pk, make_donor().pk)

    assert len(mailoutbox) == 1
    assert 'accepted' in mailoutbox[0].subject.lower()


def test_expiry_sweep_task(make_request):
    stale = make_request(expires_at=timezone.now() - timedelta(hours=2))

    assert expire_stale_requests() == '1 requests expired'
    stale.refresh_from_db()
    assert stale.status == EmergencyRequest.EXPIRED


def test_one_failed_email_does_not_stop_the_rest(make_request, make_donor, mailoutbox):
    req = make_request()
    donors = [make_donor(km=km) for km in (1, 2, 3)]
    lifecycle.create_matches(req, rank(req, donors))
    attempts = []

    def flaky_send_mail(*args, **kwargs):
        attempts.append(kwargs['recipient_list'])
        if len(attempts) == 1:
            raise SMTPException('relay refused')
        return send_mail(*args, **kwargs)

    with mock.patch('emergencies.tasks.send_mail', side_effect=flaky_send_mail):
        assert notify_matched_donors(req.pk) == 2

    assert len(attempts) == 3
    assert len(mailoutbox) == 2
