# emergencies/models.py
from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


def default_expiry():
    return timezone.now() + timedelta(hours=settings.DONORMATCH_REQUEST_TTL_HOURS)


def default_radius():
    return settings.DONORMATCH_DEFAULT_RADIUS_KM


class EmergencyRequest(models.Model):
    ABO_TYPE_CHOICES = [
        ('A', 'A'), ('B', 'B'),
        ('AB', 'AB'), ('O', 'O'),
    ]
    RH_CHOICES = [
        ('+', 'Positive'),
        ('-', 'Negative'),
    ]
    URGENCY_CHOICES = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
        ('CRITICAL', 'Critical - Life Threatening'),
    ]

    OPEN = 'OPEN'
    MATCHED = 'MATCHED'
    FULFILLED = 'FULFILLED'
    CANCELED = 'CANCELED'
    EXPIRED = 'EXPIRED'
    STATUS_CHOICES = [
        (OPEN, 'Open'),
        (MATCHED, 'Matched'),
        (FULFILLED, 'Fulfilled'),
        (CANCELED, 'Canceled'),
        (EXPIRED, 'Expired'),
    ]
    TERMINAL_STATUSES = (FULFILLED, CANCELED, EXPIRED)

    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='emergency_requests'
    )
    abo_type = models.CharField(max_length=2, choices=ABO_TYPE_CHOICES)
    rh = models.CharField(max_length=1, choices=RH_CHOICES)
    urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES, default='MEDIUM')
    units_needed = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    latitude = models.FloatField(validators=[MinValueValidator(-90), MaxValueValidator(90)])
    longitude = models.FloatField(validators=[MinValueValidator(-180), MaxValueValidator(180)])
    radius_km = models.FloatField(default=default_radius, validators=[MinValueValidator(0)])

    patient_name = models.CharField(max_length=200, blank=True)
    patient_age = models.PositiveIntegerField(null=True, blank=True)
    hospital = models.CharField(max_length=200, blank=True)
    contact = models.CharField(max_length=50, blank=True)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=OPEN, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    expires_at = models.DateTimeField(default=default_expiry, db_index=True)
    matched_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    @property
    def blood_type(self):
        return f"{self.abo_type}{self.rh}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def hours_waiting(self):
        """Calculate how many hours this request has been waiting"""
        delta = timezone.now() - self.created_at
        return delta.total_seconds() / 3600

    def __str__(self):
        return f"#{self.pk} {self.blood_type} ({self.urgency}, {self.status})"

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Emergency Request'
        verbose_name_plural = 'Emergency Requests'
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='request_status_expiry_idx'),
        ]


class RequestMatch(models.Model):
    """One donor's notified/responded relationship to one request"""
    NOTIFIED = 'NOTIFIED'
    ACCEPTED = 'ACCEPTED'
    DECLINED = 'DECLINED'
    EN_ROUTE = 'EN_ROUTE'
    ARRIVED = 'ARRIVED'
    STATUS_CHOICES = [
        (NOTIFIED, 'Notified'),
        (ACCEPTED, 'Accepted'),
        (DECLINED, 'Declined'),
        (EN_ROUTE, 'En Route'),
        (ARRIVED, 'Arrived'),
    ]
    COMMITTED_STATUSES = (ACCEPTED, EN_ROUTE, ARRIVED)
    RESPONDED_STATUSES = (ACCEPTED, DECLINED, EN_ROUTE, ARRIVED)

    emergency_request = models.ForeignKey(
        EmergencyRequest,
        on_delete=models.CASCADE,
        related_name='matches'
    )
    donor = models.ForeignKey(
        'donors.DonorProfile',
        on_delete=models.CASCADE,
        related_name='matches'
    )

    # Snapshot taken when the match was created
    distance_km = models.FloatField(null=True, blank=True)
    score = models.FloatField(null=True, blank=True)
    rank = models.PositiveIntegerField(null=True, blank=True)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=NOTIFIED)
    notified_at = models.DateTimeField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Match → {self.donor_id} | Request #{self.emergency_request_id} ({self.status})"

    @property
    def response_time_minutes(self):
        if self.notified_at and self.responded_at:
            delta = self.responded_at - self.notified_at
            return round(delta.total_seconds() / 60, 2)
        return None

    class Meta:
        ordering = ['rank', 'created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['emergency_request', 'donor'],
                name='unique_match_per_request_donor',
            ),
            models.UniqueConstraint(
                fields=['emergency_request'],
                condition=Q(status__in=['ACCEPTED', 'EN_ROUTE', 'ARRIVED']),
                name='single_committed_match_per_request',
            ),
        ]
        indexes = [
            models.Index(fields=['emergency_request', 'status'], name='match_request_status_idx'),
            models.Index(fields=['donor', 'status'], name='match_donor_status_idx'),
        ]


class RequestShare(models.Model):
    """Tracks a share action for a request (anonymous shares allowed)"""
    emergency_request = models.ForeignKey(
        EmergencyRequest,
        on_delete=models.CASCADE,
        related_name='shares'
    )
    shared_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True
    )
    platform = models.CharField(max_length=50, blank=True)
    shared_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Request #{self.emergency_request_id} shared via {self.platform or 'unknown'}"

    class Meta:
        ordering = ['-shared_at']
