from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator


# ---------------------------
# Donor Profile
# ---------------------------
class DonorProfile(models.Model):
    ABO_TYPE_CHOICES = [
        ('A', 'A'), ('B', 'B'),
        ('AB', 'AB'), ('O', 'O'),
    ]
    RH_CHOICES = [
        ('+', 'Positive'),
        ('-', 'Negative'),
    ]

    AVAILABLE = 'AVAILABLE'
    UNAVAILABLE = 'UNAVAILABLE'
    AVAILABILITY_CHOICES = [
        (AVAILABLE, 'Available'),
        (UNAVAILABLE, 'Unavailable'),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='donor_profile'
    )

    full_name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    abo_type = models.CharField(max_length=2, choices=ABO_TYPE_CHOICES)
    rh = models.CharField(max_length=1, choices=RH_CHOICES)

    availability = models.CharField(
        max_length=12,
        choices=AVAILABILITY_CHOICES,
        default=AVAILABLE,
        db_index=True
    )
    availability_reason = models.CharField(max_length=200, blank=True)

    # Last known location (optional)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    # Historical stats, null until known
    donation_count = models.PositiveIntegerField(null=True, blank=True)
    response_rate = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(0.0), MaxValueValidator(1.0)]
    )
    avg_response_minutes = models.FloatField(null=True, blank=True)
    last_donation_date = models.DateField(null=True, blank=True)

    # Consent and notification preferences
    consent_share_contact = models.BooleanField(default=True)
    notifications_enabled = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def blood_type(self) -> str:
        return f"{self.abo_type}{self.rh}"

    @property
    def is_available(self) -> bool:
        return self.availability == self.AVAILABLE

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __str__(self):
        return f"{self.full_name} ({self.blood_type})"

    class Meta:
        verbose_name = "Donor Profile"
        verbose_name_plural = "Donor Profiles"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['availability', 'latitude', 'longitude'], name='donor_avail_location_idx'),
        ]


class DonationHistory(models.Model):
    donor = models.ForeignKey(
        DonorProfile,
        on_delete=models.CASCADE,
        related_name='donation_history'
    )
    emergency_request = models.ForeignKey(
        'emergencies.EmergencyRequest',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='donations'
    )

    date_donated = models.DateField()
    units_donated = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.donor.full_name} | {self.date_donated}"

    class Meta:
        ordering = ['-date_donated']
        verbose_name = "Donation History"
        verbose_name_plural = "Donation Histories"
