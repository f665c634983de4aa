# donors/serializers.py
from rest_framework import serializers
from .models import DonorProfile, DonationHistory


class DonationHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = DonationHistory
        fields = ['id', 'emergency_request', 'date_donated', 'units_donated', 'notes']


class DonorSerializer(serializers.ModelSerializer):
    """The caller's own profile; stats are maintained by the lifecycle"""
    email = serializers.SerializerMethodField()
    blood_type = serializers.CharField(read_only=True)
    donation_history = DonationHistorySerializer(many=True, read_only=True)

    class Meta:
        model = DonorProfile
        fields = [
            'id', 'full_name', 'email', 'phone', 'abo_type', 'rh', 'blood_type',
            'availability', 'availability_reason', 'latitude', 'longitude',
            'donation_count', 'response_rate', 'avg_response_minutes', 'last_donation_date',
            'consent_share_contact', 'notifications_enabled', 'created_at', 'updated_at',
            'donation_history',
        ]
        read_only_fields = [
            'id', 'full_name', 'abo_type', 'rh', 'donation_count', 'response_rate',
            'avg_response_minutes', 'last_donation_date', 'created_at', 'updated_at',
        ]

    def get_email(self, obj):
        return obj.user.email if obj.user else None

    def validate(self, attrs):
        latitude = attrs.get('latitude', getattr(self.instance, 'latitude', None))
        longitude = attrs.get('longitude', getattr(self.instance, 'longitude', None))
        if (latitude is None) != (longitude is None):
            raise serializers.ValidationError('Latitude and longitude are required together.')
        if latitude is not None and not -90 <= latitude <= 90:
            raise serializers.ValidationError({'latitude': 'Must be between -90 and 90.'})
        if longitude is not None and not -180 <= longitude <= 180:
            raise serializers.ValidationError({'longitude': 'Must be between -180 and 180.'})
        return attrs


class DonorSummarySerializer(serializers.ModelSerializer):
    """What a requester sees about a matched donor"""
    blood_type = serializers.CharField(read_only=True)
    phone = serializers.SerializerMethodField()

    class Meta:
        model = DonorProfile
        fields = ['id', 'full_name', 'blood_type', 'phone']

    def get_phone(self, obj):
        return obj.phone if obj.consent_share_contact else None
