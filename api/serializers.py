# api/serializers.py

from rest_framework import serializers

from donors.serializers import DonorSummarySerializer
from emergencies.models import EmergencyRequest, RequestMatch


class UppercaseChoiceField(serializers.ChoiceField):
    """Accepts 'critical' as well as 'CRITICAL'"""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.strip().upper()
        return super().to_internal_value(data)


class RequestMatchSerializer(serializers.ModelSerializer):
    """
    Serializer for RequestMatch with the donor summary and request status
    """
    donor = DonorSummarySerializer(read_only=True)
    request_status = serializers.CharField(source='emergency_request.status', read_only=True)
    response_time_minutes = serializers.FloatField(read_only=True)

    class Meta:
        model = RequestMatch
        fields = [
            'id',
            'emergency_request',
            'request_status',
            'donor',
            'status',
            'rank',
            'distance_km',
            'score',
            'notified_at',
            'responded_at',
            'response_time_minutes',
            'updated_at',
        ]
        read_only_fields = fields


class EmergencyRequestSerializer(serializers.ModelSerializer):
    """
    Read serializer; matches are only shown to the requester and staff
    """
    blood_type = serializers.CharField(read_only=True)
    matches = serializers.SerializerMethodField()
    is_terminal = serializers.BooleanField(read_only=True)
    hours_waiting = serializers.SerializerMethodField()

    class Meta:
        model = EmergencyRequest
        fields = [
            'id',
            'requester',
            'blood_type',
            'abo_type',
            'rh',
            'urgency',
            'units_needed',
            'latitude',
            'longitude',
            'radius_km',
            'patient_name',
            'patient_age',
            'hospital',
            'contact',
            'status',
            'created_at',
            'expires_at',
            'matched_at',
            'closed_at',
            'is_terminal',
            'hours_waiting',
            'matches',
        ]
        read_only_fields = fields

    def get_hours_waiting(self, obj):
        return round(obj.hours_waiting, 2)

    def get_matches(self, obj):
        request = self.context.get('request')
        user = getattr(request, 'user', None)
        if user is None or (obj.requester_id != user.pk and not getattr(user, 'is_confirmer', False)):
            return None
        return RequestMatchSerializer(obj.matches.select_related('donor'), many=True).data


class EmergencyRequestCreateSerializer(serializers.ModelSerializer):
    """
    Validates a new request: blood_type (ABO), rh, urgency, latitude and
    longitude are required. The requester comes from the caller identity.
    """
    blood_type = UppercaseChoiceField(source='abo_type', choices=EmergencyRequest.ABO_TYPE_CHOICES)
    rh = serializers.ChoiceField(choices=EmergencyRequest.RH_CHOICES)
    urgency = UppercaseChoiceField(choices=EmergencyRequest.URGENCY_CHOICES)
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    radius_km = serializers.FloatField(min_value=0.1, max_value=500, required=False)

    class Meta:
        model = EmergencyRequest
        fields = [
            'blood_type',
            'rh',
            'urgency',
            'units_needed',
            'latitude',
            'longitude',
            'radius_km',
            'patient_name',
            'patient_age',
            'hospital',
            'contact',
        ]


class AdvanceMatchSerializer(serializers.Serializer):
    status = UppercaseChoiceField(choices=RequestMatch.STATUS_CHOICES)


class ShareSerializer(serializers.Serializer):
    platform = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class RequestStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    open = serializers.IntegerField()
    matched = serializers.IntegerField()
    fulfilled = serializers.IntegerField()
    completion_rate = serializers.FloatField()
