# api/views.py
import logging

from django.db import transaction
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from api.serializers import (
    AdvanceMatchSerializer,
    EmergencyRequestCreateSerializer,
    EmergencyRequestSerializer,
    RequestMatchSerializer,
    RequestStatsSerializer,
    ShareSerializer,
)
from donors.models import DonorProfile
from donors.serializers import DonorSerializer
from emergencies import lifecycle
from emergencies.models import EmergencyRequest, RequestMatch, RequestShare
from emergencies.utils import match_request, share_payload

logger = logging.getLogger(__name__)


def caller_donor(request):
    """The donor profile behind the authenticated caller"""
    donor = getattr(request.user, 'donor_profile', None)
    if donor is None:
        raise PermissionDenied('A donor profile is required for this action.')
    return donor


class EmergencyRequestViewSet(mixins.CreateModelMixin,
                              mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              viewsets.GenericViewSet):
    """
    Emergency requests and the donor responses to them.

    Lifecycle actions go straight to emergencies.lifecycle, which raises
    404/409 errors of its own.
    """
    queryset = EmergencyRequest.objects.select_related('requester').order_by('-created_at')
    serializer_class = EmergencyRequestSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r'\d+'

    def get_serializer_class(self):
        if self.action == 'create':
            return EmergencyRequestCreateSerializer
        return super().get_serializer_class()

    def get_queryset(self):
        if self.action in ('list', 'retrieve', 'matches', 'share'):
            # Expiry is applied lazily before every read
            lifecycle.expire_stale()

        queryset = super().get_queryset()
        if self.action == 'list':
            status_filter = self.request.query_params.get('status', EmergencyRequest.OPEN)
            if status_filter != 'all':
                queryset = queryset.filter(status=status_filter.upper())
            if self.request.query_params.get('mine') in ('1', 'true'):
                queryset = queryset.filter(requester=self.request.user)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            emergency_request = serializer.save(requester=request.user)
            matches = match_request(emergency_request)

        logger.info(f"Request {emergency_request.pk} created by user {request.user.pk} with {len(matches)} matches")
        output = EmergencyRequestSerializer(emergency_request, context=self.get_serializer_context())
        return Response(output.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def accept(self, request, pk=None):
        """Donor commits to the request; 409 if someone else got there first"""
        match = lifecycle.accept(int(pk), caller_donor(request).pk)
        return Response(RequestMatchSerializer(match).data)

    @action(detail=True, methods=['post'])
    def decline(self, request, pk=None):
        match = lifecycle.decline(int(pk), caller_donor(request).pk)
        return Response(RequestMatchSerializer(match).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        emergency_request = lifecycle.cancel(int(pk), request.user.pk)
        return Response(EmergencyRequestSerializer(emergency_request, context=self.get_serializer_context()).data)

    @action(detail=True, methods=['get'])
    def matches(self, request, pk=None):
        """Ranked matches, visible to the requester and hospital staff"""
        emergency_request = self.get_object()
        if emergency_request.requester_id != request.user.pk and not request.user.is_confirmer:
            raise PermissionDenied('Only the requester can see the matched donors.')
        matches = emergency_request.matches.select_related('donor', 'emergency_request')
        return Response(RequestMatchSerializer(matches, many=True).data)

    @action(detail=True, methods=['get', 'post'], serializer_class=ShareSerializer)
    def share(self, request, pk=None):
        """GET a shareable message, POST to record a share"""
        emergency_request = self.get_object()
        if request.method == 'GET':
            return Response(share_payload(emergency_request))

        serializer = ShareSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        RequestShare.objects.create(
            emergency_request=emergency_request,
            shared_by=request.user,
            platform=serializer.validated_data['platform'],
        )
        return Response({'message': 'Share tracked successfully'}, status=status.HTTP_201_CREATED)


class RequestMatchViewSet(viewsets.ReadOnlyModelViewSet):
    """The caller's own matches as a donor"""
    serializer_class = RequestMatchSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = RequestMatch.objects.select_related('donor', 'emergency_request').order_by('-created_at')
        return queryset.filter(donor__user=self.request.user)

    @action(detail=True, methods=['post'], serializer_class=AdvanceMatchSerializer)
    def advance(self, request, pk=None):
        serializer = AdvanceMatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        match = lifecycle.advance(int(pk), serializer.validated_data['status'], caller_donor(request).pk)
        return Response(RequestMatchSerializer(match).data)

    @action(detail=True, methods=['post'])
    def fulfill(self, request, pk=None):
        """Requester or staff confirms the donation of an arrived donor"""
        emergency_request = lifecycle.fulfill(int(pk), request.user)
        return Response(EmergencyRequestSerializer(emergency_request, context={'request': request}).data)


class DonorViewSet(viewsets.ReadOnlyModelViewSet):
    """Donor directory for admins, plus /donors/me/ for every donor"""
    queryset = DonorProfile.objects.select_related('user').order_by('-created_at')
    serializer_class = DonorSerializer
    permission_classes = [IsAuthenticated, IsAdminUser]

    def get_permissions(self):
        if self.action == 'me':
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_queryset(self):
        queryset = super().get_queryset()
        blood_type = self.request.query_params.get('blood_type')
        if blood_type and blood_type != 'all':
            queryset = queryset.filter(abo_type=blood_type[:-1], rh=blood_type[-1:])
        availability = self.request.query_params.get('availability')
        if availability:
            queryset = queryset.filter(availability=availability.upper())
        return queryset

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        """Read or update the caller's location, availability and consent"""
        donor = caller_donor(request)
        if request.method == 'GET':
            return Response(DonorSerializer(donor).data)

        serializer = DonorSerializer(donor, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Donor {donor.pk} updated their profile: {sorted(serializer.validated_data)}")
        return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def request_stats(request):
    """Get emergency request statistics"""
    lifecycle.expire_stale()

    requests = EmergencyRequest.objects.all()
    total = requests.count()
    fulfilled = requests.filter(status=EmergencyRequest.FULFILLED).count()

    serializer = RequestStatsSerializer({
        'total': total,
        'open': requests.filter(status=EmergencyRequest.OPEN).count(),
        'matched': requests.filter(status=EmergencyRequest.MATCHED).count(),
        'fulfilled': fulfilled,
        'completion_rate': round(fulfilled / total * 100, 2) if total else 0.0,
    })
    return Response(serializer.data)
