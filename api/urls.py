# api/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'requests', views.EmergencyRequestViewSet, basename='request')
router.register(r'matches', views.RequestMatchViewSet, basename='match')
router.register(r'donors', views.DonorViewSet, basename='donor')

app_name = 'api'

urlpatterns = [
    path('', include(router.urls)),
    path('stats/', views.request_stats, name='request-stats'),
]

# POST /api/requests/                        - Create a request and match donors
# GET  /api/requests/                        - Open requests (?status=all, ?mine=1)
# GET  /api/requests/{id}/                   - Request detail
# GET  /api/requests/{id}/matches/           - Ranked matches (requester/staff)
# POST /api/requests/{id}/accept/            - Donor accepts
# POST /api/requests/{id}/decline/           - Donor declines
# POST /api/requests/{id}/cancel/            - Requester cancels
# GET  /api/requests/{id}/share/             - Shareable message
# POST /api/requests/{id}/share/             - Track a share
#
# GET  /api/matches/                         - Caller's matches as a donor
# POST /api/matches/{id}/advance/            - EN_ROUTE / ARRIVED
# POST /api/matches/{id}/fulfill/            - Confirm the donation
#
# GET  /api/donors/                          - Donor directory (admin)
# GET  /api/donors/me/, PATCH /api/donors/me/
# GET  /api/stats/                           - Request statistics
