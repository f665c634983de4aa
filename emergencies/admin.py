from django.contrib import admin

from emergencies import lifecycle
from .models import EmergencyRequest, RequestMatch, RequestShare


class RequestMatchInline(admin.TabularInline):
    model = RequestMatch
    extra = 0
    fields = ['rank', 'donor', 'status', 'distance_km', 'score', 'notified_at', 'responded_at']
    readonly_fields = fields
    can_delete = False


@admin.register(EmergencyRequest)
class EmergencyRequestAdmin(admin.ModelAdmin):
    list_display  = ['id', 'blood_type', 'urgency', 'status', 'units_needed', 'hospital', 'created_at', 'expires_at']
    list_filter   = ['status', 'urgency', 'abo_type', 'rh']
    search_fields = ['patient_name', 'hospital', 'requester__username']
    ordering      = ['-created_at']
    # Status only moves through the lifecycle functions
    readonly_fields = ['status', 'created_at', 'updated_at', 'matched_at', 'closed_at']
    inlines = [RequestMatchInline]

    actions = ['expire_stale_requests']

    @admin.action(description='Expire every stale OPEN request now')
    def expire_stale_requests(self, request, queryset):
        expired = lifecycle.expire_stale()
        self.message_user(request, f'{expired} request(s) expired.')


@admin.register(RequestMatch)
class RequestMatchAdmin(admin.ModelAdmin):
    list_display  = ['emergency_request', 'donor', 'status', 'rank', 'score', 'distance_km', 'responded_at']
    list_filter   = ['status']
    search_fields = ['donor__full_name']
    readonly_fields = ['status', 'distance_km', 'score', 'rank', 'notified_at', 'responded_at',
                       'created_at', 'updated_at']


@admin.register(RequestShare)
class RequestShareAdmin(admin.ModelAdmin):
    list_display = ['emergency_request', 'platform', 'shared_by', 'shared_at']
    list_filter  = ['platform']
