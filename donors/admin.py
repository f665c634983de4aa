from django.contrib import admin
from .models import DonorProfile, DonationHistory


@admin.register(DonorProfile)
class DonorProfileAdmin(admin.ModelAdmin):
    list_display   = ['full_name', 'blood_type', 'availability', 'donation_count', 'response_rate', 'has_location']
    list_filter    = ['abo_type', 'rh', 'availability']
    search_fields  = ['full_name', 'user__username', 'phone']
    ordering       = ['full_name']
    readonly_fields = ['donation_count', 'response_rate', 'avg_response_minutes', 'last_donation_date',
                       'created_at', 'updated_at']

    fieldsets = (
        ('Personal Info', {
            'fields': ('user', 'full_name', 'phone', 'abo_type', 'rh')
        }),
        ('Availability', {
            'fields': ('availability', 'availability_reason', 'latitude', 'longitude')
        }),
        ('Donation Stats', {
            'fields': ('donation_count', 'response_rate', 'avg_response_minutes', 'last_donation_date')
        }),
        ('Consent', {
            'fields': ('consent_share_contact', 'notifications_enabled'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(boolean=True, description='Located')
    def has_location(self, obj):
        return obj.has_location

    actions = ['mark_unavailable']

    @admin.action(description='Mark selected donors as unavailable')
    def mark_unavailable(self, request, queryset):
        updated = queryset.update(availability=DonorProfile.UNAVAILABLE)
        self.message_user(request, f'{updated} donor(s) marked unavailable.')


@admin.register(DonationHistory)
class DonationHistoryAdmin(admin.ModelAdmin):
    list_display  = ['donor', 'emergency_request', 'date_donated', 'units_donated']
    list_filter   = ['date_donated']
    search_fields = ['donor__full_name']
    ordering      = ['-date_donated']
    readonly_fields = ['created_at']
