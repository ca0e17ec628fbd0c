from django.contrib import admin
from .models import UserProfile

@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'display_name', 'notifications_enabled', 'measurement_unit', 'theme', 'gate_auto_control')
    search_fields = ('user__username', 'display_name')
    list_filter = ('theme', 'measurement_unit', 'gate_auto_control')
    readonly_fields = ('user',)
