from django.contrib import admin
from .models import Alert

@admin.register(Alert)
class AlertAdmin(admin.ModelAdmin):
    list_display = ('user', 'device', 'kind', 'timestamp', 'read')
    list_filter = ('kind', 'read', 'timestamp')
    search_fields = ('user__username', 'device__name', 'message')
    list_editable = ('read',)
