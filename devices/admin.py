from django.contrib import admin
from .models import Device, NutrientReading, ThresholdSetting

@admin.register(Device)
class DeviceAdmin(admin.ModelAdmin):
    list_display = ('name', 'user', 'status', 'group_name', 'nitrogen_gate', 'nitrogen', 'phosphorus', 'potassium')
    list_filter = ('status', 'group_name', 'nitrogen_gate')
    search_fields = ('name', 'user__username')

@admin.register(NutrientReading)
class NutrientReadingAdmin(admin.ModelAdmin):
    list_display = ('device', 'nitrogen', 'phosphorus', 'potassium', 'timestamp')
    list_filter = ('device', 'timestamp')
    date_hierarchy = 'timestamp'

@admin.register(ThresholdSetting)
class ThresholdSettingAdmin(admin.ModelAdmin):
    list_display = ('user', 'device', 'nitrogen_min', 'nitrogen_max', 'phosphorus_min', 'phosphorus_max', 'potassium_min', 'potassium_max')
    search_fields = ('user__username', 'device__name')
    raw_id_fields = ('user', 'device')
