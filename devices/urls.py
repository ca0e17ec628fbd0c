from django.urls import path

from . import views

urlpatterns = [
    path('dashboard/', views.dashboard_view, name='dashboard'),
    path('devices/', views.devices_view, name='devices'),
    path('devices/pair/', views.pair_device_view, name='pair_device'),
    path('devices/gate-mode/', views.gate_mode_view, name='gate_mode'),
    path('devices/<uuid:device_id>/delete/', views.delete_device_view, name='delete_device'),
    path('devices/<uuid:device_id>/group/', views.change_group_view, name='change_group'),
    path('devices/<uuid:device_id>/gate/', views.toggle_gate_view, name='toggle_gate'),
    path('devices/<uuid:device_id>/thresholds/', views.device_thresholds_view, name='device_thresholds'),

    path('api/devices/', views.api_devices, name='api_devices'),
    path('api/chart-data/', views.api_chart_data, name='api_chart_data'),
    path('api/thresholds/', views.api_thresholds, name='api_thresholds'),
    path('api/tick/', views.api_tick, name='api_tick'),
]
