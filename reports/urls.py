from django.urls import path

from . import views

urlpatterns = [
    path('alerts/', views.alerts_view, name='alerts'),
    path('alerts/<int:alert_id>/read/', views.mark_alert_read_view, name='mark_alert_read'),
    path('alerts/read-all/', views.mark_all_read_view, name='mark_all_read'),
    path('export/devices.csv', views.export_devices_view, name='export_devices'),
    path('export/chart.csv', views.export_chart_view, name='export_chart'),
    path('chart.svg', views.chart_svg_view, name='chart_svg'),
]
