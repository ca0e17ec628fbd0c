from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django.shortcuts import render, redirect, get_object_or_404
from django.views.decorators.http import require_POST

from devices.repository import DeviceRepository
from .charts import render_history_svg
from .export import generate_device_csv, generate_chart_csv, device_filename, chart_filename
from .models import Alert


def csv_response(content, filename):
    response = HttpResponse(content, content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def chart_history(user):
    repository = DeviceRepository()
    devices = repository.get_devices(user.id)
    return repository.get_chart_data(devices[0].id) if devices else []


@login_required
def alerts_view(request):
    alerts = Alert.objects.filter(user=request.user).select_related('device')
    return render(request, 'reports/alerts.html', {'alerts_list': alerts})


@login_required
@require_POST
def mark_alert_read_view(request, alert_id):
    alert = get_object_or_404(Alert, id=alert_id, user=request.user)
    alert.read = True
    alert.save(update_fields=['read'])
    return redirect('alerts')


@login_required
@require_POST
def mark_all_read_view(request):
    count = Alert.objects.filter(user=request.user, read=False).update(read=True)
    messages.success(request, f"{count} alerts marked as read.")
    return redirect('alerts')


@login_required
def export_devices_view(request):
    devices = DeviceRepository().get_devices(request.user.id)
    return csv_response(generate_device_csv(devices), device_filename())


@login_required
def export_chart_view(request):
    return csv_response(generate_chart_csv(chart_history(request.user)), chart_filename())


@login_required
def chart_svg_view(request):
    return HttpResponse(render_history_svg(chart_history(request.user)), content_type='image/svg+xml')
