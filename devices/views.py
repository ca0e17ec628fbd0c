import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import JsonResponse, Http404
from django.shortcuts import render, redirect
from django.views.decorators.http import require_POST

from .exceptions import GateModeError, ThresholdError
from .forms import PairDeviceForm, DeviceGroupForm, GateModeForm, ThresholdForm, GROUP_CHOICES
from .models import Device, UNCATEGORIZED
from .services import NutrientService, filter_by_group, average_readings
from .simulation import DRIFT, POLICIES

logger = logging.getLogger(__name__)


def get_service():
    return NutrientService()


@login_required
def dashboard_view(request):
    """
    Averages and chart history of the user's devices, optionally
    restricted to one group (?group=all|Uncategorized|<group>).
    """
    service = get_service()
    selected_group = request.GET.get('group', 'all')

    devices = service.repository.get_devices(request.user.id)
    filtered = filter_by_group(devices, selected_group)
    chart_data = service.repository.get_chart_data(devices[0].id) if devices else []

    context = {
        'devices': filtered,
        'has_devices': bool(devices),
        'averages': average_readings(filtered),
        'chart_data': chart_data,
        'selected_group': selected_group,
        'group_choices': GROUP_CHOICES,
    }
    return render(request, 'devices/dashboard.html', context)


@login_required
def devices_view(request):
    service = get_service()
    devices = service.repository.get_devices(request.user.id)
    thresholds = service.repository.get_thresholds(
        request.user.id, devices[0].id if devices else None
    )

    context = {
        'devices': devices,
        'thresholds': thresholds,
        'gate_mode': service.repository.get_gate_mode(request.user.id),
        'pair_form': PairDeviceForm(),
        'group_choices': GROUP_CHOICES,
    }
    return render(request, 'devices/devices.html', context)


@login_required
@require_POST
def pair_device_view(request):
    form = PairDeviceForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Failed to pair device: a name is required.")
        return redirect('devices')

    try:
        get_service().pair_device(request.user, form.cleaned_data['name'])
    except DatabaseError:
        logger.exception("Pairing failed for user %s", request.user.id)
        messages.error(request, "Failed to pair device")
    else:
        messages.success(request, "Device paired successfully!")
    return redirect('devices')


@login_required
def delete_device_view(request, device_id):
    """
    Asks for confirmation before deleting a device.
    """
    device = Device.objects.filter(pk=device_id, user=request.user).first()
    if device is None:
        raise Http404("Device not found")

    if request.method == 'POST':
        try:
            get_service().delete_device(request.user, device_id)
        except (DatabaseError, Device.DoesNotExist):
            logger.exception("Deleting %s failed", device_id)
            messages.error(request, f"Failed to delete {device.name}. Please try again.")
        else:
            messages.success(request, f'Device "{device.name}" has been deleted')
        return redirect('devices')

    return render(request, 'devices/confirm_delete.html', {'device': device})


@login_required
@require_POST
def change_group_view(request, device_id):
    form = DeviceGroupForm(request.POST)
    group = request.POST.get('group', UNCATEGORIZED)
    if not form.is_valid():
        messages.error(request, f"Failed to move device to {group}. Please try again.")
        return redirect('devices')

    try:
        get_service().change_group(request.user, device_id, form.cleaned_data['group'])
    except Device.DoesNotExist:
        raise Http404("Device not found")
    except DatabaseError:
        logger.exception("Moving %s to %s failed", device_id, group)
        messages.error(request, f"Failed to move device to {group}. Please try again.")
    else:
        messages.success(request, f"Device moved to {group}")
    return redirect('devices')


@login_required
@require_POST
def gate_mode_view(request):
    form = GateModeForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Failed to update gate control mode")
        return redirect('devices')

    try:
        mode = get_service().set_gate_mode(request.user, form.cleaned_data['mode'])
    except DatabaseError:
        logger.exception("Gate mode update failed for user %s", request.user.id)
        messages.error(request, "Failed to update gate control mode")
    else:
        messages.success(request, f"Gate control set to {mode} mode")
    return redirect('devices')


@login_required
@require_POST
def toggle_gate_view(request, device_id):
    try:
        gate = get_service().toggle_gate(request.user, device_id)
    except GateModeError as e:
        messages.error(request, str(e))
    except Device.DoesNotExist:
        raise Http404("Device not found")
    except DatabaseError:
        logger.exception("Toggling gate of %s failed", device_id)
        messages.error(request, "Failed to toggle the gate. Please try again.")
    else:
        messages.success(request, f"Gate manually {gate}")
    return redirect('devices')


@login_required
def device_thresholds_view(request, device_id):
    """
    Thresholds of a single device. Saving creates a device row that
    overrides the user's global thresholds.
    """
    device = Device.objects.filter(pk=device_id, user=request.user).first()
    if device is None:
        raise Http404("Device not found")
    service = get_service()

    if request.method == 'POST':
        if 'reset' in request.POST:
            try:
                service.reset_thresholds(request.user, device_id)
            except (ThresholdError, DatabaseError) as e:
                logger.warning("Resetting thresholds of %s failed: %s", device_id, e)
                messages.error(request, "Failed to reset threshold settings")
            else:
                messages.success(request, "Threshold settings reset to defaults")
            return redirect('device_thresholds', device_id=device_id)

        form = ThresholdForm(request.POST)
        if form.is_valid():
            try:
                service.save_thresholds(request.user, form.to_thresholds(), device_id)
            except (ThresholdError, DatabaseError) as e:
                logger.warning("Saving thresholds of %s failed: %s", device_id, e)
                messages.error(request, "Failed to save threshold settings")
            else:
                messages.success(request, "Threshold settings saved")
                return redirect('device_thresholds', device_id=device_id)
    else:
        form = ThresholdForm(thresholds=service.repository.get_thresholds(request.user.id, device_id))

    return render(request, 'devices/thresholds.html', {'form': form, 'device': device})


# -- JSON ---------------------------------------------------------------------
# Anonymous requests get empty payloads instead of a redirect.

def api_devices(request):
    if not request.user.is_authenticated:
        return JsonResponse([], safe=False)
    devices = get_service().repository.get_devices(request.user.id)
    return JsonResponse([d.to_dict() for d in devices], safe=False)


def api_chart_data(request):
    if not request.user.is_authenticated:
        return JsonResponse([], safe=False)
    repository = get_service().repository
    devices = repository.get_devices(request.user.id)
    if not devices:
        return JsonResponse([], safe=False)
    return JsonResponse(repository.get_chart_data(devices[0].id), safe=False)


def api_thresholds(request):
    if not request.user.is_authenticated:
        return JsonResponse({})
    device_id = request.GET.get('device')
    try:
        if device_id and not Device.objects.filter(pk=device_id, user=request.user).exists():
            return JsonResponse({})
    except ValidationError:
        return JsonResponse({})
    return JsonResponse(get_service().repository.get_thresholds(request.user.id, device_id or None))


@require_POST
def api_tick(request):
    """
    Runs one simulation step for the signed in user.
    Lets an open page drive the simulation at its own interval.
    """
    if not request.user.is_authenticated:
        return JsonResponse([], safe=False)
    policy = request.POST.get('policy', DRIFT)
    if policy not in POLICIES:
        return JsonResponse({"error": f"Unknown policy {policy}"}, status=400)
    devices = get_service().tick(request.user, policy)
    return JsonResponse([d.to_dict() for d in devices], safe=False)
