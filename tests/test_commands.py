import datetime

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from devices.models import Device, NutrientReading
from reports.models import Alert

pytestmark = pytest.mark.django_db


def reading_at(device, when):
    reading = NutrientReading.objects.create(device=device, nitrogen=50, phosphorus=50, potassium=50)
    NutrientReading.objects.filter(pk=reading.pk).update(timestamp=when)


def test_check_devices_marks_silent_devices_offline(user, make_device):
    now = timezone.now()
    silent = make_device(user, name="Silent")
    chatty = make_device(user, name="Chatty")
    reading_at(silent, now - datetime.timedelta(hours=3))
    reading_at(chatty, now - datetime.timedelta(minutes=5))

    call_command("check_devices")
    call_command("check_devices")

    silent.refresh_from_db()
    chatty.refresh_from_db()
    assert silent.status == Device.Status.OFFLINE
    assert chatty.status == Device.Status.ONLINE
    assert Alert.objects.filter(device=silent, kind=Alert.Kind.OFFLINE).count() == 1


def test_simulate_readings_runs_requested_ticks(user, make_device):
    device = make_device(user)
    call_command("simulate_readings", ticks=2, interval=0)
    assert NutrientReading.objects.filter(device=device).count() == 2


def test_simulate_readings_gate_policy(user, make_device):
    device = make_device(user, nitrogen=90.0)
    call_command("simulate_readings", policy="gate", ticks=1, interval=0, user=user.username)
    device.refresh_from_db()
    assert device.nitrogen < 90.0


def test_simulate_readings_unknown_user(user, make_device):
    make_device(user)
    with pytest.raises(CommandError):
        call_command("simulate_readings", ticks=1, interval=0, user="nobody")


def test_check_devices_covers_devices_that_never_reported(user, make_device):
    now = timezone.now()
    never = make_device(user, name="Never")
    Device.objects.filter(pk=never.pk).update(created_at=now - datetime.timedelta(hours=3))
    fresh = make_device(user, name="Fresh")
    connected = make_device(user, name="Connected", last_connected_at=now - datetime.timedelta(minutes=10))
    Device.objects.filter(pk=connected.pk).update(created_at=now - datetime.timedelta(days=2))

    call_command("check_devices")

    never.refresh_from_db()
    fresh.refresh_from_db()
    connected.refresh_from_db()
    assert never.status == Device.Status.OFFLINE
    assert fresh.status == Device.Status.ONLINE
    assert connected.status == Device.Status.ONLINE
    assert Alert.objects.filter(device=never, kind=Alert.Kind.OFFLINE).exists()
