import pytest
from django.contrib.auth.models import User
from django.contrib.messages import get_messages
from django.db import DatabaseError
from django.urls import reverse

from devices.models import Device, ThresholdSetting
from devices.repository import DeviceRepository, MANUAL
from reports.models import Alert

pytestmark = pytest.mark.django_db


@pytest.fixture
def logged_in(client, user):
    client.force_login(user)
    return client


def messages_of(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


@pytest.mark.parametrize("name, expected", [
    ('api_devices', []),
    ('api_chart_data', []),
    ('api_thresholds', {}),
])
def test_anonymous_api_returns_empty_payloads(client, name, expected):
    response = client.get(reverse(name))
    assert response.status_code == 200
    assert response.json() == expected


def test_anonymous_tick_returns_empty_list(client):
    response = client.post(reverse('api_tick'))
    assert response.json() == []


@pytest.mark.parametrize("name", ['dashboard', 'devices', 'profile', 'alerts', 'export_devices'])
def test_pages_require_login(client, name):
    response = client.get(reverse(name))
    assert response.status_code == 302
    assert response.url.startswith("/accounts/login/")


def test_index_redirects_signed_in_users(logged_in):
    response = logged_in.get(reverse('index'))
    assert response.status_code == 302
    assert response.url == reverse('dashboard')


def test_sign_up_creates_user_and_profile(client):
    response = client.post(reverse('sign_up'), {
        'username': 'grower',
        'email': 'grower@example.com',
        'display_name': 'The Grower',
        'password1': 'Nitcat-Pass-2024',
        'password2': 'Nitcat-Pass-2024',
    })
    assert response.status_code == 302
    user = User.objects.get(username='grower')
    assert user.profile.display_name == 'The Grower'


def test_sign_up_rejects_duplicate_email(client, user):
    response = client.post(reverse('sign_up'), {
        'username': 'copycat',
        'email': 'FARMER@example.com',
        'password1': 'Nitcat-Pass-2024',
        'password2': 'Nitcat-Pass-2024',
    })
    assert response.status_code == 200
    assert not User.objects.filter(username='copycat').exists()


def test_empty_dashboard(logged_in):
    response = logged_in.get(reverse('dashboard'))
    assert response.status_code == 200
    assert response.context['has_devices'] is False
    assert response.context['averages'] == {'nitrogen': None, 'phosphorus': None, 'potassium': None}


def test_dashboard_filters_by_group(logged_in, user, make_device):
    make_device(user, name="A", group_name="Garden", nitrogen=40.0)
    make_device(user, name="B", nitrogen=60.0)

    response = logged_in.get(reverse('dashboard'), {'group': 'Garden'})

    assert [d.name for d in response.context['devices']] == ["A"]
    assert response.context['averages']['nitrogen'] == 40.0


def test_pair_device(logged_in, user):
    response = logged_in.post(reverse('pair_device'), {'name': 'South plot'})
    assert response.status_code == 302
    assert Device.objects.get(user=user).name == 'South plot'
    assert "Device paired successfully!" in messages_of(response)


def test_pair_device_requires_a_name(logged_in):
    logged_in.post(reverse('pair_device'), {'name': '   '})
    assert not Device.objects.exists()


def test_devices_page(logged_in, user, make_device):
    make_device(user)
    response = logged_in.get(reverse('devices'))
    assert response.status_code == 200
    assert response.context['gate_mode'] == 'auto'
    assert len(response.context['devices']) == 1


def test_delete_device_asks_for_confirmation(logged_in, user, make_device):
    device = make_device(user)
    response = logged_in.get(reverse('delete_device', args=[device.id]))
    assert response.status_code == 200
    assert Device.objects.exists()

    response = logged_in.post(reverse('delete_device', args=[device.id]))
    assert not Device.objects.exists()
    assert 'Device "Probe" has been deleted' in messages_of(response)


def test_cannot_delete_someone_elses_device(logged_in, other_user, make_device):
    device = make_device(other_user)
    response = logged_in.post(reverse('delete_device', args=[device.id]))
    assert response.status_code == 404
    assert Device.objects.exists()


def test_change_group(logged_in, user, make_device):
    device = make_device(user)
    response = logged_in.post(reverse('change_group', args=[device.id]), {'group': 'Research'})
    device.refresh_from_db()
    assert device.group_name == 'Research'
    assert "Device moved to Research" in messages_of(response)


def test_toggle_gate_refused_in_auto_mode(logged_in, user, make_device):
    device = make_device(user)
    response = logged_in.post(reverse('toggle_gate', args=[device.id]))
    device.refresh_from_db()
    assert device.nitrogen_gate == Device.Gate.CLOSED
    assert "Cannot manually control gates in auto mode" in messages_of(response)


def test_toggle_gate_in_manual_mode(logged_in, user, make_device):
    device = make_device(user)
    logged_in.post(reverse('gate_mode'), {'mode': MANUAL})

    response = logged_in.post(reverse('toggle_gate', args=[device.id]))

    device.refresh_from_db()
    assert device.nitrogen_gate == Device.Gate.OPEN
    assert "Gate manually open" in messages_of(response)


def test_device_thresholds_override(logged_in, user, make_device):
    device = make_device(user)
    data = {
        'nitrogen_min': 10, 'nitrogen_max': 50,
        'phosphorus_min': 20, 'phosphorus_max': 70,
        'potassium_min': 40, 'potassium_max': 90,
    }
    logged_in.post(reverse('device_thresholds', args=[device.id]), data)

    setting = ThresholdSetting.objects.get(device=device)
    assert (setting.nitrogen_min, setting.nitrogen_max) == (10, 50)

    response = logged_in.get(reverse('api_thresholds'), {'device': str(device.id)})
    assert response.json()['nitrogen'] == {'min': 10, 'max': 50}


def test_api_thresholds_ignores_foreign_or_malformed_devices(logged_in, other_user, make_device):
    device = make_device(other_user)
    assert logged_in.get(reverse('api_thresholds'), {'device': str(device.id)}).json() == {}
    assert logged_in.get(reverse('api_thresholds'), {'device': 'abc'}).json() == {}


def test_profile_rejects_inverted_thresholds(logged_in):
    response = logged_in.post(reverse('profile'), {
        'submit_thresholds': '1',
        'nitrogen_min': 90, 'nitrogen_max': 10,
        'phosphorus_min': 20, 'phosphorus_max': 70,
        'potassium_min': 40, 'potassium_max': 90,
    })
    assert response.status_code == 200
    assert response.context['threshold_form'].errors
    assert not ThresholdSetting.objects.exists()


def test_profile_saves_preferences_and_gate_mode(logged_in, user):
    response = logged_in.post(reverse('profile'), {
        'submit_profile': '1',
        'display_name': 'Field Boss',
        'measurement_unit': 'ppm',
        'theme': 'dark',
        'notifications_enabled': 'on',
    })
    assert response.status_code == 302
    user.profile.refresh_from_db()
    assert user.profile.theme == 'dark'
    assert user.profile.gate_auto_control is False
    assert DeviceRepository().get_gate_mode(user.id) == MANUAL


def test_api_tick(logged_in, user, make_device):
    make_device(user)
    response = logged_in.post(reverse('api_tick'), {'policy': 'gate'})
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_api_tick_rejects_unknown_policy(logged_in):
    response = logged_in.post(reverse('api_tick'), {'policy': 'chaos'})
    assert response.status_code == 400


def test_export_devices_csv(logged_in, user, make_device):
    device = make_device(user)
    response = logged_in.get(reverse('export_devices'))

    assert response['Content-Type'].startswith('text/csv')
    assert 'filename="nitcat-readings-' in response['Content-Disposition']
    lines = response.content.decode().split("\n")
    assert lines[0] == "Device ID,Device Name,Group,Status,Nitrogen (%),Phosphorus (%),Potassium (%)"
    assert lines[1] == f"{device.id},Probe,Uncategorized,online,50.0,50.0,60.0"


def test_export_chart_csv_without_history(logged_in):
    response = logged_in.get(reverse('export_chart'))
    assert response.content == b""
    assert 'filename="nitcat-chart-' in response['Content-Disposition']


def test_chart_svg(logged_in):
    response = logged_in.get(reverse('chart_svg'))
    assert response['Content-Type'] == 'image/svg+xml'
    assert response.content.startswith(b'<svg')


def test_alerts_are_marked_read(logged_in, user, other_user):
    mine = Alert.objects.create(user=user, kind=Alert.Kind.BELOW_MIN, message="low")
    Alert.objects.create(user=user, kind=Alert.Kind.ABOVE_MAX, message="high")
    foreign = Alert.objects.create(user=other_user, kind=Alert.Kind.GATE, message="gate")

    response = logged_in.get(reverse('alerts'))
    assert response.context['unread_alert_count'] == 2

    logged_in.post(reverse('mark_alert_read', args=[mine.id]))
    mine.refresh_from_db()
    assert mine.read

    assert logged_in.post(reverse('mark_alert_read', args=[foreign.id])).status_code == 404

    logged_in.post(reverse('mark_all_read'))
    assert not Alert.objects.filter(user=user, read=False).exists()
    foreign.refresh_from_db()
    assert not foreign.read


def test_failed_threshold_reset_is_reported(logged_in, user, make_device, monkeypatch):
    device = make_device(user)

    def fail(*args, **kwargs):
        raise DatabaseError("database is locked")

    monkeypatch.setattr(DeviceRepository, "reset_thresholds", fail)

    response = logged_in.post(reverse('profile'), {'reset_thresholds': '1'})
    assert response.status_code == 302
    assert "Failed to reset threshold settings" in messages_of(response)

    response = logged_in.post(reverse('device_thresholds', args=[device.id]), {'reset': '1'})
    assert response.status_code == 302
    assert "Failed to reset threshold settings" in messages_of(response)


def test_device_threshold_reset(logged_in, user, make_device):
    device = make_device(user)
    response = logged_in.post(reverse('device_thresholds', args=[device.id]), {'reset': '1'})
    assert "Threshold settings reset to defaults" in messages_of(response)
    assert ThresholdSetting.objects.filter(device=device).exists()
