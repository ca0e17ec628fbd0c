import pytest
from django.contrib.auth.models import User
from django.core.cache import cache
from django.utils import timezone

from devices.models import Device
from devices.repository import DeviceRepository
from devices.services import NutrientService


class MidRandom:
    """Random source whose noise is always zero."""

    def random(self):
        return 0.5


@pytest.fixture(autouse=True)
def local_backends(settings):
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    settings.CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "nitcat-tests",
        }
    }
    settings.NITCAT_THRESHOLD_SOURCE = "database"
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    return User.objects.create_user(username="farmer", email="farmer@example.com", password="Nitcat-Pass-2024")


@pytest.fixture
def other_user(db):
    return User.objects.create_user(username="neighbour", email="neighbour@example.com", password="Nitcat-Pass-2024")


@pytest.fixture
def now():
    return timezone.now()


@pytest.fixture
def repository():
    return DeviceRepository()


@pytest.fixture
def service(repository, now):
    return NutrientService(repository=repository, rng=MidRandom(), clock=lambda: now)


@pytest.fixture
def make_device(db):
    def _make(user, name="Probe", **kwargs):
        values = {
            'nitrogen': 50.0,
            'phosphorus': 50.0,
            'potassium': 60.0,
            'nitrogen_gate': Device.Gate.CLOSED,
        }
        values.update(kwargs)
        return Device.objects.create(user=user, name=name, **values)
    return _make
