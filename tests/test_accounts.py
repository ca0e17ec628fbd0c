import pytest
from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from django.template import Context, Template
from django.test import RequestFactory

from accounts.context_processors import user_preferences
from accounts.models import UserProfile

pytestmark = pytest.mark.django_db


def test_profile_is_created_with_the_user():
    user = User.objects.create_user(username="ana", first_name="Ana", last_name="Soil", password="x")
    profile = UserProfile.objects.get(user=user)
    assert profile.display_name == "Ana Soil"
    assert profile.gate_auto_control is True
    assert profile.theme == UserProfile.Theme.SYSTEM


def test_sign_in_with_email(user):
    assert authenticate(username="FARMER@example.com", password="Nitcat-Pass-2024") == user
    assert authenticate(username="farmer", password="Nitcat-Pass-2024") == user
    assert authenticate(username="farmer@example.com", password="wrong") is None


def test_user_preferences_context(user):
    user.profile.measurement_unit = UserProfile.MeasurementUnit.PPM
    user.profile.save()
    request = RequestFactory().get("/")
    request.user = User.objects.get(pk=user.pk)
    assert user_preferences(request) == {'theme': 'system', 'measurement_unit': 'ppm'}


@pytest.mark.parametrize("value, unit, expected", [
    (None, "percent", "-"),
    (41.26, "percent", "41.3%"),
    (0.5, "ppm", "5000 ppm"),
])
def test_reading_filter(value, unit, expected):
    rendered = Template("{% load nutrients %}{{ value|reading:unit }}").render(Context({'value': value, 'unit': unit}))
    assert rendered == expected


def test_shared_email_falls_back_to_username(user):
    User.objects.create_user(username="twin", email="FARMER@example.com", password="Other-Pass-2024")
    assert authenticate(username="farmer@example.com", password="Nitcat-Pass-2024") is None
    assert authenticate(username="farmer", password="Nitcat-Pass-2024") == user
