import logging

from django.db import models
from django.contrib.auth.models import User
from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


class UserProfile(models.Model):
    """
    Preferences of a dashboard user.
    The gate control mode (auto/manual) lives here too.
    """
    class MeasurementUnit(models.TextChoices):
        PERCENT = 'percent', 'Percent (%)'
        PPM = 'ppm', 'Parts per million (ppm)'

    class Theme(models.TextChoices):
        LIGHT = 'light', 'Light'
        DARK = 'dark', 'Dark'
        SYSTEM = 'system', 'System'

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    display_name = models.CharField(max_length=150, blank=True)
    notifications_enabled = models.BooleanField(default=True)
    measurement_unit = models.CharField(
        max_length=10,
        choices=MeasurementUnit.choices,
        default=MeasurementUnit.PERCENT
    )
    theme = models.CharField(max_length=10, choices=Theme.choices, default=Theme.SYSTEM)
    gate_auto_control = models.BooleanField(
        default=True,
        help_text="When enabled the nitrogen gates are opened and closed automatically"
    )

    def __str__(self):
        return self.display_name or self.user.username


@receiver(post_save, sender=User)
def create_profile(sender, instance, created, **kwargs):
    if created:
        UserProfile.objects.create(user=instance, display_name=instance.get_full_name())


@receiver(user_logged_in)
def log_login(sender, request, user, **kwargs):
    logger.info("User %s signed in", user.pk)


@receiver(user_logged_out)
def log_logout(sender, request, user, **kwargs):
    if user is not None:
        logger.info("User %s signed out", user.pk)


@receiver(user_login_failed)
def log_login_failed(sender, credentials, request=None, **kwargs):
    logger.warning("Failed sign in for %s", credentials.get('username'))
