import uuid

from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator

NUTRIENTS = ('nitrogen', 'phosphorus', 'potassium')

DEFAULT_THRESHOLDS = {
    'nitrogen': {'min': 30, 'max': 80},
    'phosphorus': {'min': 20, 'max': 70},
    'potassium': {'min': 40, 'max': 90},
}

UNCATEGORIZED = "Uncategorized"
DEFAULT_GROUPS = [
    "Field A",
    "Field B",
    "Greenhouse",
    "Garden",
    "Research",
]

percentage = [MinValueValidator(0), MaxValueValidator(100)]


class Device(models.Model):
    class Status(models.TextChoices):
        ONLINE = 'online', 'Online'
        OFFLINE = 'offline', 'Offline'

    class Gate(models.TextChoices):
        OPEN = 'open', 'Open'
        CLOSED = 'closed', 'Closed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="devices")
    name = models.CharField(max_length=100)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ONLINE)

    nitrogen_gate = models.CharField(max_length=10, choices=Gate.choices, null=True, blank=True, default=Gate.CLOSED)
    nitrogen_timer = models.PositiveIntegerField(null=True, blank=True, default=24, help_text="Release timer in hours")
    group_name = models.CharField(max_length=100, blank=True, default=UNCATEGORIZED)

    nitrogen = models.FloatField(default=0, validators=percentage)
    phosphorus = models.FloatField(default=0, validators=percentage)
    potassium = models.FloatField(default=0, validators=percentage)

    created_at = models.DateTimeField(auto_now_add=True)
    last_connected_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.id})"

    @property
    def readings(self):
        return {nutrient: getattr(self, nutrient) for nutrient in NUTRIENTS}


class NutrientReading(models.Model):
    device = models.ForeignKey(Device, on_delete=models.CASCADE, related_name="nutrient_readings")
    nitrogen = models.FloatField(validators=percentage)
    phosphorus = models.FloatField(validators=percentage)
    potassium = models.FloatField(validators=percentage)
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Reading of {self.device.name} - {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}"

    class Meta:
        ordering = ['-timestamp']


class ThresholdSetting(models.Model):
    """
    Acceptable band for each nutrient.
    Rows without a device are the user's global thresholds.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="thresholds")
    device = models.OneToOneField(
        Device,
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name="threshold"
    )

    nitrogen_min = models.FloatField(default=DEFAULT_THRESHOLDS['nitrogen']['min'], validators=percentage)
    nitrogen_max = models.FloatField(default=DEFAULT_THRESHOLDS['nitrogen']['max'], validators=percentage)
    phosphorus_min = models.FloatField(default=DEFAULT_THRESHOLDS['phosphorus']['min'], validators=percentage)
    phosphorus_max = models.FloatField(default=DEFAULT_THRESHOLDS['phosphorus']['max'], validators=percentage)
    potassium_min = models.FloatField(default=DEFAULT_THRESHOLDS['potassium']['min'], validators=percentage)
    potassium_max = models.FloatField(default=DEFAULT_THRESHOLDS['potassium']['max'], validators=percentage)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user'],
                condition=models.Q(device__isnull=True),
                name='unique_global_threshold_per_user'
            ),
        ]

    def __str__(self):
        if self.device_id:
            return f"Thresholds for {self.device.name}"
        return f"Global thresholds of {self.user.username}"

    def clean(self):
        errors = {}
        for nutrient in NUTRIENTS:
            if getattr(self, f'{nutrient}_min') > getattr(self, f'{nutrient}_max'):
                errors[f'{nutrient}_max'] = f"{nutrient.capitalize()} maximum must not be lower than its minimum."
        if errors:
            raise ValidationError(errors)

    def as_dict(self):
        return {
            nutrient: {
                'min': getattr(self, f'{nutrient}_min'),
                'max': getattr(self, f'{nutrient}_max'),
            }
            for nutrient in NUTRIENTS
        }

    def apply(self, thresholds):
        for nutrient in NUTRIENTS:
            setattr(self, f'{nutrient}_min', thresholds[nutrient]['min'])
            setattr(self, f'{nutrient}_max', thresholds[nutrient]['max'])
