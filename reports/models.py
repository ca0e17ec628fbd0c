from django.db import models
from django.contrib.auth.models import User
from devices.models import Device

class Alert(models.Model):

    class Kind(models.TextChoices):
        BELOW_MIN = 'BELOW_MIN', 'Below minimum threshold'
        ABOVE_MAX = 'ABOVE_MAX', 'Above maximum threshold'
        GATE = 'GATE', 'Gate changed'
        OFFLINE = 'OFFLINE', 'Device offline'

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="alerts")
    device = models.ForeignKey(Device, on_delete=models.SET_NULL, null=True, blank=True, related_name="alerts")

    kind = models.CharField(max_length=10, choices=Kind.choices)
    message = models.TextField()
    timestamp = models.DateTimeField(auto_now_add=True)
    read = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.get_kind_display()} alert for {self.user.username}"

    class Meta:
        ordering = ['-timestamp']
