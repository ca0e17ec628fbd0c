import datetime

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db.models import Max
from django.db.models.functions import Coalesce
from django.utils import timezone

from devices.models import Device
from devices.repository import DeviceRepository
from reports.models import Alert


class Command(BaseCommand):
    help = "Marks devices that stopped reporting as offline"

    def handle(self, *args, **options):
        hours = settings.NITCAT_OFFLINE_AFTER_HOURS
        now = timezone.now()
        cutoff = now - datetime.timedelta(hours=hours)
        repository = DeviceRepository()

        stale = Device.objects.filter(status=Device.Status.ONLINE).annotate(
            last_seen=Coalesce(Max('nutrient_readings__timestamp'), 'last_connected_at', 'created_at')
        ).filter(last_seen__lt=cutoff)

        devices_offline = 0
        for device in stale:
            Device.objects.filter(pk=device.pk).update(status=Device.Status.OFFLINE, updated_at=now)
            repository.invalidate_devices(device.user_id)

            # One offline alert per device per day
            already_alerted = Alert.objects.filter(
                device=device,
                kind=Alert.Kind.OFFLINE,
                timestamp__gte=now - datetime.timedelta(days=1)
            ).exists()

            if not already_alerted:
                Alert.objects.create(
                    user_id=device.user_id,
                    device=device,
                    kind=Alert.Kind.OFFLINE,
                    message=f"No readings from '{device.name}' for more than {hours} hours."
                )
            devices_offline += 1

        self.stdout.write(self.style.SUCCESS(f'Check completed. {devices_offline} devices marked as offline.'))
