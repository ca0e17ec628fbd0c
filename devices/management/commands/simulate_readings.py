import logging
import time

from django.conf import settings
from django.contrib.auth.models import User
from django.core.management.base import BaseCommand, CommandError

from devices.services import NutrientService
from devices.simulation import DRIFT, POLICIES

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Nudges every device's nutrient readings at a fixed interval"

    def add_arguments(self, parser):
        parser.add_argument(
            '--policy',
            choices=POLICIES,
            default=DRIFT,
            help='drift: move toward a fraction of the max threshold; gate: follow the nitrogen gate'
        )
        parser.add_argument(
            '--interval',
            type=float,
            default=None,
            help='Seconds between ticks (defaults to NITCAT_TICK_INTERVALS)'
        )
        parser.add_argument(
            '--user',
            type=str,
            default=None,
            help='Only simulate the devices of this username'
        )
        parser.add_argument(
            '--ticks',
            type=int,
            default=None,
            help='Number of ticks to run (None for infinite)'
        )

    def handle(self, *args, **options):
        policy = options['policy']
        interval = options['interval']
        if interval is None:
            interval = settings.NITCAT_TICK_INTERVALS[policy]
        ticks = options['ticks']

        users = User.objects.filter(devices__isnull=False).distinct()
        if options['user']:
            users = users.filter(username=options['user'])
            if not users.exists():
                raise CommandError(f"No devices found for user '{options['user']}'")

        service = NutrientService()
        self.stdout.write(self.style.SUCCESS(f"--- SIMULATION ({policy}, every {interval}s) ---"))

        done = 0
        try:
            while ticks is None or done < ticks:
                for user in users.all():
                    try:
                        service.tick(user, policy)
                    except Exception:
                        logger.exception("Tick failed for user %s", user.pk)
                done += 1
                if ticks is None or done < ticks:
                    time.sleep(interval)
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING("\nShutting down..."))

        self.stdout.write(self.style.SUCCESS(f"Simulation stopped after {done} ticks"))
