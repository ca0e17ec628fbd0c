import logging
import socket

import paho.mqtt.client as mqtt
from django.conf import settings
from django.core.management.base import BaseCommand

from devices.services import NutrientService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'MQTT listener feeding device readings to NutrientService'

    def handle(self, *args, **options):
        broker_host = settings.MQTT_BROKER_HOST
        broker_port = settings.MQTT_BROKER_PORT
        self.topic = settings.MQTT_READINGS_TOPIC
        self.service = NutrientService()

        self.stdout.write(self.style.SUCCESS("--- MQTT LISTENER ---"))
        self.stdout.write(f"Target: {broker_host}:{broker_port} ({self.topic})")

        try:
            sock = socket.create_connection((broker_host, broker_port), timeout=3)
            sock.close()
            self.stdout.write("   [NET] Socket OK.")
        except OSError as e:
            self.stdout.write(self.style.WARNING(f"   [NET] Socket warning: {e}"))

        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        client.on_connect = self.on_connect
        client.on_message = self.on_message
        client.on_disconnect = self.on_disconnect

        try:
            client.connect(broker_host, broker_port, 60)
            client.loop_forever()
        except (OSError, ValueError) as e:
            self.stdout.write(self.style.ERROR(f"Fatal MQTT error: {e}"))

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            logger.info("Connected, subscribing to %s", self.topic)
            client.subscribe(self.topic)
        else:
            logger.error("Connection failed: %s", reason_code)

    def on_message(self, client, userdata, msg):
        try:
            self.service.ingest_reading(msg.topic, msg.payload.decode())
        except Exception:
            logger.exception("Could not process message on %s", msg.topic)

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code=None, properties=None):
        logger.warning("Disconnected (%s), retrying...", reason_code)
