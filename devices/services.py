import json
import logging
import random
import datetime
from dataclasses import replace

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.exceptions import ValidationError
from django.utils import timezone

from accounts.models import UserProfile
from reports.models import Alert
from .control import apply_gate_auto, check_thresholds, OPEN, CLOSED
from .exceptions import GateModeError
from .models import Device, NUTRIENTS, DEFAULT_GROUPS, UNCATEGORIZED
from .repository import DeviceRepository, AUTO
from .simulation import (
    DRIFT, GATE, POLICIES, clamp, drift_toward_target, apply_gate_effect,
    tendency_for, generate_initial_readings, average_point, append_point,
)
from .state import DeviceState

logger = logging.getLogger(__name__)

ALERT_REPEAT_WINDOW = datetime.timedelta(minutes=30)


def group_name_for(user_id):
    return f"nitcat_{user_id}"


def filter_by_group(states, group):
    if not group or group == 'all':
        return list(states)
    if group == UNCATEGORIZED:
        return [s for s in states if not s.group or s.group == UNCATEGORIZED]
    return [s for s in states if s.group == group]


def average_readings(states):
    """Averages rounded to one decimal; None for every nutrient without devices."""
    if not states:
        return {n: None for n in NUTRIENTS}
    return {
        n: round(sum(s.readings[n] for s in states) / len(states), 1)
        for n in NUTRIENTS
    }


class NutrientService:

    def __init__(self, repository=None, rng=None, clock=None):
        self.repository = repository or DeviceRepository()
        self.rng = rng or random.Random()
        self.clock = clock or timezone.now

    # -- gate control --------------------------------------------------------

    def update_device_gate_auto(self, state):
        thresholds = self.repository.get_thresholds(state.user_id, state.id)
        return apply_gate_auto(state, thresholds)

    def set_gate_mode(self, user, mode):
        mode = self.repository.set_gate_mode(user.id, mode)
        logger.info("User %s switched gate control to %s", user.id, mode)
        return mode

    def toggle_gate(self, user, device_id):
        if self.repository.get_gate_mode(user.id) == AUTO:
            raise GateModeError("Cannot manually control gates in auto mode")

        state = self._find(user, device_id)
        new_gate = CLOSED if state.nitrogen_gate == OPEN else OPEN
        self.repository.save_devices(user.id, [state.with_gate(new_gate).touched(self.clock())], strict=True)
        logger.info("Gate of %s manually %s", state.id, new_gate)
        return new_gate

    # -- device management ---------------------------------------------------

    def _find(self, user, device_id):
        for state in self.repository.get_devices(user.id):
            if state.id == str(device_id):
                return state
        raise Device.DoesNotExist(f"Device {device_id} not found")

    def pair_device(self, user, name):
        now = self.clock()
        device = Device.objects.create(
            user=user,
            name=name.strip(),
            status=Device.Status.ONLINE,
            nitrogen_gate=Device.Gate.CLOSED,
            nitrogen_timer=24,
            group_name=UNCATEGORIZED,
            last_connected_at=now,
            updated_at=now,
            **generate_initial_readings(self.rng)
        )
        self.repository.add_device(DeviceState.from_model(device))
        logger.info("User %s paired device %s", user.id, device.id)
        return device

    def delete_device(self, user, device_id):
        deleted, _ = Device.objects.filter(user=user, pk=device_id).delete()
        if not deleted:
            raise Device.DoesNotExist(f"Device {device_id} not found")
        self.repository.forget_device(user.id, device_id)
        logger.info("User %s deleted device %s", user.id, device_id)

    def change_group(self, user, device_id, group):
        if group not in DEFAULT_GROUPS and group != UNCATEGORIZED:
            raise ValueError(f"Unknown group: {group}")
        state = self._find(user, device_id)
        self.repository.save_devices(user.id, [replace(state, group=group, updated_at=self.clock())], strict=True)
        return group

    def save_thresholds(self, user, thresholds, device_id=None):
        if device_id is not None:
            self._find(user, device_id)
        return self.repository.save_thresholds(user.id, thresholds, device_id)

    def reset_thresholds(self, user, device_id=None):
        if device_id is not None:
            self._find(user, device_id)
        return self.repository.reset_thresholds(user.id, device_id)

    # -- simulation ----------------------------------------------------------

    def tick(self, user, policy=DRIFT):
        """
        Advances every device of `user` by one simulation step and persists
        the result. Side effects other than the device write are best effort.
        """
        if policy not in POLICIES:
            raise ValueError(f"Unknown simulation policy: {policy}")

        states = self.repository.get_devices(user.id)
        if not states:
            return []

        now = self.clock()
        primary_thresholds = self.repository.get_thresholds(user.id, states[0].id)
        # Read before this tick's readings are recorded.
        history = self.repository.get_chart_data(states[0].id)
        auto = policy == GATE and self.repository.get_gate_mode(user.id) == AUTO

        stepped = []
        for index, state in enumerate(states):
            if policy == DRIFT:
                readings = drift_toward_target(state.readings, primary_thresholds, tendency_for(index), self.rng)
            else:
                readings = apply_gate_effect(state.readings, state.nitrogen_gate, self.rng)
            updated = state.with_readings(readings).touched(now)
            if auto:
                updated = self._auto_gate(user, state, updated)
            stepped.append(updated)

        saved = self.repository.save_devices(user.id, stepped, record_readings=True)
        if not saved:
            return saved

        self._update_chart(saved, history, now)
        self._notify_thresholds(user, saved[0])
        self._push(user.id, 'device.update', {'devices': [s.to_dict() for s in saved]})
        return saved

    def _auto_gate(self, user, before, state):
        try:
            result = self.update_device_gate_auto(state)
        except Exception:
            logger.exception("Automatic gate control failed for %s", state.id)
            return state

        if result.nitrogen_gate != before.nitrogen_gate:
            action = "opened" if result.nitrogen_gate == OPEN else "closed"
            message = f"{before.name} gate automatically {action}"
            logger.info(message)
            self._raise_alert(user.id, result.id, Alert.Kind.GATE, message, repeat=True)
            self._push(user.id, 'gate.changed', {
                'device_id': result.id,
                'gate': result.nitrogen_gate,
                'message': message,
            })
        return result

    def _update_chart(self, states, history, now):
        try:
            point = average_point(states, now)
            self.repository.save_chart_data(
                states[0].id, append_point(history, point, self.repository.chart_window)
            )
        except Exception:
            logger.exception("Could not update chart history")

    def _notify_thresholds(self, user, state):
        try:
            profile = UserProfile.objects.filter(user_id=user.id).first()
            if profile is None or not profile.notifications_enabled:
                return
            thresholds = self.repository.get_thresholds(user.id, state.id)
            exceeded, alerts = check_thresholds(state, thresholds)
            for message in alerts if exceeded else []:
                kind = Alert.Kind.BELOW_MIN if "below" in message else Alert.Kind.ABOVE_MAX
                self._raise_alert(user.id, state.id, kind, f"{state.name}: {message}")
        except Exception:
            logger.exception("Threshold check failed for %s", state.id)

    # -- ingestion -----------------------------------------------------------

    def ingest_reading(self, topic, payload):
        """
        Records a reading published by a real device, e.g.
        {"device_id": "...", "nitrogen": 41.2, "phosphorus": 33, "potassium": 60}
        """
        try:
            data = json.loads(payload)
            device_id = data.get("device_id")
            if not device_id:
                return None
            readings = {n: clamp(float(data[n])) for n in NUTRIENTS}
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning("Ignoring malformed reading on %s: %s", topic, e)
            return None

        try:
            device = Device.objects.get(pk=device_id)
        except (Device.DoesNotExist, ValidationError):
            logger.warning("Reading for unknown device %s", device_id)
            return None

        now = self.clock()
        Device.objects.filter(pk=device.pk).update(last_connected_at=now)
        before = DeviceState.from_model(device)
        state = replace(before, status=Device.Status.ONLINE.value, readings=readings, updated_at=now)
        if self.repository.get_gate_mode(device.user_id) == AUTO:
            state = self._auto_gate(device.user, before, state)

        saved = self.repository.save_devices(device.user_id, [state], record_readings=True)
        self._notify_thresholds(device.user, state)
        self._push(device.user_id, 'device.update', {'devices': [s.to_dict() for s in saved]})
        return state

    # -- notifications -------------------------------------------------------

    def _raise_alert(self, user_id, device_id, kind, message, repeat=False):
        if not repeat:
            duplicate = Alert.objects.filter(
                user_id=user_id,
                device_id=device_id,
                kind=kind,
                message=message,
                timestamp__gte=self.clock() - ALERT_REPEAT_WINDOW
            ).exists()
            if duplicate:
                return None

        alert = Alert.objects.create(user_id=user_id, device_id=device_id, kind=kind, message=message)
        if kind != Alert.Kind.GATE:
            self._push(user_id, 'threshold.alert', {'kind': kind, 'message': message, 'device_id': str(device_id)})
        return alert

    def _push(self, user_id, event_type, data):
        try:
            channel_layer = get_channel_layer()
            if channel_layer is None:
                return
            async_to_sync(channel_layer.group_send)(group_name_for(user_id), {"type": event_type, "data": data})
        except Exception as e:
            logger.warning("Websocket push to user %s failed: %s", user_id, e)
