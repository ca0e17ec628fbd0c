"""
Cache-then-sync storage for devices, chart history, thresholds and gate mode.

Every write lands in the Django cache first and is then synced to the
database. Device rows are only overwritten by states at least as recent as
the stored ones (last write wins on `updated_at`), so a slow writer can
never roll a device back. A cached device list is only served while no
row is newer than its cached state, so writes made by other processes
(through another cache) are picked up on the next read.
"""
import copy
import json
import logging

from django.conf import settings
from django.core.cache import cache as default_cache
from django.db import DatabaseError, transaction
from django.db.models import Q

from accounts.models import UserProfile
from .control import validate_thresholds
from .exceptions import ThresholdError
from .models import Device, NutrientReading, ThresholdSetting, DEFAULT_THRESHOLDS, NUTRIENTS
from .state import DeviceState

logger = logging.getLogger(__name__)

AUTO = 'auto'
MANUAL = 'manual'
GATE_MODES = (AUTO, MANUAL)

DEVICES_KEY = "nitcat-devices"
CHART_DATA_KEY = "nitcat-chart-data"
THRESHOLDS_KEY = "nitcat-thresholds"
GATE_SETTINGS_KEY = "nitcat-gate-settings"


def storage_key(prefix, suffix=None):
    return f"{prefix}:{suffix}" if suffix is not None else prefix


def default_thresholds():
    return copy.deepcopy(DEFAULT_THRESHOLDS)


def is_newer(candidate, current):
    if current.updated_at is None:
        return True
    if candidate.updated_at is None:
        return False
    return candidate.updated_at >= current.updated_at


class DeviceRepository:

    def __init__(self, cache=None, threshold_source=None, chart_window=None):
        self.cache = cache or default_cache
        self.threshold_source = threshold_source or settings.NITCAT_THRESHOLD_SOURCE
        self.chart_window = chart_window or settings.NITCAT_CHART_WINDOW

    # -- raw cache access ----------------------------------------------------

    def _read(self, key):
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed cache entry %s", key)
            self.cache.delete(key)
            return None

    def _write(self, key, value):
        self.cache.set(key, json.dumps(value), timeout=None)

    # -- devices -------------------------------------------------------------

    def get_devices(self, user_id):
        key = storage_key(DEVICES_KEY, user_id)
        cached = self._read(key)
        if cached is not None:
            try:
                states = [DeviceState.from_dict(item) for item in cached]
                states = [s for s in states if s.user_id == user_id]
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("Malformed devices in cache for user %s, reloading", user_id)
            else:
                if self._is_current(user_id, states):
                    return states
                logger.info("Cached devices of user %s are behind the database, reloading", user_id)

        try:
            states = [DeviceState.from_model(d) for d in Device.objects.filter(user_id=user_id)]
        except DatabaseError:
            logger.exception("Could not load devices of user %s", user_id)
            return []

        self._write(key, [s.to_dict() for s in states])
        return states

    def _is_current(self, user_id, states):
        """
        False when the database holds devices the cached list lacks (or
        misses ones it has), or a row written after its cached state.
        Other processes (simulation, MQTT, status checks) may use a
        different cache.
        """
        try:
            rows = {
                str(pk): updated_at
                for pk, updated_at in Device.objects.filter(user_id=user_id).values_list('pk', 'updated_at')
            }
        except DatabaseError:
            logger.exception("Could not check cached devices of user %s", user_id)
            return True

        known = {s.id: s.updated_at for s in states}
        if set(known) != set(rows):
            return False
        for pk, updated_at in rows.items():
            if updated_at is not None and (known[pk] is None or updated_at > known[pk]):
                return False
        return True

    def save_devices(self, user_id, states, record_readings=False, strict=False):
        """
        Single write path for device states: merge into the cached list with
        last-write-wins, then sync the winning states to their rows.
        Returns the user's full, merged device list.

        Database failures are logged and the cached list is kept, unless
        `strict` is set, in which case they propagate to the caller.
        """
        key = storage_key(DEVICES_KEY, user_id)
        incoming = {s.id: s for s in states if s.user_id == user_id}
        merged = []
        winners = []
        for previous in self.get_devices(user_id):
            state = incoming.pop(previous.id, None)
            if state is not None and is_newer(state, previous):
                merged.append(state)
                winners.append(state)
            else:
                merged.append(previous)
        merged.extend(incoming.values())
        winners.extend(incoming.values())
        self._write(key, [s.to_dict() for s in merged])

        try:
            existing = self._sync_devices(user_id, winners, [s.id for s in merged], record_readings)
        except DatabaseError:
            if strict:
                raise
            logger.exception("Could not sync devices of user %s", user_id)
            return merged

        if len(existing) != len(merged):
            # Deleted while the states were in flight.
            merged = [s for s in merged if s.id in existing]
            self._write(key, [s.to_dict() for s in merged])
        return merged

    def _sync_devices(self, user_id, states, ids, record_readings):
        written = []
        with transaction.atomic():
            for state in states:
                rows = Device.objects.filter(pk=state.id, user_id=user_id)
                if state.updated_at is not None:
                    rows = rows.filter(Q(updated_at__isnull=True) | Q(updated_at__lte=state.updated_at))
                updated = rows.update(
                    name=state.name,
                    status=state.status,
                    nitrogen_gate=state.nitrogen_gate,
                    nitrogen_timer=state.nitrogen_timer,
                    group_name=state.group,
                    updated_at=state.updated_at,
                    **state.readings
                )
                if updated:
                    written.append(state)

            if record_readings and written:
                NutrientReading.objects.bulk_create([
                    NutrientReading(device_id=s.id, **s.readings) for s in written
                ])

            return {str(pk) for pk in Device.objects.filter(user_id=user_id, pk__in=ids).values_list('pk', flat=True)}

    def add_device(self, state):
        """Puts a freshly paired device at the top of the cached list."""
        key = storage_key(DEVICES_KEY, state.user_id)
        states = [s for s in self.get_devices(state.user_id) if s.id != state.id]
        self._write(key, [state.to_dict()] + [s.to_dict() for s in states])

    def forget_device(self, user_id, device_id):
        key = storage_key(DEVICES_KEY, user_id)
        states = [s for s in self.get_devices(user_id) if s.id != str(device_id)]
        self._write(key, [s.to_dict() for s in states])
        self.cache.delete_many([
            storage_key(CHART_DATA_KEY, device_id),
            storage_key(THRESHOLDS_KEY, device_id),
        ])

    def invalidate_devices(self, user_id):
        self.cache.delete(storage_key(DEVICES_KEY, user_id))

    # -- chart history -------------------------------------------------------

    def get_chart_data(self, device_id):
        key = storage_key(CHART_DATA_KEY, device_id)
        cached = self._read(key)
        if isinstance(cached, list):
            return cached

        try:
            readings = list(NutrientReading.objects.filter(device_id=device_id)[:self.chart_window])
        except DatabaseError:
            logger.exception("Could not load reading history of device %s", device_id)
            return []

        history = [
            {'time': r.timestamp.isoformat(), **{n: getattr(r, n) for n in NUTRIENTS}}
            for r in reversed(readings)
        ]
        if history:
            self._write(key, history)
        return history

    def save_chart_data(self, device_id, history):
        self._write(storage_key(CHART_DATA_KEY, device_id), history[-self.chart_window:])

    # -- thresholds ----------------------------------------------------------

    def _threshold_key(self, user_id, device_id):
        return storage_key(THRESHOLDS_KEY, device_id if device_id else f"user-{user_id}")

    def _cached_thresholds(self, key):
        cached = self._read(key)
        if not isinstance(cached, dict):
            return None
        try:
            return {n: {'min': float(cached[n]['min']), 'max': float(cached[n]['max'])} for n in NUTRIENTS}
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed thresholds in %s", key)
            return None

    def _database_thresholds(self, user_id, device_id):
        rows = ThresholdSetting.objects.filter(user_id=user_id)
        if device_id:
            setting = rows.filter(device_id=device_id).first()
            if setting is not None:
                return setting.as_dict()
        setting = rows.filter(device__isnull=True).first()
        return setting.as_dict() if setting is not None else None

    def get_thresholds(self, user_id, device_id=None):
        """
        Thresholds for a device, falling back to the user's global band and
        then to the defaults. NITCAT_THRESHOLD_SOURCE picks whether the cache
        or the database is consulted first.
        """
        key = self._threshold_key(user_id, device_id)

        if self.threshold_source == 'cache':
            for candidate in filter(None, [key, device_id and self._threshold_key(user_id, None)]):
                cached = self._cached_thresholds(candidate)
                if cached is not None:
                    return cached

        try:
            thresholds = self._database_thresholds(user_id, device_id)
        except DatabaseError:
            logger.exception("Could not load thresholds for user %s", user_id)
            return self._cached_thresholds(key) or default_thresholds()

        if thresholds is None:
            thresholds = default_thresholds()
        self._write(key, thresholds)
        return thresholds

    def save_thresholds(self, user_id, thresholds, device_id=None):
        invalid = validate_thresholds(thresholds)
        if invalid:
            raise ThresholdError(f"Minimum above maximum for: {', '.join(invalid)}")

        setting, _ = ThresholdSetting.objects.get_or_create(user_id=user_id, device_id=device_id)
        setting.apply(thresholds)
        setting.save()

        self._write(self._threshold_key(user_id, device_id), setting.as_dict())
        if not device_id:
            # Devices without their own row follow the global band.
            overridden = set(
                str(pk) for pk in ThresholdSetting.objects.filter(
                    user_id=user_id, device__isnull=False
                ).values_list('device_id', flat=True)
            )
            stale = [
                self._threshold_key(user_id, pk)
                for pk in Device.objects.filter(user_id=user_id).values_list('pk', flat=True)
                if str(pk) not in overridden
            ]
            self.cache.delete_many(stale)
        return setting.as_dict()

    def reset_thresholds(self, user_id, device_id=None):
        return self.save_thresholds(user_id, default_thresholds(), device_id)

    # -- gate settings -------------------------------------------------------

    def get_gate_mode(self, user_id):
        key = storage_key(GATE_SETTINGS_KEY, user_id)
        cached = self._read(key)
        if isinstance(cached, dict) and cached.get('mode') in GATE_MODES:
            return cached['mode']

        try:
            auto = UserProfile.objects.filter(user_id=user_id).values_list('gate_auto_control', flat=True).first()
        except DatabaseError:
            logger.exception("Could not load gate settings of user %s", user_id)
            return AUTO

        mode = MANUAL if auto is False else AUTO
        self._write(key, {'mode': mode})
        return mode

    def set_gate_mode(self, user_id, mode):
        if mode not in GATE_MODES:
            raise ValueError(f"Unknown gate mode: {mode}")
        self._write(storage_key(GATE_SETTINGS_KEY, user_id), {'mode': mode})
        UserProfile.objects.filter(user_id=user_id).update(gate_auto_control=(mode == AUTO))
        return mode
