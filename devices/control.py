"""
Gate control and threshold checks.

Everything here is pure: callers load the thresholds, persist the
returned device state and notify the user.
"""
from typing import NamedTuple

from .models import Device, NUTRIENTS

OPEN = Device.Gate.OPEN.value
CLOSED = Device.Gate.CLOSED.value

HYSTERESIS_RATIO = 0.05


class ThresholdCheck(NamedTuple):
    exceeded: bool
    alerts: list


def should_gate_be_open(reading, minimum, maximum, current_state):
    """
    Decide whether the nitrogen gate should be open.

    The band is shrunk by 5% of its span on each side: an open gate stays
    open until the reading reaches `maximum - buffer`, a closed gate only
    opens once the reading drops below `minimum + buffer`. Any state other
    than "open" (including None) counts as closed.
    """
    buffer = (maximum - minimum) * HYSTERESIS_RATIO

    if current_state == OPEN:
        return reading < maximum - buffer
    return reading < minimum + buffer


def apply_gate_auto(device, thresholds):
    band = thresholds['nitrogen']
    should_open = should_gate_be_open(
        device.readings['nitrogen'], band['min'], band['max'], device.nitrogen_gate
    )

    if should_open and device.nitrogen_gate != OPEN:
        return device.with_gate(OPEN)
    if not should_open and device.nitrogen_gate == OPEN:
        return device.with_gate(CLOSED)
    return device


def check_thresholds(device, thresholds):
    alerts = []
    for nutrient in NUTRIENTS:
        value = device.readings[nutrient]
        band = thresholds[nutrient]
        if value < band['min']:
            alerts.append(f"{nutrient.capitalize()} below minimum threshold ({band['min']:g}%)")
        elif value > band['max']:
            alerts.append(f"{nutrient.capitalize()} above maximum threshold ({band['max']:g}%)")

    return ThresholdCheck(exceeded=len(alerts) > 0, alerts=alerts)


def validate_thresholds(thresholds):
    """Returns the nutrients whose minimum is above their maximum."""
    return [n for n in NUTRIENTS if thresholds[n]['min'] > thresholds[n]['max']]
