import random

from .models import DEFAULT_THRESHOLDS, NUTRIENTS

DRIFT_RATE = 0.1
PRIMARY_TENDENCY = 0.95
SECONDARY_TENDENCY = 0.85
INITIAL_TENDENCY = 0.85

GATE_STEP = 0.8
# How strongly each nutrient follows the nitrogen gate.
GATE_COEFFICIENTS = {
    'nitrogen': 1.0,
    'phosphorus': 0.7,
    'potassium': 0.5,
}

DRIFT = 'drift'
GATE = 'gate'
POLICIES = (DRIFT, GATE)


def clamp(value, low=0.0, high=100.0):
    return max(low, min(high, value))


def tendency_for(index):
    return PRIMARY_TENDENCY if index == 0 else SECONDARY_TENDENCY


def generate_initial_readings(rng=random):
    return {
        nutrient: clamp(DEFAULT_THRESHOLDS[nutrient]['max'] * INITIAL_TENDENCY + (rng.random() - 0.5) * 10)
        for nutrient in NUTRIENTS
    }


def drift_toward_target(readings, thresholds, tendency, rng=random):
    """
    Moves each reading 10% of the way toward `max * tendency`,
    with noise in [-1, 1].
    """
    updated = {}
    for nutrient in NUTRIENTS:
        current = readings[nutrient]
        target = thresholds[nutrient]['max'] * tendency
        updated[nutrient] = clamp(current + (target - current) * DRIFT_RATE + (rng.random() - 0.5) * 2)
    return updated


def apply_gate_effect(readings, gate, rng=random):
    """
    An open gate raises the readings, a closed one lowers them,
    with noise in [-0.5, 0.5].
    """
    step = GATE_STEP if gate == 'open' else -GATE_STEP
    return {
        nutrient: clamp(readings[nutrient] + step * GATE_COEFFICIENTS[nutrient] + (rng.random() - 0.5))
        for nutrient in NUTRIENTS
    }


def average_point(states, when):
    """Chart point averaging every device's readings; None without devices."""
    if not states:
        return None
    point = {'time': when.isoformat()}
    for nutrient in NUTRIENTS:
        point[nutrient] = sum(s.readings[nutrient] for s in states) / len(states)
    return point


def append_point(history, point, window):
    if len(history) >= window:
        return history[len(history) - window + 1:] + [point]
    return history + [point]
