import io
import math
from datetime import datetime

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from devices.models import NUTRIENTS

COLORS = {
    'nitrogen': '#2563eb',
    'phosphorus': '#16a34a',
    'potassium': '#ea580c',
}


def calculate_y_axis_domain(history):
    """
    Y range covering every point with 10% padding (at least 5), clamped to
    [0, 100] and widened to span at least 20.
    """
    if not history:
        return 0, 100

    values = [point[n] for point in history for n in NUTRIENTS]
    min_value = min(100, *values)
    max_value = max(0, *values)

    padding = max((max_value - min_value) * 0.1, 5)
    y_min = max(0, math.floor(min_value - padding))
    y_max = min(100, math.ceil(max_value + padding))

    if y_max - y_min < 20:
        middle = (y_min + y_max) / 2
        y_min = max(0, math.floor(middle - 10))
        y_max = min(100, math.ceil(middle + 10))

    return y_min, y_max


def format_time(value):
    try:
        return datetime.fromisoformat(value).strftime("%H:%M")
    except (TypeError, ValueError):
        return value if isinstance(value, str) else ""


def render_history_svg(history):
    """Returns the SVG markup of the chart history (without the XML header)."""
    fig, ax = plt.subplots(figsize=(8, 3))
    positions = list(range(len(history)))

    for nutrient in NUTRIENTS:
        ax.plot(positions, [point[nutrient] for point in history], label=nutrient.capitalize(),
                color=COLORS[nutrient], linewidth=1.5)

    ax.set_xticks(positions)
    ax.set_xticklabels([format_time(point.get('time')) for point in history], rotation=45)
    ax.set_ylim(*calculate_y_axis_domain(history))
    ax.set_ylabel('%', fontsize=8)
    ax.tick_params(axis='both', labelsize=7)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)
    if history:
        ax.legend(fontsize=7, loc='upper left')

    buffer = io.BytesIO()
    plt.tight_layout()
    plt.savefig(buffer, format='svg', transparent=True)
    plt.close(fig)

    svg_raw = buffer.getvalue().decode('utf-8')
    return svg_raw[svg_raw.find('<svg'):]
