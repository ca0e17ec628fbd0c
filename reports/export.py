"""
Plain comma-joined CSV layouts. Values are not quoted or escaped.
"""
from django.utils import timezone

from devices.models import UNCATEGORIZED

DEVICE_HEADER = "Device ID,Device Name,Group,Status,Nitrogen (%),Phosphorus (%),Potassium (%)"


def export_timestamp(when=None):
    when = when or timezone.now()
    return when.isoformat().replace(':', '-').replace('.', '-')


def generate_device_csv(devices):
    rows = [
        ",".join([
            str(device.id),
            device.name,
            device.group or UNCATEGORIZED,
            device.status,
            f"{device.readings['nitrogen']:.1f}",
            f"{device.readings['phosphorus']:.1f}",
            f"{device.readings['potassium']:.1f}",
        ])
        for device in devices
    ]
    return "\n".join([DEVICE_HEADER] + rows)


def generate_chart_csv(history):
    """Columns are taken from the keys of the first point."""
    columns = list(history[0].keys()) if history else []
    rows = [",".join(str(point.get(column, "")) for column in columns) for point in history]
    return "\n".join([",".join(columns)] + rows)


def device_filename(when=None):
    return f"nitcat-readings-{export_timestamp(when)}.csv"


def chart_filename(when=None):
    return f"nitcat-chart-{export_timestamp(when)}.csv"
