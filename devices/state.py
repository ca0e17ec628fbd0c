from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import Optional

from .models import Device, NUTRIENTS, UNCATEGORIZED


@dataclass(frozen=True)
class DeviceState:
    """
    Snapshot of a device as it travels through the simulation, the cache
    and the gate controller. Converted to and from `Device` rows at the
    repository boundary.
    """
    id: str
    name: str
    user_id: int
    status: str = Device.Status.ONLINE.value
    nitrogen_gate: Optional[str] = Device.Gate.CLOSED.value
    nitrogen_timer: Optional[int] = 24
    group: str = UNCATEGORIZED
    readings: dict = field(default_factory=lambda: {n: 0.0 for n in NUTRIENTS})
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, device):
        return cls(
            id=str(device.id),
            name=device.name,
            user_id=device.user_id,
            status=device.status,
            nitrogen_gate=device.nitrogen_gate,
            nitrogen_timer=device.nitrogen_timer,
            group=device.group_name or UNCATEGORIZED,
            readings=device.readings,
            updated_at=device.updated_at,
        )

    @classmethod
    def from_dict(cls, data):
        """Raises KeyError, TypeError or ValueError on malformed data."""
        updated_at = data.get('updated_at')
        return cls(
            id=str(data['id']),
            name=data['name'],
            user_id=int(data['user_id']),
            status=data.get('status', Device.Status.ONLINE.value),
            nitrogen_gate=data.get('nitrogen_gate'),
            nitrogen_timer=data.get('nitrogen_timer'),
            group=data.get('group') or UNCATEGORIZED,
            readings={n: float(data['readings'][n]) for n in NUTRIENTS},
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    def to_dict(self):
        data = asdict(self)
        data['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return data

    def with_readings(self, readings):
        return replace(self, readings=dict(readings))

    def with_gate(self, gate):
        return replace(self, nitrogen_gate=gate)

    def touched(self, when):
        return replace(self, updated_at=when)
