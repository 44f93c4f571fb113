"""Working-copy types for a table layout and their stored JSON shapes."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

# Stored device keys that map onto Device fields; everything else is kept verbatim.
_DEVICE_KEYS = {"id", "name", "type", "color", "quantity", "position", "code", "deviceId", "attachedToDevice"}
_DROPPED_DEVICE_KEYS = {"attachedAccessories"}


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return float(value)


def _coerce_quantity(value: Any) -> int:
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, quantity)


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def from_raw(cls, raw: Any) -> "Position":
        """Parse stored position data; anything malformed becomes the origin."""
        if not isinstance(raw, Mapping):
            return cls()
        return cls(x=_coerce_number(raw.get("x")), y=_coerce_number(raw.get("y")))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(self.x + dx, self.y + dy)


@dataclass
class Device:
    id: str
    name: str
    type: str = ""
    color: Optional[str] = None
    quantity: int = 1
    position: Position = field(default_factory=Position)
    code: Optional[str] = None
    catalog_id: Optional[str] = None
    attached_to: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_attached(self) -> bool:
        return bool(self.attached_to)

    @property
    def has_color(self) -> bool:
        return bool(self.color and self.color.strip())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Device":
        extra = {
            key: value for key, value in data.items()
            if key not in _DEVICE_KEYS and key not in _DROPPED_DEVICE_KEYS
        }
        color = data.get("color")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            color=color if isinstance(color, str) else None,
            quantity=_coerce_quantity(data.get("quantity", 1)),
            position=Position.from_raw(data.get("position")),
            code=data.get("code"),
            catalog_id=data.get("deviceId"),
            attached_to=data.get("attachedToDevice") or None,
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update({
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "quantity": self.quantity,
            "position": self.position.to_dict(),
            "attachedToDevice": self.attached_to,
        })
        if self.color is not None:
            data["color"] = self.color
        if self.code is not None:
            data["code"] = self.code
        if self.catalog_id is not None:
            data["deviceId"] = self.catalog_id
        return data


@dataclass
class Slot:
    id: str
    position: Position = field(default_factory=Position)
    device_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Slot":
        return cls(
            id=str(data.get("id") or ""),
            position=Position.from_raw(data.get("position")),
            device_id=data.get("deviceId") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "position": self.position.to_dict()}
        if self.device_id:
            data["deviceId"] = self.device_id
        return data


@dataclass
class TableLayout:
    """In-memory working copy of a table's persisted layout document."""

    table_type: str
    devices: List[Device] = field(default_factory=list)
    slots: List[Slot] = field(default_factory=list)
    price_tags: List[Dict[str, Any]] = field(default_factory=list)
    image_url: Optional[str] = None
    image_scale: float = 1.0
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    table_id: Optional[str] = None
    name: str = ""

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "TableLayout":
        devices = [Device.from_dict(d) for d in (doc.get("devices") or []) if isinstance(d, Mapping)]
        slots = [Slot.from_dict(s) for s in (doc.get("slots") or []) if isinstance(s, Mapping)]
        price_tags = [dict(t) for t in (doc.get("price_tags") or []) if isinstance(t, Mapping)]
        scale = doc.get("image_scale")
        return cls(
            table_type=str(doc.get("table_type") or ""),
            devices=devices,
            slots=slots,
            price_tags=price_tags,
            image_url=doc.get("image_url"),
            image_scale=float(scale) if isinstance(scale, (int, float)) and scale > 0 else 1.0,
            image_width=doc.get("image_width"),
            image_height=doc.get("image_height"),
            table_id=doc.get("id"),
            name=doc.get("name") or "",
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "devices": [d.to_dict() for d in self.devices],
            "slots": [s.to_dict() for s in self.slots],
            "price_tags": [dict(t) for t in self.price_tags],
            "image_url": self.image_url,
            "image_scale": self.image_scale,
            "image_width": self.image_width,
            "image_height": self.image_height,
        }

    @property
    def has_image(self) -> bool:
        return bool(self.image_width and self.image_height)

    def find(self, device_id: str) -> Optional[Device]:
        return next((d for d in self.devices if d.id == device_id), None)

    def accessories_of(self, parent_id: str) -> List[Device]:
        """Accessories attached to a parent, in stacking (array) order."""
        return [d for d in self.devices if d.attached_to == parent_id]

    def independent_devices(self) -> List[Device]:
        return [d for d in self.devices if not d.is_attached]

    def find_slot(self, slot_id: str) -> Optional[Slot]:
        return next((s for s in self.slots if s.id == slot_id), None)
