"""Read-only table rendering with missing-device highlighting.

The renderer replays stored device positions through the same surface rules
the editor uses and produces a plain view model (surfaces with positioned
device boxes). Devices reported missing by open store issues are flagged.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.layout.constants import (
    ACCESSORY_Z_INDEX,
    DEVICE_WIDTH,
    DEVICE_Z_INDEX,
    VIEWER_ZOOM_MAX,
    VIEWER_ZOOM_MIN,
    VIEWER_ZOOM_STEP,
)
from app.layout.geometry import (
    LayoutError,
    layout_surfaces,
    surface_index,
    type_label,
)
from app.layout.sizing import device_height
from app.layout.types import Device, TableLayout

MISSING_DEVICE_ISSUE = "missing_device"
RESOLVED_STATUS = "resolved"
UNSUPPORTED_PLACEHOLDER = "Tipo tavolo non supportato"

# "[Dispositivo mancante: ]iPhone 16 (White) - reason"
_TITLE_RE = re.compile(
    r"^\s*(?:(?:dispositivo mancante|missing device)\s*:\s*)?(?P<device>.+?) - (?P<reason>.+)$",
    re.IGNORECASE | re.DOTALL,
)
_COLOR_RE = re.compile(r"^(?P<name>.+?)\s*\((?P<color>[^)]+)\)$")
_PARENT_PHRASES = ("associato a: {}", "collegato a: {}", "associato a {}", "collegato a {}",
                   "attached to: {}", "attached to {}")
_ASSOCIATION_WORDS = ("associato", "collegato", "legato a", "attached to")


# ============================================================
# Missing Devices
# ============================================================
@dataclass
class MissingDevice:
    name: str
    color: Optional[str]
    reason: str
    description: str = ""
    issue_id: Optional[str] = None
    device_id: Optional[str] = None
    table_id: Optional[str] = None

    def applies_to(self, table_id: Optional[str]) -> bool:
        return not self.table_id or self.table_id == table_id


def parse_missing_title(title: str):
    """Split an issue title into (name, color, reason); None when it does not match."""
    match = _TITLE_RE.match(title or "")
    if not match:
        return None
    device = match.group("device").strip()
    color = None
    color_match = _COLOR_RE.match(device)
    if color_match:
        device = color_match.group("name").strip()
        color = color_match.group("color").strip()
    return device, color, match.group("reason").strip()


def missing_devices(issues: Iterable[Mapping[str, Any]]) -> List[MissingDevice]:
    """Open missing-device issues, parsed. Structured device references win over titles."""
    result = []
    for issue in issues:
        if issue.get("issue_type") != MISSING_DEVICE_ISSUE or issue.get("status") == RESOLVED_STATUS:
            continue
        parsed = parse_missing_title(issue.get("title") or "")
        device_id = issue.get("device_instance_id")
        if parsed is None and not device_id:
            continue
        name, color, reason = parsed if parsed else ("", None, "")
        result.append(MissingDevice(
            name=name,
            color=color,
            reason=reason,
            description=issue.get("description") or "",
            issue_id=issue.get("id"),
            device_id=device_id,
            table_id=issue.get("table_id"),
        ))
    return result


def _mentions_parent(description: str, accessory: Device, parent: Device) -> bool:
    text = description.lower()
    parent_name = parent.name.lower()
    if any(phrase.format(parent_name) in text for phrase in _PARENT_PHRASES):
        return True
    return accessory.name.lower() in text and parent_name in text


def is_device_missing(device: Device, missing: Iterable[MissingDevice],
                      parent: Optional[Device] = None) -> bool:
    missing = list(missing)
    if any(m.device_id == device.id for m in missing if m.device_id):
        return True
    textual = [m for m in missing if not m.device_id and m.name == device.name]

    if not device.attached_to:
        device_color = device.color.strip() if device.has_color else None
        for m in textual:
            if m.color and device_color and m.color != device_color:
                continue
            return True
        return False

    if parent is not None:
        return any(_mentions_parent(m.description, device, parent) for m in textual)

    # parent is gone: only issues that do not talk about an association apply
    return any(
        not any(word in m.description.lower() for word in _ASSOCIATION_WORDS)
        for m in textual
    )


# ============================================================
# Zoom
# ============================================================
class ZoomControl:
    """Display-only scale factor stepping within fixed bounds."""

    def __init__(self, value: float = 1.0, minimum: float = VIEWER_ZOOM_MIN,
                 maximum: float = VIEWER_ZOOM_MAX, step: float = VIEWER_ZOOM_STEP):
        self.minimum = minimum
        self.maximum = maximum
        self.step = step
        self.value = self._bound(value)

    def _bound(self, value: float) -> float:
        return round(min(max(value, self.minimum), self.maximum), 2)

    def zoom_in(self) -> float:
        self.value = self._bound(self.value + self.step)
        return self.value

    def zoom_out(self) -> float:
        self.value = self._bound(self.value - self.step)
        return self.value

    def reset(self) -> float:
        self.value = self._bound(1.0)
        return self.value

    @property
    def can_zoom_in(self) -> bool:
        return self.value < self.maximum

    @property
    def can_zoom_out(self) -> bool:
        return self.value > self.minimum


# ============================================================
# View Model
# ============================================================
@dataclass
class RenderedDevice:
    id: str
    name: str
    color: Optional[str]
    quantity: int
    x: float
    y: float
    width: float
    height: float
    missing: bool
    attached: bool

    @property
    def z_index(self) -> int:
        return ACCESSORY_Z_INDEX if self.attached else DEVICE_Z_INDEX

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name or "Dispositivo senza nome",
            "color": self.color,
            "quantity": self.quantity,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "missing": self.missing,
            "attached": self.attached,
            "z_index": self.z_index,
        }


@dataclass
class RenderedSurface:
    index: int
    width: float
    height: float
    devices: List[RenderedDevice] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "width": self.width,
            "height": self.height,
            "devices": [d.to_dict() for d in self.devices],
        }


@dataclass
class TableView:
    table_id: Optional[str]
    name: str
    table_type: str
    type_label: str
    supported: bool
    zoom: float = 1.0
    surfaces: List[RenderedSurface] = field(default_factory=list)
    device_count: int = 0
    missing_count: int = 0
    placeholder: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_id": self.table_id,
            "name": self.name,
            "table_type": self.table_type,
            "type_label": self.type_label,
            "supported": self.supported,
            "zoom": self.zoom,
            "surfaces": [s.to_dict() for s in self.surfaces],
            "device_count": self.device_count,
            "missing_count": self.missing_count,
            "placeholder": self.placeholder,
            "image_url": self.image_url,
        }


def render_table(layout: TableLayout, missing: Iterable[MissingDevice] = (), zoom: float = 1.0) -> TableView:
    missing = [m for m in missing if m.applies_to(layout.table_id)]
    view = TableView(
        table_id=layout.table_id,
        name=layout.name,
        table_type=layout.table_type,
        type_label=type_label(layout.table_type),
        supported=True,
        zoom=ZoomControl(zoom).value,
        device_count=len(layout.devices),
        image_url=layout.image_url,
    )
    try:
        table_surfaces = layout_surfaces(layout)
    except LayoutError:
        view.supported = False
        view.placeholder = UNSUPPORTED_PLACEHOLDER
        return view

    rendered = [RenderedSurface(s.index, s.width, s.height) for s in table_surfaces]
    for device in layout.devices:
        surface = table_surfaces[surface_index(layout.table_type, device.position)]
        height = device_height(device.name, device.color)
        local = surface.to_local(surface.clamp(device.position, DEVICE_WIDTH, height))
        parent = layout.find(device.attached_to) if device.attached_to else None
        is_missing = is_device_missing(device, missing, parent)
        rendered[surface.index].devices.append(RenderedDevice(
            id=device.id,
            name=device.name,
            color=device.color if device.has_color else None,
            quantity=device.quantity,
            x=local.x,
            y=local.y,
            width=DEVICE_WIDTH,
            height=height,
            missing=is_missing,
            attached=device.is_attached,
        ))
        if is_missing:
            view.missing_count += 1
    view.surfaces = rendered
    return view
