"""Pointer-drag placement: containment, neighbor snapping and drop handling.

Pointers are given in logical board coordinates. A drag is a small state
machine: start() records where inside the device the pointer grabbed it,
move() projects the pointer onto a surface, clamps and snaps, and end()
either finalizes the free position or hands an accessory over to the
attachment resolver.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from app.layout.attachment import attach, find_drop_target, is_accessory, restack
from app.layout.constants import NEW_DEVICE_ORIGIN, NEW_DEVICE_STEP
from app.layout.geometry import LayoutError, Surface, layout_surface_for
from app.layout.sizing import Footprint, footprint, snap_threshold
from app.layout.types import Device, Position, TableLayout

logger = logging.getLogger(__name__)


class PlacementError(LayoutError):
    error_code = "placement_error"


@dataclass
class SnapGuides:
    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)

    def clear(self) -> None:
        self.x = []
        self.y = []

    def to_dict(self):
        return {"x": list(self.x), "y": list(self.y)}


@dataclass
class DropResult:
    device_id: str
    position: Position
    attached_to: Optional[str] = None


def snap_targets(layout: TableLayout, exclude_id: str,
                 pixel_ratio: float = 1.0) -> Tuple[List[float], List[float]]:
    """Left/right and top/bottom edges of the other independent devices, in device order."""
    xs: List[float] = []
    ys: List[float] = []
    for device in layout.devices:
        if device.id == exclude_id or device.is_attached:
            continue
        size = footprint(device, pixel_ratio)
        xs.extend([device.position.x, device.position.x + size.width])
        ys.extend([device.position.y, device.position.y + size.height])
    return xs, ys


def snap_axis(value: float, targets: Sequence[float], threshold: float,
              accepts: Callable[[float], bool]) -> Tuple[float, Optional[float]]:
    """Snap one axis: an exact hit is kept, otherwise the first target in range wins."""
    usable = [t for t in targets if accepts(t)]
    if value in usable:
        return value, value
    for target in usable:
        if abs(value - target) <= threshold:
            return target, target
    return value, None


def place(layout: TableLayout, device: Device, candidate: Position,
          pixel_ratio: float = 1.0) -> Tuple[Position, SnapGuides]:
    """Clamp a candidate top-left corner onto its surface, then snap it to neighbors."""
    size = footprint(device, pixel_ratio)
    surface = layout_surface_for(layout, candidate)
    clamped = surface.clamp(candidate, size.width, size.height)
    return _snap(layout, device, clamped, surface, size, pixel_ratio)


def _snap(layout: TableLayout, device: Device, clamped: Position, surface: Surface,
          size: Footprint, pixel_ratio: float) -> Tuple[Position, SnapGuides]:
    xs, ys = snap_targets(layout, device.id, pixel_ratio)
    threshold = snap_threshold(pixel_ratio)
    x, guide_x = snap_axis(clamped.x, xs, threshold, lambda t: surface.accepts_x(t, size.width))
    y, guide_y = snap_axis(clamped.y, ys, threshold, lambda t: surface.accepts_y(t, size.height))
    guides = SnapGuides(
        x=[guide_x] if guide_x is not None else [],
        y=[guide_y] if guide_y is not None else [],
    )
    return Position(x, y), guides


class DragSession:
    """One pointer drag over a table layout."""

    def __init__(self, layout: TableLayout, pixel_ratio: float = 1.0):
        self.layout = layout
        self.pixel_ratio = pixel_ratio
        self.device_id: Optional[str] = None
        self.grab_offset = Position()
        self.guides = SnapGuides()

    @property
    def active(self) -> bool:
        return self.device_id is not None

    def _dragged(self) -> Device:
        device = self.layout.find(self.device_id) if self.device_id else None
        if device is None:
            self.cancel()
            raise PlacementError("No device is being dragged")
        return device

    def start(self, device_id: str, pointer: Position) -> Device:
        device = self.layout.find(device_id)
        if device is None:
            raise PlacementError(f"Device {device_id} is not on this table")
        if device.is_attached:
            raise PlacementError(f"{device.name} is attached to another device and moves with it")
        self.device_id = device.id
        self.grab_offset = Position(pointer.x - device.position.x, pointer.y - device.position.y)
        self.guides.clear()
        return device

    def _candidate(self, pointer: Position) -> Position:
        return Position(pointer.x - self.grab_offset.x, pointer.y - self.grab_offset.y)

    def move(self, pointer: Position) -> Position:
        device = self._dragged()
        position, self.guides = place(self.layout, device, self._candidate(pointer), self.pixel_ratio)
        device.position = position
        restack(self.layout, device.id)
        return position

    def end(self, pointer: Position) -> DropResult:
        device = self._dragged()
        try:
            if is_accessory(device):
                target = find_drop_target(self.layout, self._candidate(pointer), device.id, self.pixel_ratio)
                if target is not None:
                    attach(self.layout, device.id, target.id)
                    return DropResult(device.id, device.position, attached_to=target.id)
            position = self.move(pointer)
            return DropResult(device.id, position)
        finally:
            self.cancel()

    def cancel(self) -> None:
        self.device_id = None
        self.grab_offset = Position()
        self.guides.clear()


def next_device_position(layout: TableLayout) -> Position:
    step = len(layout.devices) * NEW_DEVICE_STEP
    return Position(NEW_DEVICE_ORIGIN + step, NEW_DEVICE_ORIGIN + step)


def add_device(layout: TableLayout, device_id: str, name: str, device_type: str = "",
               color: Optional[str] = None, quantity: int = 1,
               catalog_id: Optional[str] = None, code: Optional[str] = None) -> Device:
    if layout.find(device_id) is not None:
        raise PlacementError(f"Device {device_id} is already on this table")
    device = Device(
        id=device_id,
        name=name,
        type=device_type,
        color=color,
        quantity=max(1, int(quantity)),
        position=next_device_position(layout),
        catalog_id=catalog_id,
        code=code,
    )
    layout.devices.append(device)
    logger.debug("Added %s at (%s, %s)", device.id, device.position.x, device.position.y)
    return device
