"""Slot mapping for image-board tables.

Slots and devices live in logical board units derived from the reference
image's natural size, the chosen image scale and a fixed padding. The view
zoom only changes how that board is projected to screen pixels, so stored
slot positions never move when the user zooms.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.layout.constants import (
    EDITOR_ZOOM_MAX,
    EDITOR_ZOOM_MIN,
    EDITOR_ZOOM_STEP,
    IMAGE_SCALE_MAX,
    IMAGE_SCALE_MIN,
    SLOT_CONNECTOR_OFFSET,
    SLOT_LANE_FRACTION,
    SLOT_LANE_Y,
    SLOT_MARKER_RADIUS,
    SLOT_RELEASE_X,
    SLOT_RELEASE_Y,
)
from app.layout.geometry import BoardSize, LayoutError, TableType, layout_board
from app.layout.types import Device, Position, Slot, TableLayout

logger = logging.getLogger(__name__)


class SlotError(LayoutError):
    error_code = "slot_error"


@dataclass(frozen=True)
class ImageRect:
    """Bounding box of the rendered image, in the same pixel space as pointer events."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class Connector:
    x: float
    start_y: float
    end_y: float
    from_top: bool


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def editor_zoom(zoom: float) -> float:
    """Nearest editor zoom step inside the allowed range."""
    stepped = round(zoom / EDITOR_ZOOM_STEP) * EDITOR_ZOOM_STEP
    return _clamp(stepped, EDITOR_ZOOM_MIN, EDITOR_ZOOM_MAX)


class SlotMapper:
    def __init__(self, layout: TableLayout, zoom: float = 1.0):
        if TableType.parse(layout.table_type) is not TableType.IMAGE_BOARD:
            raise SlotError("Slots are only available on image-board tables")
        self.layout = layout
        self.zoom = editor_zoom(zoom)

    @property
    def board(self) -> BoardSize:
        try:
            return layout_board(self.layout)
        except LayoutError:
            raise SlotError("Upload a table image before working with slots") from None

    @property
    def rendered_board(self) -> BoardSize:
        return self.board.scaled(self.zoom)

    def set_zoom(self, zoom: float) -> float:
        self.zoom = editor_zoom(zoom)
        return self.zoom

    def set_image_scale(self, scale: float) -> BoardSize:
        self.layout.image_scale = _clamp(scale, IMAGE_SCALE_MIN, IMAGE_SCALE_MAX)
        return self.board

    # --- click <-> board transforms ---

    def to_board(self, x: float, y: float, rect: ImageRect) -> Position:
        if rect.width <= 0 or rect.height <= 0 or not rect.contains(x, y):
            raise SlotError("Click on the table image to create a slot")
        board = self.board
        fraction_x = (x - rect.left) / rect.width
        fraction_y = (y - rect.top) / rect.height
        return Position(
            board.center_x + (fraction_x - 0.5) * board.width,
            board.center_y + (fraction_y - 0.5) * board.height,
        )

    def project(self, slot: Slot, rect: ImageRect) -> Position:
        board = self.board
        fraction_x = (slot.position.x - board.center_x) / board.width + 0.5
        fraction_y = (slot.position.y - board.center_y) / board.height + 0.5
        return Position(rect.left + fraction_x * rect.width, rect.top + fraction_y * rect.height)

    def connector(self, slot: Slot, rect: ImageRect) -> Connector:
        """Vertical guide from just outside the nearer image edge to the slot marker."""
        marker = self.project(slot, rect)
        from_top = abs(marker.y - rect.top) < abs(marker.y - rect.bottom)
        offset = SLOT_CONNECTOR_OFFSET * self.zoom
        radius = SLOT_MARKER_RADIUS * self.zoom
        if from_top:
            return Connector(marker.x, rect.top - offset, marker.y - radius, True)
        return Connector(marker.x, rect.bottom + offset, marker.y + radius, False)

    # --- slot lifecycle ---

    def _slot(self, slot_id: str) -> Slot:
        slot = self.layout.find_slot(slot_id)
        if slot is None:
            raise SlotError(f"Slot {slot_id} not found")
        return slot

    def create_slot(self, x: float, y: float, rect: ImageRect, slot_id: Optional[str] = None) -> Slot:
        slot = Slot(id=slot_id or f"slot-{uuid.uuid4().hex[:12]}", position=self.to_board(x, y, rect))
        self.layout.slots.append(slot)
        return slot

    def move_slot(self, slot_id: str, x: float, y: float, rect: ImageRect) -> Slot:
        slot = self._slot(slot_id)
        slot.position = self.to_board(x, y, rect)
        return slot

    def remove_slot(self, slot_id: str) -> Optional[Device]:
        slot = self._slot(slot_id)
        self.layout.slots = [s for s in self.layout.slots if s.id != slot_id]
        if not slot.device_id:
            return None
        device = self.layout.find(slot.device_id)
        if device is not None:
            device.position = Position(SLOT_RELEASE_X, SLOT_RELEASE_Y)
        return device

    def bind_device(self, slot_id: str, device_id: str) -> Device:
        slot = self._slot(slot_id)
        device = self.layout.find(device_id)
        if device is None:
            raise SlotError(f"Device {device_id} is not on this table")
        if device.is_attached:
            raise SlotError(f"{device.name} follows its parent device and cannot take a slot")
        for other in self.layout.slots:
            if other.device_id == device.id:
                other.device_id = None
        slot.device_id = device.id
        device.position = Position(self.board.width * SLOT_LANE_FRACTION, SLOT_LANE_Y)
        return device

    def overlay(self, rect: ImageRect) -> List[Dict[str, Any]]:
        """Slot markers and connectors in the pixel space of `rect`."""
        items = []
        for slot in self.layout.slots:
            marker = self.project(slot, rect)
            line = self.connector(slot, rect)
            items.append({
                "id": slot.id,
                "deviceId": slot.device_id,
                "marker": marker.to_dict(),
                "radius": SLOT_MARKER_RADIUS * self.zoom,
                "connector": {"x": line.x, "start_y": line.start_y, "end_y": line.end_y, "from_top": line.from_top},
            })
        return items

    def replace_image(self, image_url: str, natural_width: int, natural_height: int) -> None:
        """Swap the reference image; old slots are meaningless against it."""
        if natural_width <= 0 or natural_height <= 0:
            raise SlotError("Image has no size")
        dropped = len(self.layout.slots)
        self.layout.image_url = image_url
        self.layout.image_width = natural_width
        self.layout.image_height = natural_height
        self.layout.slots = []
        logger.info("Replaced image of table %s, %d slots reset", self.layout.table_id, dropped)
