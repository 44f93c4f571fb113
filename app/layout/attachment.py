"""Accessory attachment: one-level parent links and stacked offsets.

An accessory bound to a parent device is never positioned on its own. Its
position is the parent's position plus a stacking offset that depends on the
accessories attached before it and on which half of the surface the parent
sits in.
"""

import logging
from typing import List, Optional, Sequence

from app.layout.constants import (
    ACCESSORY_FIRST_GAP,
    ACCESSORY_GUTTER,
    ACCESSORY_KEYWORDS,
    ACCESSORY_X_OFFSET,
)
from app.layout.geometry import LayoutError, layout_surface_for
from app.layout.sizing import accessory_slot_height, footprint
from app.layout.types import Device, Position, TableLayout

logger = logging.getLogger(__name__)

NORTH = "north"
SOUTH = "south"


class AttachmentError(LayoutError):
    error_code = "attachment_error"


def is_accessory(device: Device) -> bool:
    text = f"{device.type} {device.name}".lower()
    return any(keyword in text for keyword in ACCESSORY_KEYWORDS)


def stacking_side(layout: TableLayout, parent_position: Position) -> str:
    """North-resident parents stack upward, south-resident ones downward."""
    surface = layout_surface_for(layout, parent_position)
    return NORTH if parent_position.y < surface.center_y else SOUTH


def stack_offset(side: str, preceding: Sequence[Device]) -> Position:
    """Offset from the parent's corner for the accessory after `preceding`."""
    distance = ACCESSORY_FIRST_GAP
    for accessory in preceding:
        distance += accessory_slot_height(accessory.name, accessory.color) + ACCESSORY_GUTTER
    dy = -distance if side == NORTH else distance
    return Position(ACCESSORY_X_OFFSET, dy)


def restack(layout: TableLayout, parent_id: str, parent_position: Optional[Position] = None) -> List[Device]:
    """Reposition every accessory of a parent from the parent's position."""
    parent = layout.find(parent_id)
    if parent is None:
        return []
    anchor = parent_position or parent.position
    accessories = layout.accessories_of(parent_id)
    if not accessories:
        return []
    side = stacking_side(layout, anchor)
    for index, accessory in enumerate(accessories):
        offset = stack_offset(side, accessories[:index])
        accessory.position = anchor.offset(offset.x, offset.y)
    return accessories


def attach(layout: TableLayout, accessory_id: str, parent_id: str) -> Device:
    accessory = layout.find(accessory_id)
    parent = layout.find(parent_id)
    if accessory is None or parent is None:
        raise AttachmentError("Device not found on this table")
    if accessory.id == parent.id:
        raise AttachmentError("A device cannot be attached to itself")
    if not is_accessory(accessory):
        raise AttachmentError(f"{accessory.name} is not an accessory")
    if is_accessory(parent) or parent.is_attached:
        raise AttachmentError("Accessories cannot carry other accessories")
    if layout.accessories_of(accessory.id):
        raise AttachmentError(f"{accessory.name} already carries accessories")

    if accessory.attached_to != parent.id:
        previous = accessory.attached_to
        accessory.attached_to = parent.id
        # append to the parent's stack
        layout.devices.remove(accessory)
        layout.devices.append(accessory)
        if previous:
            restack(layout, previous)
        logger.info("Attached %s to %s", accessory.id, parent.id)
    restack(layout, parent.id)
    return accessory


def detach(layout: TableLayout, accessory_id: str) -> Device:
    accessory = layout.find(accessory_id)
    if accessory is None:
        raise AttachmentError("Device not found on this table")
    previous = accessory.attached_to
    accessory.attached_to = None
    if previous:
        restack(layout, previous)
    return accessory


def find_drop_target(layout: TableLayout, point: Position, exclude_id: str,
                     pixel_ratio: float = 1.0) -> Optional[Device]:
    """First independent non-accessory device whose footprint contains the point."""
    for device in layout.devices:
        if device.id == exclude_id or device.is_attached or is_accessory(device):
            continue
        size = footprint(device, pixel_ratio)
        left, top = device.position.x, device.position.y
        if left <= point.x <= left + size.width and top <= point.y <= top + size.height:
            return device
    return None


def remove_device(layout: TableLayout, device_id: str) -> List[str]:
    """Delete a device and everything attached to it; returns the removed ids."""
    target = layout.find(device_id)
    if target is None:
        return []
    removed = {device_id} | {d.id for d in layout.accessories_of(device_id)}
    layout.devices = [d for d in layout.devices if d.id not in removed]

    for slot in layout.slots:
        if slot.device_id in removed:
            slot.device_id = None
    layout.price_tags = [
        tag for tag in layout.price_tags
        if not (tag.get("isAutomatic") and tag.get("deviceId") in removed)
    ]
    for tag in layout.price_tags:
        associated = tag.get("associatedDevices")
        if associated:
            tag["associatedDevices"] = [d for d in associated if d not in removed]

    if target.attached_to:
        restack(layout, target.attached_to)
    return [device_id] + sorted(removed - {device_id})
