"""Label-driven device sizing.

Longer names and colors wrap onto extra text lines, so device boxes grow in
fixed increments. These are presentation heuristics kept as pure functions.
"""

from dataclasses import dataclass
from typing import Optional

from app.layout.constants import (
    ACCESSORY_BASE_HEIGHT,
    COLOR_WRAP_LENGTH,
    DEVICE_BASE_HEIGHT,
    DEVICE_WIDTH,
    HIGH_DPI_DAMPING,
    HIGH_DPI_RATIO,
    LABEL_LINE_HEIGHT,
    NAME_SECOND_WRAP_LENGTH,
    NAME_WRAP_LENGTH,
    SNAP_THRESHOLD,
)
from app.layout.types import Device


@dataclass(frozen=True)
class Footprint:
    width: int
    height: int


def label_growth(name: Optional[str], color: Optional[str]) -> int:
    """Extra height needed by the name and color lines of a device label."""
    growth = 0
    name_length = len(name or "")
    if name_length > NAME_WRAP_LENGTH:
        growth += LABEL_LINE_HEIGHT
    if name_length > NAME_SECOND_WRAP_LENGTH:
        growth += LABEL_LINE_HEIGHT
    if color and color.strip():
        growth += LABEL_LINE_HEIGHT
        if len(color) > COLOR_WRAP_LENGTH:
            growth += LABEL_LINE_HEIGHT
    return growth


def device_height(name: Optional[str], color: Optional[str]) -> int:
    return DEVICE_BASE_HEIGHT + label_growth(name, color)


def accessory_slot_height(name: Optional[str], color: Optional[str]) -> int:
    """Vertical space one stacked accessory reserves, gutter excluded."""
    return ACCESSORY_BASE_HEIGHT + label_growth(name, color)


def display_scale(pixel_ratio: float = 1.0) -> float:
    ratio = pixel_ratio or 1.0
    if ratio > HIGH_DPI_RATIO:
        return 1 / (ratio * HIGH_DPI_DAMPING)
    return 1.0


def footprint(device: Device, pixel_ratio: float = 1.0) -> Footprint:
    scale = display_scale(pixel_ratio)
    return Footprint(
        width=round(DEVICE_WIDTH * scale),
        height=round(device_height(device.name, device.color) * scale),
    )


def snap_threshold(pixel_ratio: float = 1.0) -> int:
    return round(SNAP_THRESHOLD * display_scale(pixel_ratio))
