"""
Table layout engine: geometry, placement, attachment, slots and rendering
"""

from .types import Device, Position, Slot, TableLayout
from .geometry import BoardSize, LayoutError, Surface, TableType, UnsupportedTableType
from .attachment import AttachmentError
from .placement import DragSession, PlacementError
from .slots import ImageRect, SlotError, SlotMapper
from .renderer import TableView, ZoomControl, render_table

__all__ = [
    "Device", "Position", "Slot", "TableLayout",
    "BoardSize", "LayoutError", "Surface", "TableType", "UnsupportedTableType",
    "AttachmentError", "DragSession", "PlacementError",
    "ImageRect", "SlotError", "SlotMapper",
    "TableView", "ZoomControl", "render_table",
]
