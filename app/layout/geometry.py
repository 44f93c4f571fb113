"""Table shapes, their surfaces and the board coordinate conventions.

Every device position is stored in global board coordinates. A table is made
of one or two rectangular surfaces placed on that board; surface membership
and surface-local coordinates are derived from the global position alone.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from app.layout.constants import (
    BACK_TO_BACK_WIDTH,
    FREE_STANDING_GAP,
    FREE_STANDING_MARGIN,
    IMAGE_BOARD_PADDING,
    TABLE_HEIGHT,
    TABLE_WIDTH,
)
from app.layout.types import Device, Position, TableLayout


# ============================================================
# Error Types
# ============================================================
class LayoutError(ValueError):
    """Raised when a layout operation cannot be applied."""

    error_code = "layout_error"


class UnsupportedTableType(LayoutError):
    error_code = "unsupported_table_type"


# ============================================================
# Table Types
# ============================================================
class TableType(str, Enum):
    SINGLE = "singolo"
    BACK_TO_BACK = "doppio_back_to_back"
    FREE_STANDING = "doppio_free_standing"
    IMAGE_BOARD = "test"

    @classmethod
    def parse(cls, value) -> "TableType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedTableType(f"Unsupported table type: {value!r}") from None

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]


_TYPE_LABELS = {
    TableType.SINGLE: "Singolo",
    TableType.BACK_TO_BACK: "Doppio Back to Back",
    TableType.FREE_STANDING: "Doppio Free Standing",
    TableType.IMAGE_BOARD: "Tavolo da immagine",
}


def type_label(value) -> str:
    """Display label for a stored table type; unknown values are shown as-is."""
    try:
        return TableType.parse(value).label
    except UnsupportedTableType:
        return str(value)


# ============================================================
# Boards and Surfaces
# ============================================================
@dataclass(frozen=True)
class BoardSize:
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.width / 2

    @property
    def center_y(self) -> float:
        return self.height / 2

    def scaled(self, factor: float) -> "BoardSize":
        return BoardSize(self.width * factor, self.height * factor)


@dataclass(frozen=True)
class Surface:
    index: int
    origin_x: float
    origin_y: float
    width: float
    height: float

    @property
    def center_y(self) -> float:
        """Vertical midpoint in global board coordinates."""
        return self.origin_y + self.height / 2

    def to_local(self, pos: Position) -> Position:
        return Position(pos.x - self.origin_x, pos.y - self.origin_y)

    def to_global(self, pos: Position) -> Position:
        return Position(pos.x + self.origin_x, pos.y + self.origin_y)

    def max_x(self, item_width: float) -> float:
        return max(0.0, self.width - item_width)

    def max_y(self, item_height: float) -> float:
        return max(0.0, self.height - item_height)

    def clamp(self, pos: Position, item_width: float, item_height: float) -> Position:
        """Clamp a global top-left corner so the item stays on this surface."""
        local = self.to_local(pos)
        x = min(max(local.x, 0.0), self.max_x(item_width))
        y = min(max(local.y, 0.0), self.max_y(item_height))
        return self.to_global(Position(x, y))

    def accepts_x(self, x: float, item_width: float) -> bool:
        return 0 <= x - self.origin_x <= self.max_x(item_width)

    def accepts_y(self, y: float, item_height: float) -> bool:
        return 0 <= y - self.origin_y <= self.max_y(item_height)


def image_board_size(natural_width: float, natural_height: float, image_scale: float = 1.0) -> BoardSize:
    """Logical image board: the scaled reference image plus fixed padding."""
    return BoardSize(
        width=natural_width * image_scale + IMAGE_BOARD_PADDING,
        height=natural_height * image_scale + IMAGE_BOARD_PADDING,
    )


def board_size(table_type, image_width: Optional[float] = None,
               image_height: Optional[float] = None, image_scale: float = 1.0) -> BoardSize:
    kind = TableType.parse(table_type)
    if kind is TableType.SINGLE:
        return BoardSize(TABLE_WIDTH, TABLE_HEIGHT)
    if kind is TableType.BACK_TO_BACK:
        return BoardSize(BACK_TO_BACK_WIDTH, TABLE_HEIGHT)
    if kind is TableType.FREE_STANDING:
        return BoardSize(TABLE_WIDTH, 2 * TABLE_HEIGHT + FREE_STANDING_GAP)
    if not image_width or not image_height:
        raise LayoutError("Image board has no reference image")
    return image_board_size(image_width, image_height, image_scale)


def layout_board(layout: TableLayout) -> BoardSize:
    return board_size(layout.table_type, layout.image_width, layout.image_height, layout.image_scale)


def surfaces(table_type, board: Optional[BoardSize] = None) -> List[Surface]:
    kind = TableType.parse(table_type)
    if kind is TableType.SINGLE:
        return [Surface(0, 0, 0, TABLE_WIDTH, TABLE_HEIGHT)]
    if kind is TableType.BACK_TO_BACK:
        half = BACK_TO_BACK_WIDTH / 2
        return [Surface(0, 0, 0, half, TABLE_HEIGHT), Surface(1, half, 0, half, TABLE_HEIGHT)]
    if kind is TableType.FREE_STANDING:
        return [
            Surface(0, 0, 0, TABLE_WIDTH, TABLE_HEIGHT),
            Surface(1, 0, TABLE_HEIGHT + FREE_STANDING_GAP, TABLE_WIDTH, TABLE_HEIGHT),
        ]
    if board is None:
        raise LayoutError("Image board surfaces need the board size")
    return [Surface(0, 0, 0, board.width, board.height)]


def surface_index(table_type, pos: Position) -> int:
    kind = TableType.parse(table_type)
    if kind is TableType.BACK_TO_BACK:
        return 0 if pos.x < BACK_TO_BACK_WIDTH / 2 else 1
    if kind is TableType.FREE_STANDING:
        return 0 if pos.y < TABLE_HEIGHT + FREE_STANDING_MARGIN else 1
    return 0


def surface_for(table_type, pos: Position, board: Optional[BoardSize] = None) -> Surface:
    return surfaces(table_type, board)[surface_index(table_type, pos)]


@dataclass(frozen=True)
class SurfacePlacement:
    device_id: str
    surface: int
    local: Position


def assign_surfaces(table_type, devices: Iterable[Device],
                    board: Optional[BoardSize] = None) -> List[SurfacePlacement]:
    """Surface membership and local coordinates for each device, in input order."""
    table_surfaces = surfaces(table_type, board)
    placements = []
    for device in devices:
        surface = table_surfaces[surface_index(table_type, device.position)]
        placements.append(SurfacePlacement(device.id, surface.index, surface.to_local(device.position)))
    return placements


def layout_surfaces(layout: TableLayout) -> List[Surface]:
    board = None
    if TableType.parse(layout.table_type) is TableType.IMAGE_BOARD:
        board = layout_board(layout)
    return surfaces(layout.table_type, board)


def layout_surface_for(layout: TableLayout, pos: Position) -> Surface:
    return layout_surfaces(layout)[surface_index(layout.table_type, pos)]
