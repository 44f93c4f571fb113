"""
Tests for table geometry, surfaces and label sizing
"""

import pytest

from app.layout.geometry import (
    BoardSize,
    LayoutError,
    TableType,
    UnsupportedTableType,
    assign_surfaces,
    board_size,
    surface_index,
    surfaces,
    type_label,
)
from app.layout.sizing import device_height, display_scale, footprint, label_growth, snap_threshold
from app.layout.types import Device, Position, TableLayout

def test_table_type_parse():
    """Stored type strings map onto table types"""
    assert TableType.parse("singolo") is TableType.SINGLE
    assert TableType.parse("doppio_back_to_back") is TableType.BACK_TO_BACK
    assert TableType.parse("test") is TableType.IMAGE_BOARD

    with pytest.raises(UnsupportedTableType):
        TableType.parse("rotondo")

def test_type_label_unknown_value():
    """Unknown types are shown verbatim instead of failing"""
    assert type_label("doppio_free_standing") == "Doppio Free Standing"
    assert type_label("rotondo") == "rotondo"

def test_board_sizes():
    """Each table type has a fixed board, image boards derive theirs from the image"""
    assert board_size("singolo") == BoardSize(1200, 505)
    assert board_size("doppio_back_to_back") == BoardSize(2000, 505)
    assert board_size("doppio_free_standing") == BoardSize(1200, 1070)
    assert board_size("test", 800, 600, 0.5) == BoardSize(540, 440)

    with pytest.raises(LayoutError):
        board_size("test")

def test_back_to_back_surfaces():
    """Back-to-back tables split at the horizontal midpoint"""
    first, second = surfaces("doppio_back_to_back")
    assert (first.origin_x, first.width) == (0, 1000)
    assert (second.origin_x, second.width) == (1000, 1000)

    assert surface_index("doppio_back_to_back", Position(999, 10)) == 0
    assert surface_index("doppio_back_to_back", Position(1000, 10)) == 1

def test_free_standing_membership_margin():
    """Free-standing surface membership tolerates a margin below the first surface"""
    assert surface_index("doppio_free_standing", Position(10, 554)) == 0
    assert surface_index("doppio_free_standing", Position(10, 555)) == 1

def test_assign_surfaces_local_coordinates():
    """Devices keep input order and get surface-local positions"""
    devices = [
        Device(id="a", name="iPad", position=Position(1200, 100)),
        Device(id="b", name="iPhone", position=Position(300, 40)),
    ]
    placements = assign_surfaces("doppio_back_to_back", devices)

    assert [p.device_id for p in placements] == ["a", "b"]
    assert placements[0].surface == 1
    assert placements[0].local == Position(200, 100)
    assert placements[1].surface == 0
    assert placements[1].local == Position(300, 40)

def test_surface_clamp_keeps_item_inside():
    surface = surfaces("doppio_free_standing")[1]
    clamped = surface.clamp(Position(-50, 5000), 140, 40)
    assert clamped == Position(0, 565 + 505 - 40)

def test_label_growth_thresholds():
    """Long names and colors add label lines"""
    assert label_growth("iPhone", None) == 0
    assert label_growth("iPhone 16 Pro Max 1TB", None) == 15
    assert label_growth("x" * 31, None) == 30
    assert label_growth("iPhone", "Nero") == 15
    assert label_growth("iPhone", "Titanio Naturale Deserto") == 30
    assert label_growth("iPhone", "   ") == 0
    assert device_height("iPhone 16 Pro Max 1TB", "Nero") == 70

def test_high_dpi_scaling():
    """Dense displays shrink the footprint and the snap threshold"""
    assert display_scale(1.0) == 1.0
    assert display_scale(1.5) == 1.0
    assert display_scale(2.0) == pytest.approx(1 / 1.4)

    device = Device(id="a", name="iPad")
    assert footprint(device, 1.0).width == 140
    assert footprint(device, 2.0).width == 100
    assert snap_threshold(2.0) == 11

def test_malformed_positions_load_as_origin():
    """Broken stored data never breaks loading"""
    layout = TableLayout.from_document({
        "table_type": "singolo",
        "devices": [
            {"id": "a", "name": "iPad", "position": {"x": "abc", "y": None}, "quantity": "many"},
            {"id": "b", "name": "Mac", "position": "nowhere", "attachedAccessories": ["x"], "note": "keep"},
        ],
    })
    a, b = layout.devices
    assert a.position == Position(0, 0)
    assert a.quantity == 1
    assert b.position == Position(0, 0)

    stored = b.to_dict()
    assert stored["note"] == "keep"
    assert "attachedAccessories" not in stored
