"""
Tests for drag placement, clamping and neighbor snapping
"""

import random

import pytest

from app.layout.geometry import layout_surfaces, surface_index
from app.layout.placement import (
    DragSession,
    PlacementError,
    add_device,
    next_device_position,
    place,
    snap_axis,
)
from app.layout.sizing import footprint
from app.layout.types import Device, Position, TableLayout

def make_layout(table_type="singolo", devices=None):
    return TableLayout(table_type=table_type, devices=devices or [], table_id="t1", name="Tavolo")

def inside(layout, device):
    surface = layout_surfaces(layout)[surface_index(layout.table_type, device.position)]
    size = footprint(device)
    local = surface.to_local(device.position)
    return 0 <= local.x <= surface.width - size.width and 0 <= local.y <= surface.height - size.height

def test_drop_below_table_clamps_to_bottom_edge():
    """A device dropped at y=1000 on a single table ends at 505 - height"""
    device = Device(id="a", name="iPad", position=Position(400, 200))
    layout = make_layout(devices=[device])

    drag = DragSession(layout)
    drag.start("a", Position(400, 200))
    result = drag.end(Position(400, 1000))

    assert result.position == Position(400, 505 - 40)
    assert device.position == result.position
    assert not drag.active

def test_snap_to_left_edge_example():
    """x=96 snaps to the neighbor's left edge at 100, not to the far edge at 390"""
    layout = make_layout(devices=[
        Device(id="a", name="iPad", position=Position(100, 50)),
        Device(id="b", name="Mac", position=Position(250, 300)),
        Device(id="c", name="Watch", position=Position(600, 200)),
    ])
    device = layout.find("c")

    position, guides = place(layout, device, Position(96, 200))

    assert position.x == 100
    assert guides.x == [100]

def test_snap_is_idempotent():
    """Placing an already snapped position again does not move it"""
    layout = make_layout(devices=[
        Device(id="a", name="iPad", position=Position(100, 50)),
        Device(id="b", name="Mac", position=Position(110, 300)),
        Device(id="c", name="Watch", position=Position(600, 200)),
    ])
    device = layout.find("c")

    first, _ = place(layout, device, Position(106, 62))
    second, _ = place(layout, device, first)

    assert first == second

def test_snap_axis_prefers_exact_match():
    assert snap_axis(110, [100, 110], 15, lambda t: True) == (110, 110)
    assert snap_axis(104, [100, 110], 15, lambda t: True) == (100, 100)
    assert snap_axis(104, [100, 110], 15, lambda t: t > 105) == (110, 110)
    assert snap_axis(200, [100, 110], 15, lambda t: True) == (200, None)

@pytest.mark.parametrize("table_type", ["singolo", "doppio_back_to_back", "doppio_free_standing"])
def test_any_pointer_keeps_device_on_a_surface(table_type):
    """Random pointers never push a device outside its surface"""
    rng = random.Random(42)
    layout = make_layout(table_type, [
        Device(id="a", name="iPad Pro 13 pollici", color="Argento", position=Position(100, 100)),
        Device(id="b", name="Mac", position=Position(700, 300)),
    ])
    drag = DragSession(layout)
    for _ in range(200):
        drag.start("a", layout.find("a").position)
        drag.move(Position(rng.uniform(-3000, 5000), rng.uniform(-3000, 5000)))
        drag.end(Position(rng.uniform(-3000, 5000), rng.uniform(-3000, 5000)))
        assert inside(layout, layout.find("a"))

def test_drag_rejects_attached_accessory():
    layout = make_layout(devices=[
        Device(id="a", name="iPad", position=Position(100, 100)),
        Device(id="k", name="Magic Keyboard", type="Accessori", attached_to="a"),
    ])

    with pytest.raises(PlacementError):
        DragSession(layout).start("k", Position(0, 0))

def test_move_without_start_fails():
    with pytest.raises(PlacementError):
        DragSession(make_layout()).move(Position(10, 10))

def test_parent_drag_carries_accessories():
    """Accessories keep their offset from the parent while it moves"""
    parent = Device(id="a", name="iPad", position=Position(300, 400))
    accessory = Device(id="k", name="Magic Keyboard", type="Accessori", attached_to="a")
    layout = make_layout(devices=[parent, accessory])

    drag = DragSession(layout)
    drag.start("a", Position(300, 400))
    drag.move(Position(500, 420))
    before = (accessory.position.x - parent.position.x, accessory.position.y - parent.position.y)
    drag.end(Position(520, 430))
    after = (accessory.position.x - parent.position.x, accessory.position.y - parent.position.y)

    assert before == after == (5, 45)

def test_accessory_drop_on_device_attaches():
    parent = Device(id="a", name="iPad", position=Position(300, 100))
    pencil = Device(id="p", name="Apple Pencil", type="Accessori", position=Position(800, 300))
    layout = make_layout(devices=[parent, pencil])

    drag = DragSession(layout)
    drag.start("p", Position(810, 310))
    result = drag.end(Position(330, 120))

    assert result.attached_to == "a"
    assert pencil.attached_to == "a"
    assert pencil.position == Position(305, 55)

def test_new_devices_cascade():
    layout = make_layout()
    assert next_device_position(layout) == Position(100, 100)

    add_device(layout, "a", "iPad")
    second = add_device(layout, "b", "Mac", quantity=0)

    assert second.position == Position(120, 120)
    assert second.quantity == 1
    with pytest.raises(PlacementError):
        add_device(layout, "a", "iPad")

def test_back_to_back_drag_crosses_to_right_surface():
    device = Device(id="a", name="iPad", position=Position(100, 100))
    layout = make_layout("doppio_back_to_back", [device])

    drag = DragSession(layout)
    drag.start("a", Position(100, 100))
    assert drag.end(Position(2500, 100)).position == Position(2000 - 140, 100)

    drag.start("a", Position(1860, 100))
    assert drag.end(Position(1000, 100)).position == Position(1000, 100)

def test_back_to_back_drop_left_of_midline_stays_on_left_surface():
    device = Device(id="a", name="iPad", position=Position(100, 100))
    layout = make_layout("doppio_back_to_back", [device])

    drag = DragSession(layout)
    drag.start("a", Position(100, 100))
    result = drag.end(Position(990, 100))

    assert result.position == Position(1000 - 140, 100)
    assert surface_index(layout.table_type, result.position) == 0
