from types import SimpleNamespace

import pytest

from roomsize import geometry


def test_reference_room_at_default_ceiling():
    breakdown = geometry.wall_breakdown(400, 350, 2.4)

    assert geometry.format_m(geometry.floor_area(400, 350)) == "14.00"
    assert geometry.format_m(breakdown.walls[0].area_m2) == "9.60"
    assert geometry.format_m(breakdown.walls[1].area_m2) == "8.40"
    assert geometry.format_m(breakdown.total_area_m2) == "36.00"


def test_wall_breakdown_pairs_opposite_walls():
    breakdown = geometry.wall_breakdown(400, 350)

    assert [w.name for w in breakdown.walls] == [
        "Wall 1 (Length)",
        "Wall 2 (Width)",
        "Wall 3 (Length)",
        "Wall 4 (Width)",
    ]
    assert breakdown.walls[0].length_m == breakdown.walls[2].length_m == 4.0
    assert breakdown.walls[1].area_m2 == breakdown.walls[3].area_m2
    assert breakdown.total_area_m2 == pytest.approx(sum(w.area_m2 for w in breakdown.walls))


def test_total_wall_area_is_perimeter_times_height():
    assert geometry.wall_breakdown(300, 250, 2.7).total_area_m2 == pytest.approx(2 * (3.0 + 2.5) * 2.7)


def test_missing_dimensions_count_as_zero():
    assert geometry.floor_area(None, 350) == 0
    assert geometry.wall_breakdown(None, None).total_area_m2 == 0


@pytest.mark.parametrize("level, label", [
    (0, "Ground Floor"),
    (1, "First Floor"),
    (2, "Second Floor"),
    (3, "Third Floor"),
    (4, "Floor 4"),
])
def test_floor_label(level, label):
    assert geometry.floor_label(level) == label


def test_room_type_color():
    assert geometry.room_type_color("Kitchen") == "room-kitchen"
    assert geometry.room_type_color("conservatory") == geometry.DEFAULT_ROOM_COLOR
    assert geometry.room_type_color(None) == geometry.DEFAULT_ROOM_COLOR


def test_group_by_floor_keeps_room_order():
    rooms = [
        SimpleNamespace(floor_level=1, room_name="Bathroom"),
        SimpleNamespace(floor_level=0, room_name="Kitchen"),
        SimpleNamespace(floor_level=1, room_name="Bedroom 1"),
        SimpleNamespace(floor_level=0, room_name="Lounge"),
    ]

    grouped = geometry.group_by_floor(rooms)

    assert [level for level, _ in grouped] == [0, 1]
    assert [r.room_name for r in grouped[1][1]] == ["Bathroom", "Bedroom 1"]


@pytest.mark.parametrize("value, height", [
    (None, 2.4),
    ("", 2.4),
    ("2.7", 2.7),
    ("tall", 2.4),
    ("0.5", 2.4),
    ("12", 2.4),
])
def test_parse_ceiling_height(value, height):
    assert geometry.parse_ceiling_height(value) == height
