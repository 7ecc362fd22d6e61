"""Room geometry for the rooms page.

Dimensions are stored in centimetres; everything shown to a visitor is in
metres and square metres, rounded to two decimals for display only.
"""

from dataclasses import dataclass

DEFAULT_CEILING_HEIGHT_M = 2.4

FLOOR_LABELS = {
    0: "Ground Floor",
    1: "First Floor",
    2: "Second Floor",
    3: "Third Floor",
}

ROOM_TYPE_COLORS = {
    "kitchen": "room-kitchen",
    "bedroom": "room-bedroom",
    "bathroom": "room-bathroom",
    "en-suite": "room-bathroom",
    "living room": "room-living",
    "lounge": "room-living",
    "dining": "room-dining",
    "hallway": "room-hallway",
    "utility": "room-utility",
    "garage": "room-garage",
    "study": "room-study",
    "office": "room-study",
}
DEFAULT_ROOM_COLOR = "room-other"


def cm_to_m(cm: float | None) -> float:
    return (cm or 0) / 100


def format_m(value: float) -> str:
    return f"{value:.2f}"


def floor_area(length_cm: float | None, width_cm: float | None) -> float:
    """Floor area in m²."""
    return cm_to_m(length_cm) * cm_to_m(width_cm)


def wall_area(wall_length_cm: float | None, ceiling_height_m: float = DEFAULT_CEILING_HEIGHT_M) -> float:
    """Area in m² of one wall of the given length."""
    return cm_to_m(wall_length_cm) * ceiling_height_m


@dataclass
class Wall:
    name: str
    length_m: float
    area_m2: float


@dataclass
class WallBreakdown:
    walls: list[Wall]
    total_area_m2: float


def wall_breakdown(
    length_cm: float | None,
    width_cm: float | None,
    ceiling_height_m: float = DEFAULT_CEILING_HEIGHT_M,
) -> WallBreakdown:
    """The four walls of a rectangular room and their combined area.

    Total wall area is the perimeter times the ceiling height,
    2 × (length + width) × height.
    """
    length_wall = wall_area(length_cm, ceiling_height_m)
    width_wall = wall_area(width_cm, ceiling_height_m)
    length_m = cm_to_m(length_cm)
    width_m = cm_to_m(width_cm)

    return WallBreakdown(
        walls=[
            Wall("Wall 1 (Length)", length_m, length_wall),
            Wall("Wall 2 (Width)", width_m, width_wall),
            Wall("Wall 3 (Length)", length_m, length_wall),
            Wall("Wall 4 (Width)", width_m, width_wall),
        ],
        total_area_m2=2 * (length_wall + width_wall),
    )


def floor_label(level: int) -> str:
    return FLOOR_LABELS.get(level, f"Floor {level}")


def room_type_color(room_type: str | None) -> str:
    return ROOM_TYPE_COLORS.get((room_type or "").lower(), DEFAULT_ROOM_COLOR)


def group_by_floor(rooms: list) -> list[tuple[int, list]]:
    """Rooms grouped by floor_level, floors ascending, room order preserved."""
    floors: dict[int, list] = {}
    for room in rooms:
        floors.setdefault(room.floor_level, []).append(room)
    return sorted(floors.items(), key=lambda item: item[0])


def parse_ceiling_height(value: str | None) -> float:
    """Ceiling height from a query parameter, falling back to the default."""
    try:
        height = float(value) if value else DEFAULT_CEILING_HEIGHT_M
    except ValueError:
        return DEFAULT_CEILING_HEIGHT_M
    if not 1.5 <= height <= 6.0:
        return DEFAULT_CEILING_HEIGHT_M
    return height
