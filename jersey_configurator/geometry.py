from dataclasses import dataclass
from typing import List, Tuple

from .settings import CANVAS_WIDTH

VIEWS = ("front", "back")
PARTS = ("torso", "torsoTrim", "sleeve", "sleeveTrim", "neck")

# Parts that swap left/right when the jersey is seen from behind.
MIRRORED_PARTS = {"sleeve", "sleeveTrim"}


@dataclass(frozen=True)
class Rect:
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

    @property
    def box(self) -> Tuple[float, float, float, float]:
        return (self.left, self.top, self.right, self.bottom)

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x < self.right and self.top <= y < self.bottom

    def mirrored(self, canvas_width: float = CANVAS_WIDTH) -> "Rect":
        return Rect(canvas_width - self.left - self.width, self.top, self.width, self.height)


@dataclass(frozen=True)
class PartPlacement:
    tag: str
    part: str
    rect: Rect


@dataclass(frozen=True)
class TextAnchor:
    role: str
    x: float
    top: float
    size_delta: int
    slot: str
    views: Tuple[str, ...]


# Front view, already in draw order: torso, side trims, sleeves, sleeve trims, collar.
_FRONT_LAYOUT = (
    PartPlacement("torso", "torso", Rect(70, 100, 260, 350)),
    PartPlacement("torsoTrim.left", "torsoTrim", Rect(50, 100, 20, 350)),
    PartPlacement("torsoTrim.right", "torsoTrim", Rect(330, 100, 20, 350)),
    PartPlacement("sleeve.left", "sleeve", Rect(20, 120, 50, 120)),
    PartPlacement("sleeve.right", "sleeve", Rect(330, 120, 50, 120)),
    PartPlacement("sleeveTrim.left", "sleeveTrim", Rect(20, 220, 50, 20)),
    PartPlacement("sleeveTrim.right", "sleeveTrim", Rect(330, 220, 50, 20)),
    PartPlacement("neck", "neck", Rect(150, 80, 100, 40)),
)

TEXT_ANCHORS = (
    TextAnchor("team_name", 200, 150, -4, "secondary", ("back",)),
    TextAnchor("player_number", 200, 220, 20, "accent", VIEWS),
    TextAnchor("player_name", 200, 320, 0, "secondary", VIEWS),
)


def check_view(view: str) -> str:
    if view not in VIEWS:
        raise ValueError(f"Unknown view '{view}', expected one of {VIEWS}")
    return view


def check_part(part: str) -> str:
    if part not in PARTS:
        raise ValueError(f"Unknown jersey part '{part}', expected one of {PARTS}")
    return part


def part_layout(view: str) -> List[PartPlacement]:
    check_view(view)
    if view == "front":
        return list(_FRONT_LAYOUT)
    layout = []
    for placement in _FRONT_LAYOUT:
        if placement.part in MIRRORED_PARTS:
            placement = PartPlacement(placement.tag, placement.part, placement.rect.mirrored())
        layout.append(placement)
    return layout


def text_anchors(view: str) -> List[TextAnchor]:
    check_view(view)
    return [anchor for anchor in TEXT_ANCHORS if view in anchor.views]
