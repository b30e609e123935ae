import pytest

from jersey_configurator.geometry import Rect, part_layout, text_anchors


def _rects(view):
    return {placement.tag: placement.rect for placement in part_layout(view)}


def test_front_layout_is_in_paint_order():
    tags = [placement.tag for placement in part_layout("front")]
    assert tags == [
        "torso",
        "torsoTrim.left",
        "torsoTrim.right",
        "sleeve.left",
        "sleeve.right",
        "sleeveTrim.left",
        "sleeveTrim.right",
        "neck",
    ]


def test_back_view_mirrors_only_sleeves():
    front, back = _rects("front"), _rects("back")
    assert back["sleeve.left"] == Rect(330, 120, 50, 120)
    assert back["sleeve.right"] == Rect(20, 120, 50, 120)
    assert back["sleeveTrim.left"] == Rect(330, 220, 50, 20)
    for tag in ("torso", "torsoTrim.left", "torsoTrim.right", "neck"):
        assert back[tag] == front[tag]


def test_collar_is_centered_above_torso():
    neck, torso = _rects("front")["neck"], _rects("front")["torso"]
    assert neck.left + neck.width / 2 == 200
    assert neck.top < torso.top


def test_team_name_only_on_back():
    assert [a.role for a in text_anchors("front")] == ["player_number", "player_name"]
    assert [a.role for a in text_anchors("back")] == ["team_name", "player_number", "player_name"]


def test_rect_contains_is_half_open():
    rect = Rect(10, 10, 5, 5)
    assert rect.contains(10, 10)
    assert not rect.contains(15, 12)


@pytest.mark.parametrize("view", ["side", "", None])
def test_unknown_view_is_rejected(view):
    with pytest.raises(ValueError):
        part_layout(view)
