import pytest

from jersey_configurator.selection import DISPATCH, SelectionController, part_for_tag


def test_dispatch_covers_every_part_rect():
    assert DISPATCH["sleeve.left"] == "sleeve"
    assert DISPATCH["sleeve.right"] == "sleeve"
    assert DISPATCH["torsoTrim.right"] == "torsoTrim"
    assert set(DISPATCH.values()) == {"torso", "torsoTrim", "sleeve", "sleeveTrim", "neck"}


@pytest.mark.parametrize("tag", ["player_number", "team_name", "overlay", None])
def test_text_and_overlay_tags_are_not_targets(tag):
    assert part_for_tag(tag) is None


def test_clicking_sleeve_moves_selection_from_torso():
    changes = []
    controller = SelectionController(on_change=changes.append)
    controller.pointer_down("torso")
    assert controller.pointer_down("sleeve.right") == "sleeve"

    assert controller.selected == "sleeve"
    assert changes == ["torso", "sleeve"]
    highlights = controller.highlights()
    assert [part for part, on in highlights.items() if on] == ["sleeve"]


def test_non_target_click_keeps_selection():
    changes = []
    controller = SelectionController(on_change=changes.append)
    controller.select("neck")
    assert controller.pointer_down("player_name") is None
    assert controller.selected == "neck"
    assert changes == ["neck"]


def test_notifies_only_on_change():
    changes = []
    controller = SelectionController(on_change=changes.append)
    controller.pointer_down("sleeve.left")
    controller.pointer_down("sleeve.right")
    controller.deselect()
    controller.deselect()
    assert changes == ["sleeve", None]
    assert not any(controller.highlights().values())


def test_select_rejects_unknown_part():
    controller = SelectionController()
    with pytest.raises(ValueError):
        controller.select("collar")
    assert controller.selected is None
