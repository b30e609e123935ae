import json
import math

import pytest

from jersey_configurator.colors import GradientColor, SolidColor
from jersey_configurator.config import ConfigStore, InvalidConfigError, JerseyConfig, load_config_file


def test_defaults():
    config = JerseyConfig()
    assert config.torso_color == SolidColor((30, 64, 175))
    assert config.accent_color == SolidColor((251, 191, 36))
    assert config.team_name == "TEAM"
    assert config.player_number == "10"
    assert config.font_size == 24
    assert config.shield_url is None
    assert config.shield_position == (150, 200)


def test_merge_accepts_both_key_styles():
    config = JerseyConfig().merge({"teamName": "Hawks", "player_name": "Smith", "shieldPosition": {"x": 120, "y": 200}})
    assert config.team_name == "Hawks"
    assert config.player_name == "Smith"
    assert config.shield_position == (120, 200)


def test_merge_parses_colors_once():
    config = JerseyConfig().merge({"torsoColor": "gold", "neckColor": "#000"})
    assert isinstance(config.torso_color, GradientColor)
    assert config.torso_color.name == "gold"
    assert config.neck_color == SolidColor((0, 0, 0))
    assert config.color_for("torso") is config.torso_color


@pytest.mark.parametrize(
    "changes",
    [
        {"playerNumber": "1a"},
        {"playerNumber": "1234"},
        {"fontSize": 7},
        {"fontSize": 97},
        {"fontSize": True},
        {"fontSize": 20.5},
        {"shieldSize": -1},
        {"shieldSize": math.inf},
        {"shieldPosition": {"x": 1}},
        {"shieldPosition": (1, float("nan"))},
        {"torsoColor": "not-a-color"},
        {"jerseyLength": 3},
    ],
)
def test_invalid_changes_are_rejected(changes):
    with pytest.raises(InvalidConfigError):
        JerseyConfig().merge(changes)


def test_number_accepts_empty_and_integers():
    assert JerseyConfig().merge({"playerNumber": ""}).player_number == ""
    assert JerseyConfig().merge({"playerNumber": 7}).player_number == "7"


def test_large_shield_size_is_allowed():
    assert JerseyConfig().merge({"shieldSize": 250}).shield_size == 250


def test_to_dict_uses_export_keys():
    data = JerseyConfig().to_dict()
    assert data["torsoColor"] == "#1e40af"
    assert data["font"] == "Arial"
    assert data["shieldPosition"] == {"x": 150, "y": 200}
    assert data["shieldUrl"] is None


def test_json_round_trip():
    config = JerseyConfig().merge(
        {
            "torsoColor": "purple-chrome",
            "secondaryColor": "linear-gradient(45deg, #ff0000 0%, #00ff00 40%, #0000ff 100%)",
            "teamName": "Hawks",
            "playerName": "",
            "playerNumber": "7",
            "fontSize": 30,
            "shieldUrl": "data:image/png;base64,AAAA",
            "shieldSize": 72.5,
            "shieldPosition": {"x": 130.25, "y": 210},
        }
    )
    assert JerseyConfig.from_json(config.to_json()) == config


def test_json_round_trip_with_tiny_gradient_stop():
    config = JerseyConfig().merge({"torsoColor": "linear-gradient(90deg, #000000 0.00001%, #ffffff 100%)"})
    assert "0.00001%" in config.to_json()
    assert JerseyConfig.from_json(config.to_json()) == config


def test_legacy_primary_color_sets_torso_and_sleeves():
    config = JerseyConfig.from_dict({"primaryColor": "#dc2626"})
    assert config.torso_color == config.sleeve_color == SolidColor((220, 38, 38))


def test_unknown_document_keys_are_ignored(capsys):
    config = JerseyConfig.from_dict({"teamName": "Hawks", "theme": "dark"})
    assert config.team_name == "Hawks"
    assert "[WARN]" in capsys.readouterr().out


def test_from_json_rejects_garbage():
    with pytest.raises(InvalidConfigError):
        JerseyConfig.from_json("{not json")
    with pytest.raises(InvalidConfigError):
        JerseyConfig.from_json(json.dumps(["torsoColor"]))


def test_load_config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"teamName": "Owls"}), encoding="utf-8")
    assert load_config_file(str(path)).team_name == "Owls"
    with pytest.raises(InvalidConfigError):
        load_config_file(str(tmp_path / "missing.json"))


def test_store_update_bumps_version_and_notifies():
    seen = []
    store = ConfigStore()
    store.subscribe(seen.append)
    store.update({"teamName": "Hawks"}, player_number="23")

    assert store.version == 1
    assert store.config.team_name == "Hawks"
    assert store.config.player_number == "23"
    assert seen == [store.config]


def test_store_rejects_invalid_update_without_change():
    seen = []
    store = ConfigStore()
    store.subscribe(seen.append)
    before = store.config
    with pytest.raises(InvalidConfigError):
        store.update(playerNumber="ABC")
    assert store.config is before
    assert store.version == 0
    assert seen == []


def test_store_skips_no_op_updates_and_unsubscribes():
    seen = []
    store = ConfigStore()
    unsubscribe = store.subscribe(seen.append)
    store.update(team_name="TEAM")
    assert store.version == 0
    unsubscribe()
    store.update(team_name="Owls")
    assert store.version == 1
    assert seen == []
