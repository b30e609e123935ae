import os

import pytest
from PIL import Image

from jersey_configurator import export
from jersey_configurator.config import JerseyConfig
from jersey_configurator.export import (
    compose_sheet,
    config_filename,
    export_config,
    export_filename,
    export_pdf,
    export_png,
    export_sheet,
    import_config,
    resize_rgba_linear_pm,
    transparent_image,
)
from jersey_configurator.scene import Surface, compose_scene


def _surface(config, view="front"):
    surface = Surface(view)
    surface.commit(compose_scene(config, view))
    return surface


@pytest.fixture
def config():
    return JerseyConfig().merge({"teamName": "Hawks", "playerName": "Smith", "accentColor": "gold"})


def test_filenames_follow_team_and_player(config):
    assert export_filename(config, "png") == "jersey-Hawks-Smith.png"
    assert export_filename(config, "png", "-back") == "jersey-Hawks-Smith-back.png"
    assert config_filename(config) == "jersey-config-Hawks.json"


def test_filenames_are_sanitized():
    config = JerseyConfig().merge({"teamName": "Red Sox!", "playerName": " "})
    assert export_filename(config, "pdf") == "jersey-Red_Sox-player.pdf"
    assert config_filename(JerseyConfig().merge({"teamName": ""})) == "jersey-config-team.json"


def test_png_has_transparent_background(tmp_path, config):
    results = []
    result = export_png(_surface(config), config, str(tmp_path), notify=results.append)

    assert result.success
    assert results == [result]
    assert result.path == str(tmp_path / "jersey-Hawks-Smith.png")
    with Image.open(result.path) as img:
        assert img.mode == "RGBA"
        assert img.size == (400, 500)
        assert img.getpixel((5, 5))[3] == 0
        assert img.getpixel((100, 420)) == (30, 64, 175, 255)


def test_pdf_is_written(tmp_path, config):
    result = export_pdf(_surface(config), config, str(tmp_path), notify=lambda r: None)
    assert result.success
    with open(result.path, "rb") as handle:
        assert handle.read(5) == b"%PDF-"


@pytest.mark.parametrize("exporter", [export_png, export_pdf])
def test_missing_surface_is_a_reported_failure(tmp_path, config, exporter):
    results = []
    result = exporter(None, config, str(tmp_path), notify=results.append)
    assert not result.success
    assert result.message == "Canvas not found"
    assert results == [result]
    assert os.listdir(tmp_path) == []


def test_disposed_surface_is_a_reported_failure(tmp_path, config):
    surface = _surface(config)
    surface.dispose()
    assert not export_png(surface, config, str(tmp_path), notify=lambda r: None).success


def test_encoding_failure_leaves_no_file(tmp_path, config, monkeypatch):
    def broken(_img):
        raise ValueError("encoder exploded")

    monkeypatch.setattr(export, "_png_bytes", broken)
    result = export_png(_surface(config), config, str(tmp_path), notify=lambda r: None)
    assert not result.success
    assert result.message == "Failed to export PNG"
    assert os.listdir(tmp_path) == []


def test_write_failure_removes_partial_file(tmp_path, config, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(export.os, "replace", broken_replace)
    result = export_pdf(_surface(config), config, str(tmp_path), notify=lambda r: None)
    assert not result.success
    assert os.listdir(tmp_path) == []


def test_unwritable_directory_is_a_reported_failure(tmp_path, config):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    result = export_config(config, str(blocker), notify=lambda r: None)
    assert not result.success
    assert result.path is None


def test_config_export_round_trips(tmp_path):
    config = JerseyConfig().merge(
        {
            "teamName": "Owls",
            "sleeveColor": "electric-blue",
            "shieldUrl": "https://example.com/owl.png",
            "shieldPosition": {"x": 99.5, "y": 180},
        }
    )
    result = export_config(config, str(tmp_path), notify=lambda r: None)
    assert result.success
    assert result.path.endswith("jersey-config-Owls.json")
    assert import_config(result.path) == config


def test_part_painted_in_background_color_stays_opaque(tmp_path):
    config = JerseyConfig().merge({"torsoColor": "#f8f9fa"})
    result = export_png(_surface(config), config, str(tmp_path), notify=lambda r: None)
    with Image.open(result.path) as img:
        assert img.getpixel((100, 420)) == (248, 249, 250, 255)
        assert img.getpixel((5, 5))[3] == 0


def test_transparent_image_of_cleared_surface_is_empty(config):
    surface = _surface(config)
    surface.clear()
    assert transparent_image(surface).getbbox() is None
    assert transparent_image(None) is None


def test_linear_resize_keeps_transparent_pixels_clean():
    img = Image.new("RGBA", (40, 40), (0, 0, 0, 0))
    img.paste((255, 255, 255, 255), (0, 0, 20, 40))
    resized = resize_rgba_linear_pm(img, (20, 20))
    assert resized.size == (20, 20)
    assert resized.getpixel((19, 10))[3] == 0
    assert resized.getpixel((2, 10)) == (255, 255, 255, 255)


def test_sheet_places_both_views(tmp_path, config):
    front, back = _surface(config, "front"), _surface(config, "back")
    sheet = compose_sheet(transparent_image(front), transparent_image(back))
    assert sheet.size == (700, 1000)
    assert sheet.getbbox() is not None

    result = export_sheet(front, back, config, str(tmp_path), notify=lambda r: None)
    assert result.success
    assert os.path.basename(result.path) == "jersey-Hawks-Smith-sheet.png"


def test_sheet_shrinks_views_to_fit_a_small_layout(config):
    front, back = _surface(config, "front"), _surface(config, "back")
    sheet = compose_sheet(transparent_image(front), transparent_image(back), size=(300, 300), margin=20)
    assert sheet.size == (300, 300)
    left, top, right, bottom = sheet.getbbox()
    assert left >= 20 and top >= 20
    assert right <= 280 and bottom <= 280
