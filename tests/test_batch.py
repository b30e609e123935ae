import base64
import io
import os
import sys

import numpy as np
import pandas as pd
import pytest
from PIL import Image

from jersey_configurator import batch
from jersey_configurator.batch import (
    JobResult,
    RowJob,
    build_job,
    emit_result,
    read_csv_with_fallback,
    resolve_worker_count,
    row_changes,
    run_batch,
)
from jersey_configurator.colors import SolidColor
from jersey_configurator.config import JerseyConfig

HEADER = "Team,Player Name,Number,Torso Color,Accent Color,Font Size,Shield,Shield Size,Shield X,Shield Y\n"


def test_row_maps_columns_to_config():
    row = pd.Series(
        {
            "Team": " Hawks ",
            "Player Name": "Smith",
            "Number": "7",
            "Torso Color": "#dc2626",
            "Sleeve Color": "silver",
            "Font Size": "30",
            "Shield Size": "75.5",
            "Shield X": "120",
            "Neck Color": np.nan,
        }
    )
    job = build_job(3, row)
    assert job.index == 3
    config = job.config
    assert config.team_name == "Hawks"
    assert config.player_number == "7"
    assert config.torso_color == SolidColor((220, 38, 38))
    assert config.sleeve_color.name == "silver"
    assert config.neck_color == JerseyConfig().neck_color
    assert config.font_size == 30
    assert config.shield_size == 75.5
    assert config.shield_position == (120, 200)


def test_relative_shield_path_resolves_against_csv_dir(tmp_path):
    changes = row_changes(pd.Series({"Shield": "logos/hawk.png"}), str(tmp_path))
    assert changes["shield_url"] == os.path.join(str(tmp_path), "logos/hawk.png")
    changes = row_changes(pd.Series({"Shield": "https://example.com/hawk.png"}), str(tmp_path))
    assert changes["shield_url"] == "https://example.com/hawk.png"


@pytest.mark.parametrize(
    "row",
    [
        {"Number": "12a"},
        {"Font Size": "huge"},
        {"Torso Color": "plaid"},
        {"Shield Y": "low"},
    ],
)
def test_invalid_rows_are_skipped(row, capsys):
    assert build_job(5, pd.Series(row)) is None
    assert "[WARN] Skipping row 5" in capsys.readouterr().out


def test_read_csv_falls_back_to_cp1252(tmp_path, capsys):
    path = tmp_path / "teams.csv"
    path.write_bytes("Team,Player Name\nCaf\xe9,Smith\n".encode("cp1252"))
    df = read_csv_with_fallback(str(path))
    assert df.loc[0, "Team"] == "Café"
    assert "cp1252" in capsys.readouterr().out


def test_worker_count_env_override(monkeypatch):
    monkeypatch.setattr(batch, "easygui", None)
    monkeypatch.setenv("JERSEY_WORKERS", "3")
    assert resolve_worker_count(2) == 2
    assert resolve_worker_count(10) == 3
    monkeypatch.setenv("JERSEY_WORKERS", "lots")
    assert 1 <= resolve_worker_count(4) <= 4


def test_emit_result_replays_log_on_failure(capsys):
    job = RowJob(index=1, config=JerseyConfig())
    emit_result(JobResult(job, False, "boom", "[WARN] something\n", []))
    out = capsys.readouterr().out
    assert out.startswith("✗ Row 1 (TEAM / PLAYER #10): boom")
    assert "[WARN] something" in out


def test_run_batch_renders_each_row(tmp_path, monkeypatch):
    monkeypatch.delenv("JERSEY_VERBOSE", raising=False)
    buffer = io.BytesIO()
    Image.new("RGBA", (50, 50), (255, 0, 0, 255)).save(buffer, format="PNG")
    (tmp_path / "hawk.png").write_bytes(buffer.getvalue())

    csv_path = tmp_path / "teams.csv"
    csv_path.write_text(
        HEADER
        + "Hawks,Smith,7,#dc2626,gold,28,hawk.png,80,120,200\n"
        + "Owls,Jones,123,ocean-blue,,,,,,\n"
        + "Bad,Row,99999,,,,,,,\n",
        encoding="utf-8",
    )
    out_dir = tmp_path / "out"
    results = run_batch(str(csv_path), str(out_dir), workers=1)

    assert [r.job.index for r in results] == [0, 1]
    assert all(r.success for r in results)
    produced = set(os.listdir(out_dir))
    for stem in ("jersey-Hawks-Smith", "jersey-Owls-Jones"):
        assert {f"{stem}-front.png", f"{stem}-back.png", f"{stem}-sheet.png"} <= produced

    with Image.open(out_dir / "jersey-Hawks-Smith-front.png") as img:
        assert img.getpixel((125, 205)) == (255, 0, 0, 255)


def test_run_batch_with_no_valid_rows(tmp_path, capsys):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text(HEADER + "Bad,Row,abc,,,,,,,\n", encoding="utf-8")
    assert run_batch(str(csv_path), str(tmp_path / "out"), workers=1) == []
    assert "No valid rows" in capsys.readouterr().out


def test_main_without_path_or_prompt_exits(monkeypatch, capsys):
    monkeypatch.setattr(batch, "easygui", None)
    batch.main([])
    assert "[ERROR]" in capsys.readouterr().out


def test_data_uri_shield_is_kept_as_is(tmp_path):
    uri = "data:image/png;base64," + base64.b64encode(b"x").decode("ascii")
    assert row_changes(pd.Series({"Shield": uri}), str(tmp_path))["shield_url"] == uri


def test_parallel_jobs_capture_their_own_output(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("JERSEY_VERBOSE", raising=False)
    csv_path = tmp_path / "teams.csv"
    rows = "".join(f"T{i},P{i},{i},,,,,,,\n" for i in range(12))
    csv_path.write_text(HEADER + rows, encoding="utf-8")

    stdout_before = sys.stdout
    results = run_batch(str(csv_path), str(tmp_path / "out"), workers=4)
    assert sys.stdout is stdout_before

    assert len(results) == 12
    for i, result in enumerate(results):
        assert result.success
        log = result.captured_log
        assert log.count("export:") == 3
        assert log.count("jersey-T") == log.count(f"jersey-T{i}-P{i}")

    out = capsys.readouterr().out
    assert out.count("✓ Row") == 12
    assert "export:" not in out
    assert "Run complete" in out
