import importlib.util
import sys
from datetime import datetime
from pathlib import Path

from tests.helpers.config import build_config


PROJECT_ROOT = Path(__file__).resolve().parents[3]
MODULE_PATH = PROJECT_ROOT / "scripts" / "cleanup_render_dirs.py"
SPEC = importlib.util.spec_from_file_location("cleanup_render_dirs_module", MODULE_PATH)
cleanup_render_dirs = importlib.util.module_from_spec(SPEC)
assert SPEC and SPEC.loader
sys.modules["cleanup_render_dirs_module"] = cleanup_render_dirs
SPEC.loader.exec_module(cleanup_render_dirs)


def test_perform_cleanup_counts_by_directory(monkeypatch, tmp_path):
    config = build_config(tmp_path)
    calls = {}

    def fake_sweep(**kwargs):
        calls.update(kwargs)
        frames = config.media_paths.frames
        artifacts = config.media_paths.artifacts
        return [frames / "a_frame_000000.png", frames / "a_frame_000001.png", artifacts / "a.mp4"]

    monkeypatch.setattr(cleanup_render_dirs, "load_config", lambda: config)
    monkeypatch.setattr(cleanup_render_dirs, "sweep_orphans_once", fake_sweep)

    summary = cleanup_render_dirs.perform_cleanup(dry_run=True, reference_time=datetime(2024, 1, 1))

    assert summary.frames_removed == 2
    assert summary.artifacts_removed == 1
    assert summary.dry_run is True
    assert calls["artifacts"] is None
    assert calls["max_age_seconds"] == config.artifact_ttl_seconds + config.encoder.timeout_seconds + 60


def test_main_reports_failure(monkeypatch, capsys):
    def broken_config():
        raise ValueError("RENDER_MAX_FRAMES must be between 1 and 999999")

    monkeypatch.setattr(cleanup_render_dirs, "load_config", broken_config)

    assert cleanup_render_dirs.main(["--dry-run"]) == 2
    assert "cleanup failed" in capsys.readouterr().err


def test_main_prints_summary(monkeypatch, capsys):
    summary = cleanup_render_dirs.CleanupSummary(frames_removed=4, artifacts_removed=1, dry_run=False)
    monkeypatch.setattr(cleanup_render_dirs, "perform_cleanup", lambda **_: summary)

    assert cleanup_render_dirs.main(["--max-age", "10"]) == 0
    assert capsys.readouterr().out.strip() == "cleanup done, frames=4, artifacts=1"
