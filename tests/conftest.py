import pytest
from PyQt6.QtCore import QCoreApplication

import config
from gameplay_models import Chart, HandSide, NoteEvent


@pytest.fixture(scope="session")
def qt_app():
    """Session controller timers need a QCoreApplication; the event loop is never run."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture(autouse=True)
def _isolated_config_env(monkeypatch, tmp_path):
    """Keep user config files and GUBANG_* variables from leaking into tests."""
    for name in (
        "GUBANG_CONFIG_PATH",
        "GUBANG_BPM",
        "GUBANG_CHART_SEED",
        "GUBANG_HIT_RADIUS",
        "GUBANG_CAMERA_INDEX",
        "GUBANG_MODEL_PATH",
        "GUBANG_TIME_LIMIT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "user_config_dir", lambda *args, **kwargs: str(tmp_path / "user_config"))
    monkeypatch.chdir(tmp_path)


def make_chart(*specs):
    """specs: (time_seconds, lane, hand) tuples."""
    notes = [
        NoteEvent(note_id=f"note-{index}", time_seconds=time_seconds, lane=lane, hand=hand)
        for index, (time_seconds, lane, hand) in enumerate(specs)
    ]
    return Chart(notes=notes, bpm=120.0, duration_seconds=60.0)


LEFT = HandSide.LEFT
RIGHT = HandSide.RIGHT
