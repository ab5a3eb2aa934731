import json

import pytest

import config
from gameplay_errors import InvalidConfiguration


def test_defaults_when_no_file():
    app_config, resolved = config.load_config()
    assert resolved is None
    assert app_config.chart.bpm == 128.0
    assert app_config.judgement.hit_radius == 1.1
    assert app_config.session.time_limit_seconds == 90.0


def test_load_explicit_file(tmp_path):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"chart": {"bpm": 150, "seed": 3}, "judgement": {"hit_radius": 0.8}}), encoding="utf-8")
    app_config, resolved = config.load_config(path)
    assert resolved == path
    assert app_config.chart.bpm == 150.0
    assert app_config.chart.seed == 3
    assert app_config.judgement.hit_radius == 0.8
    assert app_config.playfield.note_speed == 12.0


def test_cwd_file_is_discovered(tmp_path):
    (tmp_path / "gubang_config.json").write_text(json.dumps({"session": {"time_limit_seconds": 30}}), encoding="utf-8")
    app_config, resolved = config.load_config()
    assert resolved == tmp_path / "gubang_config.json"
    assert app_config.session.time_limit_seconds == 30.0


def test_env_path_and_overrides(tmp_path, monkeypatch):
    path = tmp_path / "env.json"
    path.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("GUBANG_CONFIG_PATH", str(path))
    monkeypatch.setenv("GUBANG_BPM", "100")
    monkeypatch.setenv("GUBANG_CAMERA_INDEX", "2")
    monkeypatch.setenv("GUBANG_CHART_SEED", "not-a-number")
    app_config, resolved = config.load_config()
    assert resolved == path
    assert app_config.chart.bpm == 100.0
    assert app_config.hand_tracking.camera_index == 2
    assert app_config.chart.seed is None


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidConfiguration):
        config.load_config(path)


def test_non_object_root_raises(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(InvalidConfiguration):
        config.load_config(path)


@pytest.mark.parametrize(
    "payload",
    [
        {"playfield": {"note_speed": 0}},
        {"playfield": {"spawn_z": 10}},
        {"hand_tracking": {"smoothing_factor": 1.5}},
        {"judgement": {"hit_radius": -1}},
        {"chart": {"bpm": 0}},
        {"chart": {"bpm": -128}},
        {"chart": {"beat_step": 0}},
        {"chart": {"start_beat": 10, "end_beat": 10}},
    ],
)
def test_validation_errors_raise_invalid_configuration(tmp_path, payload):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(InvalidConfiguration):
        config.load_config(path)


def test_main_prints_json(capsys):
    assert config.main() == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["config_path"] is None
    assert payload["config"]["playfield"]["note_speed"] == 12.0


def test_get_config_is_cached():
    config.get_config.cache_clear()
    try:
        assert config.get_config() is config.get_config()
    finally:
        config.get_config.cache_clear()


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(InvalidConfiguration):
        config.load_config(tmp_path / "absent.json")


def test_overrides_do_not_mutate_file_values(monkeypatch):
    monkeypatch.setenv("GUBANG_HIT_RADIUS", "0.5")
    file_values = {"judgement": {"hit_radius": 2.0}}
    merged = config._apply_environment_overrides(file_values)
    assert merged["judgement"]["hit_radius"] == 0.5
    assert file_values["judgement"]["hit_radius"] == 2.0


def test_zero_bpm_from_environment_raises(monkeypatch):
    monkeypatch.setenv("GUBANG_BPM", "0")
    with pytest.raises(InvalidConfiguration):
        config.load_config()
