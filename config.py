"""
config.py

Typed configuration loading and validation for Gubang.

Loading rules
- At most one UTF-8 JSON file is read. Nothing is written and no directories are created.
- pydantic validates every section. All fields have defaults, so the file is optional.
- A handful of GUBANG_* environment variables override file values (see _ENVIRONMENT_OVERRIDES).
- Any failure surfaces as InvalidConfiguration naming the file.

Where the file is looked up
- If GUBANG_CONFIG_PATH is set, that file is used.
- Otherwise Gubang searches these paths in order and uses the first one that exists:
  1) ./gubang_config.json (current working directory)
  2) <user config dir>/Gubang/gubang_config.json
- If none exists the built-in defaults are used.

Example config file (gubang_config.json)
{
  "chart": {
    "bpm": 128,
    "seed": null
  },
  "judgement": {
    "window_before": 1.2,
    "window_after": 0.6,
    "hit_radius": 1.1
  },
  "hand_tracking": {
    "camera_index": 0,
    "smoothing_factor": 0.6
  },
  "session": {
    "time_limit_seconds": 90
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, model_validator

from gameplay_errors import InvalidConfiguration


CONFIG_FILE_NAME = "gubang_config.json"


class ChartConfig(BaseModel):
    bpm: float = Field(default=128.0, gt=0.0, description="Song tempo in beats per minute.")
    start_beat: float = Field(default=4.0, ge=0.0, description="First beat index of the generated grid.")
    end_beat: float = Field(default=200.0, description="Beat index bound (exclusive) of the generated grid.")
    beat_step: float = Field(default=1.5, gt=0.0, description="Beat index increment between grid steps.")
    seed: Optional[int] = Field(default=None, description="Seed for the random burst pattern. null means unseeded.")

    @model_validator(mode="after")
    def validate_beat_range(self) -> "ChartConfig":
        if not self.end_beat > self.start_beat:
            raise ValueError("end_beat must be greater than start_beat")
        return self


class PlayfieldConfig(BaseModel):
    spawn_z: float = Field(default=-30.0, description="Depth at which notes appear.")
    player_z: float = Field(default=0.0, description="Depth of the hit zone.")
    miss_z: float = Field(default=5.0, description="Depth past which an unresolved note is missed.")
    note_speed: float = Field(default=12.0, gt=0.0, description="Note travel speed in depth units per second.")
    hex_radius: float = Field(default=1.4, gt=0.0, description="Radius of the hexagonal lane ring.")
    hex_center_y: float = Field(default=1.5, description="Height of the lane ring center.")
    visible_span_seconds: float = Field(default=4.5, gt=0.0, description="Notes further than this from now are not drawn.")
    debris_seconds: float = Field(default=0.3, ge=0.0, description="How long a hit note stays drawn as debris.")

    @model_validator(mode="after")
    def validate_depth_order(self) -> "PlayfieldConfig":
        if not self.spawn_z < self.player_z < self.miss_z:
            raise ValueError("depths must satisfy spawn_z < player_z < miss_z")
        return self


class JudgementConfig(BaseModel):
    window_before: float = Field(default=1.2, ge=0.0, description="Depth tolerance before the hit zone.")
    window_after: float = Field(default=0.6, ge=0.0, description="Depth tolerance after the hit zone.")
    hit_radius: float = Field(default=1.1, gt=0.0, description="Max hand to note distance that counts as a hit.")


class HandTrackingConfig(BaseModel):
    smoothing_factor: float = Field(default=0.6, ge=0.0, le=1.0, description="EMA weight of the new raw sample.")
    min_delta_seconds: float = Field(default=0.001, ge=0.0, description="Velocity is held when frames are closer than this.")
    x_range: float = Field(default=7.5, gt=0.0)
    y_range: float = Field(default=6.0, gt=0.0)
    y_offset: float = Field(default=1.2)
    depth_factor: float = Field(default=0.1, ge=0.0)
    min_y: float = Field(default=0.1)
    camera_index: int = Field(default=0, ge=0, description="OpenCV camera index.")
    max_num_hands: int = Field(default=2, ge=1, le=2)
    min_detection_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_presence_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_tracking_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    model_path: str = Field(default="", description="hand_landmarker.task path. Empty means the user cache dir.")


class SessionConfig(BaseModel):
    time_limit_seconds: float = Field(default=90.0, gt=0.0)
    hit_score: int = Field(default=100, ge=0)
    hit_heal: float = Field(default=1.5, ge=0.0)
    miss_damage: float = Field(default=10.0, ge=0.0)
    max_health: float = Field(default=100.0, gt=0.0)
    countdown_interval_ms: int = Field(default=1000, ge=1)
    frame_interval_ms: int = Field(default=16, ge=1)


class AppConfig(BaseModel):
    chart: ChartConfig = Field(default_factory=ChartConfig)
    playfield: PlayfieldConfig = Field(default_factory=PlayfieldConfig)
    judgement: JudgementConfig = Field(default_factory=JudgementConfig)
    hand_tracking: HandTrackingConfig = Field(default_factory=HandTrackingConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)


def _default_config_candidates() -> List[Path]:
    return [
        Path.cwd() / CONFIG_FILE_NAME,
        Path(user_config_dir("Gubang", appauthor=False)) / CONFIG_FILE_NAME,
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("GUBANG_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)
    return next((candidate for candidate in _default_config_candidates() if candidate.exists()), None)


def _load_json_object(config_path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exception:
        raise InvalidConfiguration(f"Cannot read config file {config_path}: {exception}") from exception
    except json.JSONDecodeError as exception:
        raise InvalidConfiguration(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(payload, dict):
        raise InvalidConfiguration(f"Config file root must be a JSON object: {config_path}")
    return payload


# (variable, section, field, parser). Values that fail to parse are ignored.
_ENVIRONMENT_OVERRIDES: Tuple[Tuple[str, str, str, Callable[[str], Any]], ...] = (
    ("GUBANG_BPM", "chart", "bpm", float),
    ("GUBANG_CHART_SEED", "chart", "seed", int),
    ("GUBANG_HIT_RADIUS", "judgement", "hit_radius", float),
    ("GUBANG_CAMERA_INDEX", "hand_tracking", "camera_index", int),
    ("GUBANG_MODEL_PATH", "hand_tracking", "model_path", str),
    ("GUBANG_TIME_LIMIT_SECONDS", "session", "time_limit_seconds", float),
)


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of `config_dict` with any GUBANG_* overrides applied on top of the file values."""
    merged: Dict[str, Any] = {
        name: dict(section) if isinstance(section, dict) else section for name, section in config_dict.items()
    }

    for variable_name, section_name, field_name, parse in _ENVIRONMENT_OVERRIDES:
        value_text = os.environ.get(variable_name, "").strip()
        if not value_text:
            continue
        try:
            value = parse(value_text)
        except ValueError:
            continue
        section = merged.get(section_name)
        if not isinstance(section, dict):
            section = merged[section_name] = {}
        section[field_name] = value

    return merged


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    file_values = _load_json_object(resolved_path) if resolved_path is not None else {}

    try:
        app_config = AppConfig.model_validate(_apply_environment_overrides(file_values))
    except ValidationError as exception:
        source_text = str(resolved_path) if resolved_path is not None else "(defaults)"
        raise InvalidConfiguration(f"Config validation failed for {source_text}:\n{exception}") from exception

    return app_config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def main() -> int:
    try:
        app_config, resolved_path = load_config()
    except InvalidConfiguration as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    print(
        json.dumps(
            {
                "ok": True,
                "config_path": str(resolved_path) if resolved_path is not None else None,
                "config": app_config.model_dump(),
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
