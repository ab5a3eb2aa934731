# -*- coding: utf-8 -*-
########################
# play_space.py
########################
# Purpose:
# - Geometry of the playfield: the hexagonal lane ring and the depth axis notes travel along.
# - Shared by NoteScheduler (admission, expiry, render poses) and JudgeEngine (collision anchors).
#
# Design notes:
# - No Qt usage. Pure functions of config and time.
# - Depth grows toward the player: spawn_z < player_z < miss_z.
# - Lane angles start at 30 degrees so two lanes sit on the left and two on the right.
#
########################
# Interfaces:
# Public classes:
# - class PlayfieldGeometry
#   - from_config(playfield: config.PlayfieldConfig) -> PlayfieldGeometry
#   - spawn_lookahead_seconds() -> float
#   - depth_at(note_time_seconds: float, song_time_seconds: float) -> float
#   - lane_position(lane: int) -> tuple[float, float]
#   - anchor(lane: int, depth: float) -> numpy.ndarray
#
########################

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy

import config
import gameplay_models


@dataclass(frozen=True)
class PlayfieldGeometry:
    spawn_z: float = -30.0
    player_z: float = 0.0
    miss_z: float = 5.0
    note_speed: float = 12.0
    hex_radius: float = 1.4
    hex_center_y: float = 1.5

    @classmethod
    def from_config(cls, playfield: config.PlayfieldConfig) -> "PlayfieldGeometry":
        return cls(
            spawn_z=float(playfield.spawn_z),
            player_z=float(playfield.player_z),
            miss_z=float(playfield.miss_z),
            note_speed=float(playfield.note_speed),
            hex_radius=float(playfield.hex_radius),
            hex_center_y=float(playfield.hex_center_y),
        )

    def spawn_lookahead_seconds(self) -> float:
        return abs(self.spawn_z - self.player_z) / self.note_speed

    def depth_at(self, note_time_seconds: float, song_time_seconds: float) -> float:
        return self.player_z - (float(note_time_seconds) - float(song_time_seconds)) * self.note_speed

    def lane_position(self, lane: int) -> Tuple[float, float]:
        angle = int(lane) * (math.pi / 3.0) + (math.pi / 6.0)
        return (
            math.cos(angle) * self.hex_radius,
            math.sin(angle) * self.hex_radius + self.hex_center_y,
        )

    def anchor(self, lane: int, depth: float) -> numpy.ndarray:
        lane_x, lane_y = self.lane_position(lane)
        return gameplay_models.vec3(lane_x, lane_y, depth)


def _run_unit_tests() -> None:
    geometry = PlayfieldGeometry()
    assert abs(geometry.spawn_lookahead_seconds() - 2.5) < 1e-9
    assert abs(geometry.depth_at(2.0, 2.0) - 0.0) < 1e-9
    assert abs(geometry.depth_at(2.0, 1.0) - (-12.0)) < 1e-9

    # Lanes 0 and 3 are mirrored through the ring center.
    x0, y0 = geometry.lane_position(0)
    x3, y3 = geometry.lane_position(3)
    assert abs(x0 + x3) < 1e-9
    assert abs((y0 - geometry.hex_center_y) + (y3 - geometry.hex_center_y)) < 1e-9


if __name__ == "__main__":
    _run_unit_tests()
    print("play_space.py: ok")
