# -*- coding: utf-8 -*-
########################
# timing_model.py
########################
# Purpose:
# - Single source of truth for song timing in gameplay.
# - Converts the playback position reported by the audio collaborator into song time by applying
#   a configurable AV offset.
# - Defines the AudioPlayback contract and a wall clock stand-in used when no real player is wired.
#
# Design notes:
# - Gameplay code must use PlaybackClock.song_time_seconds.
# - No Qt usage. Keep this module pure and deterministic (time sources are injected).
# - Player time is clamped to non-negative and never moves backwards between resets, so a jittery
#   decoder position cannot re-admit or un-expire notes.
#
########################
# Interfaces:
# Public protocols:
# - AudioPlayback: is_loaded() -> bool, position_seconds() -> float, has_ended() -> bool,
#   play() -> None, pause() -> None, seek(position_seconds: float) -> None
#
# Public dataclasses:
# - TimingSnapshot(player_time_seconds: float, av_offset_seconds: float, song_time_seconds: float)
#
# Public classes:
# - class PlaybackClock
#   - player_time_seconds() -> float
#   - av_offset_seconds() -> float
#   - song_time_seconds() -> float
#   - set_av_offset_seconds(av_offset_seconds: float) -> None
#   - update_player_time_seconds(player_time_seconds: float) -> None
#   - sync_from(playback: AudioPlayback) -> float
#   - reset() -> None
#   - snapshot() -> TimingSnapshot
# - class WallClockPlayback (AudioPlayback backed by a monotonic time source)
#
# Inputs:
# - Playback position in seconds from the audio collaborator.
#
# Outputs:
# - Derived song_time_seconds used by NoteScheduler, JudgeEngine and the session controller.
#
########################

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class AudioPlayback(Protocol):
    def is_loaded(self) -> bool: ...

    def position_seconds(self) -> float: ...

    def has_ended(self) -> bool: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position_seconds: float) -> None: ...


@dataclass(frozen=True)
class TimingSnapshot:
    player_time_seconds: float
    av_offset_seconds: float
    song_time_seconds: float


class PlaybackClock:
    """Monotonic song time derived from the playback position plus an AV offset."""

    def __init__(self, av_offset_seconds: float = 0.0) -> None:
        self._position = 0.0
        self._offset = float(av_offset_seconds)

    def player_time_seconds(self) -> float:
        return self._position

    def av_offset_seconds(self) -> float:
        return self._offset

    def song_time_seconds(self) -> float:
        # A negative offset can put song time below zero right after a start.
        return self._position + self._offset

    def set_av_offset_seconds(self, av_offset_seconds: float) -> None:
        self._offset = float(av_offset_seconds)

    def update_player_time_seconds(self, player_time_seconds: float) -> None:
        self._position = max(self._position, float(player_time_seconds), 0.0)

    def sync_from(self, playback: AudioPlayback) -> float:
        self.update_player_time_seconds(playback.position_seconds())
        return self.song_time_seconds()

    def reset(self) -> None:
        self._position = 0.0

    def snapshot(self) -> TimingSnapshot:
        return TimingSnapshot(self._position, self._offset, self.song_time_seconds())


class WallClockPlayback:
    """
    AudioPlayback stand-in that advances with a monotonic clock while playing.

    Used by the live loop when the audio is played by an external player, and by the headless
    simulation with a virtual time source.
    """

    def __init__(
        self,
        *,
        duration_seconds: Optional[float] = None,
        time_source: Callable[[], float] = time.monotonic,
        loaded: bool = True,
    ) -> None:
        self._time_source = time_source
        self._duration_seconds = duration_seconds
        self._loaded = bool(loaded)
        self._position_at_anchor = 0.0
        self._anchor_time: Optional[float] = None

    def load(self, *, duration_seconds: Optional[float] = None) -> None:
        self._loaded = True
        self._duration_seconds = duration_seconds
        self.seek(0.0)

    def is_loaded(self) -> bool:
        return self._loaded

    def is_playing(self) -> bool:
        return self._anchor_time is not None

    def position_seconds(self) -> float:
        position = self._position_at_anchor
        if self._anchor_time is not None:
            position += float(self._time_source()) - self._anchor_time
        if self._duration_seconds is not None:
            position = min(position, float(self._duration_seconds))
        return float(position)

    def has_ended(self) -> bool:
        if self._duration_seconds is None:
            return False
        return self.position_seconds() >= float(self._duration_seconds)

    def play(self) -> None:
        if self._anchor_time is None:
            self._anchor_time = float(self._time_source())

    def pause(self) -> None:
        if self._anchor_time is not None:
            self._position_at_anchor = self.position_seconds()
            self._anchor_time = None

    def seek(self, position_seconds: float) -> None:
        self._position_at_anchor = max(0.0, float(position_seconds))
        if self._anchor_time is not None:
            self._anchor_time = float(self._time_source())


def _run_unit_tests() -> None:
    clock = PlaybackClock()
    clock.set_av_offset_seconds(-0.2)
    clock.update_player_time_seconds(-5.0)
    assert clock.player_time_seconds() == 0.0
    assert abs(clock.song_time_seconds() - (-0.2)) < 1e-9

    clock.update_player_time_seconds(1.5)
    assert abs(clock.song_time_seconds() - 1.3) < 1e-9

    clock.update_player_time_seconds(1.4)
    assert clock.player_time_seconds() == 1.5

    clock.reset()
    assert clock.player_time_seconds() == 0.0

    now = [10.0]
    playback = WallClockPlayback(duration_seconds=3.0, time_source=lambda: now[0])
    playback.play()
    now[0] = 11.0
    assert abs(playback.position_seconds() - 1.0) < 1e-9
    playback.pause()
    now[0] = 20.0
    assert abs(playback.position_seconds() - 1.0) < 1e-9
    playback.play()
    now[0] = 25.0
    assert playback.has_ended()


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_model.py: ok")
