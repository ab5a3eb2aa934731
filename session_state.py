# -*- coding: utf-8 -*-
########################
# session_state.py
########################
# Purpose:
# - Session state machine: status, score, combo, health and the countdown.
# - Consumes JudgementEvent (hit or miss) and a fixed-period countdown tick.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Status flow: loading -> idle -> playing <-> paused. game_over and victory are reachable only
#   from playing, and leave only through reset().
# - Judgements and countdown ticks are ignored unless the status is playing. That covers pause and
#   both terminal states.
# - Health is clamped to [0, max_health]; reaching 0 ends the session in game_over.
#
########################
# Interfaces:
# Public enums:
# - GameStatus: LOADING | IDLE | PLAYING | PAUSED | GAME_OVER | VICTORY
#
# Public dataclasses:
# - SessionRules(time_limit_seconds, hit_score, hit_heal, miss_damage, max_health, countdown_step_seconds)
# - SessionState(status, score, combo, health, time_remaining_seconds, max_combo, hit_count, miss_count)
#
# Public classes:
# - class SessionStateMachine
#   - state() -> SessionState
#   - status() -> GameStatus
#   - mark_tracking_ready() -> bool
#   - check_can_start(*, audio_loaded: bool, tracking_ready: bool) -> bool
#   - start(*, audio_loaded: bool, tracking_ready: bool) -> bool
#   - toggle_pause() -> GameStatus
#   - apply_judgement(event: JudgementEvent) -> bool
#   - countdown_tick() -> bool
#   - finish_song() -> bool
#   - reset() -> bool
#
# Errors:
# - SensorUnavailable / AudioSourceMissing from check_can_start() and start() when a precondition
#   is missing.
#
########################

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace

import config
import gameplay_models
from gameplay_errors import AudioSourceMissing, SensorUnavailable


logger = logging.getLogger(__name__)


class GameStatus(enum.Enum):
    LOADING = "loading"
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "game_over"
    VICTORY = "victory"

    @property
    def is_terminal(self) -> bool:
        return self in (GameStatus.GAME_OVER, GameStatus.VICTORY)


@dataclass(frozen=True)
class SessionRules:
    time_limit_seconds: float = 90.0
    hit_score: int = 100
    hit_heal: float = 1.5
    miss_damage: float = 10.0
    max_health: float = 100.0
    countdown_step_seconds: float = 1.0

    @classmethod
    def from_config(cls, session: config.SessionConfig) -> "SessionRules":
        return cls(
            time_limit_seconds=float(session.time_limit_seconds),
            hit_score=int(session.hit_score),
            hit_heal=float(session.hit_heal),
            miss_damage=float(session.miss_damage),
            max_health=float(session.max_health),
            countdown_step_seconds=float(session.countdown_interval_ms) / 1000.0,
        )


@dataclass(frozen=True)
class SessionState:
    status: GameStatus = GameStatus.LOADING
    score: int = 0
    combo: int = 0
    health: float = 100.0
    time_remaining_seconds: float = 90.0
    max_combo: int = 0
    hit_count: int = 0
    miss_count: int = 0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "score": self.score,
            "combo": self.combo,
            "health": self.health,
            "time_remaining_seconds": self.time_remaining_seconds,
            "max_combo": self.max_combo,
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
        }


class SessionStateMachine:
    def __init__(self, rules: SessionRules = SessionRules()) -> None:
        self._rules = rules
        self._state = SessionState(
            status=GameStatus.LOADING,
            health=rules.max_health,
            time_remaining_seconds=rules.time_limit_seconds,
        )

    def rules(self) -> SessionRules:
        return self._rules

    def state(self) -> SessionState:
        return self._state

    def status(self) -> GameStatus:
        return self._state.status

    def _set_status(self, status: GameStatus) -> None:
        if status is not self._state.status:
            logger.info("Session status %s -> %s", self._state.status.value, status.value)
        self._state = replace(self._state, status=status)

    def mark_tracking_ready(self) -> bool:
        if self._state.status is not GameStatus.LOADING:
            return False
        self._set_status(GameStatus.IDLE)
        return True

    def check_can_start(self, *, audio_loaded: bool, tracking_ready: bool) -> bool:
        """False outside idle. Raises when a start precondition is missing."""
        if self._state.status is not GameStatus.IDLE:
            return False
        if not tracking_ready:
            logger.warning("Start rejected: hand tracking is not ready")
            raise SensorUnavailable("hand tracking is not ready")
        if not audio_loaded:
            logger.warning("Start rejected: no audio source loaded")
            raise AudioSourceMissing("no audio source loaded")
        return True

    def start(self, *, audio_loaded: bool, tracking_ready: bool) -> bool:
        if not self.check_can_start(audio_loaded=audio_loaded, tracking_ready=tracking_ready):
            return False

        self._state = SessionState(
            status=self._state.status,
            health=self._rules.max_health,
            time_remaining_seconds=self._rules.time_limit_seconds,
        )
        self._set_status(GameStatus.PLAYING)
        return True

    def toggle_pause(self) -> GameStatus:
        if self._state.status is GameStatus.PLAYING:
            self._set_status(GameStatus.PAUSED)
        elif self._state.status is GameStatus.PAUSED:
            self._set_status(GameStatus.PLAYING)
        return self._state.status

    def apply_judgement(self, event: gameplay_models.JudgementEvent) -> bool:
        if self._state.status is not GameStatus.PLAYING:
            return False

        state = self._state
        if event.is_hit:
            combo = state.combo + 1
            self._state = replace(
                state,
                score=state.score + self._rules.hit_score,
                combo=combo,
                max_combo=max(state.max_combo, combo),
                health=min(self._rules.max_health, state.health + self._rules.hit_heal),
                hit_count=state.hit_count + 1,
            )
            return True

        health = state.health - self._rules.miss_damage
        self._state = replace(
            state,
            combo=0,
            health=max(0.0, health),
            miss_count=state.miss_count + 1,
        )
        if health <= 0.0:
            self._set_status(GameStatus.GAME_OVER)
        return True

    def countdown_tick(self) -> bool:
        if self._state.status is not GameStatus.PLAYING:
            return False
        remaining = max(0.0, self._state.time_remaining_seconds - self._rules.countdown_step_seconds)
        self._state = replace(self._state, time_remaining_seconds=remaining)
        if remaining <= 0.0:
            self._set_status(GameStatus.VICTORY)
        return True

    def finish_song(self) -> bool:
        if self._state.status is not GameStatus.PLAYING:
            return False
        self._set_status(GameStatus.VICTORY)
        return True

    def reset(self) -> bool:
        if self._state.status in (GameStatus.LOADING, GameStatus.IDLE):
            return False
        self._set_status(GameStatus.IDLE)
        return True


def _run_unit_tests() -> None:
    note = gameplay_models.NoteEvent(note_id="n", time_seconds=1.0, lane=0, hand=gameplay_models.HandSide.LEFT)
    hit = gameplay_models.JudgementEvent(time_seconds=1.0, note=note, judgement=gameplay_models.JudgementKind.HIT)
    miss = gameplay_models.JudgementEvent(time_seconds=1.5, note=note, judgement=gameplay_models.JudgementKind.MISS)

    machine = SessionStateMachine()
    assert machine.mark_tracking_ready()
    assert machine.start(audio_loaded=True, tracking_ready=True)

    machine.apply_judgement(hit)
    machine.apply_judgement(hit)
    assert machine.state().score == 200 and machine.state().combo == 2
    assert machine.state().health == 100.0

    for _ in range(7):
        machine.apply_judgement(miss)
    assert machine.state().combo == 0
    assert machine.state().max_combo == 2
    assert abs(machine.state().health - 30.0) < 1e-9

    for _ in range(3):
        machine.apply_judgement(miss)
    assert machine.status() is GameStatus.GAME_OVER
    assert machine.state().health == 0.0
    assert not machine.apply_judgement(hit)


if __name__ == "__main__":
    _run_unit_tests()
    print("session_state.py: ok")
