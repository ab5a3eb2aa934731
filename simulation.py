# -*- coding: utf-8 -*-
########################
# simulation.py
########################
# Purpose:
# - Headless session runner for local testing and tuning.
# - Drives SessionController with a virtual clock and a scripted player whose fingertips go through
#   the same HandSignalConditioner as camera detections.
#
# Design notes:
# - No event loop is run. Frame and countdown ticks are called directly at virtual times, so a full
#   90 second session finishes in well under a second.
# - The scripted player decides once per note whether it will strike it (accuracy), then holds the
#   matching hand on the lane anchor while the note is in the judgement window.
#
########################
# Interfaces:
# Public dataclasses:
# - SimulationResult(state: SessionState, total_notes: int, song_time_seconds: float, seed: Optional[int])
#   - to_dict() -> dict
#
# Public classes:
# - class ScriptedPlayer
#   - frame(scheduler: NoteScheduler, song_time_seconds: float, timestamp_ms: float) -> HandsSnapshot
#
# Public functions:
# - simulate_session(app_config, *, accuracy, seed, frame_rate, max_seconds) -> SimulationResult
#
########################

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import QCoreApplication

import chart_generator
import config
import judge
import note_scheduler
import session_state
import timing_model
from gameplay_models import HandSide, ScheduledNote
from hand_signal import DetectedHand, DetectionFrame, HandMapping, HandsSnapshot, HandSignalConditioner
from play_space import PlayfieldGeometry
from session_controller import SessionController


_HANDEDNESS_LABELS = {HandSide.LEFT: "Left", HandSide.RIGHT: "Right"}


@dataclass(frozen=True)
class SimulationResult:
    state: session_state.SessionState
    total_notes: int
    song_time_seconds: float
    seed: Optional[int]

    def to_dict(self) -> dict:
        payload = self.state.to_dict()
        payload["total_notes"] = self.total_notes
        payload["song_time_seconds"] = round(self.song_time_seconds, 3)
        payload["seed"] = self.seed
        return payload


def _tip_for_position(mapping: HandMapping, x: float, y: float) -> Tuple[float, float]:
    tip_x = 0.5 - x / mapping.x_range
    tip_y = 1.0 - (y + mapping.y_range / 2.0 - mapping.y_offset) / mapping.y_range
    return tip_x, tip_y


class ScriptedPlayer:
    def __init__(
        self,
        *,
        conditioner: HandSignalConditioner,
        mapping: HandMapping,
        geometry: PlayfieldGeometry,
        judgement_window: judge.JudgementWindow,
        accuracy: float,
        random_source: random.Random,
    ) -> None:
        self._conditioner = conditioner
        self._mapping = mapping
        self._geometry = geometry
        self._judgement_window = judgement_window
        self._accuracy = float(accuracy)
        self._random_source = random_source
        self._intent: Dict[str, bool] = {}

    def _will_strike(self, scheduled_note: ScheduledNote) -> bool:
        note_id = scheduled_note.note_event.note_id
        if note_id not in self._intent:
            self._intent[note_id] = self._random_source.random() < self._accuracy
        return self._intent[note_id]

    def _target_for(
        self,
        side: HandSide,
        candidates: List[ScheduledNote],
        scheduler: note_scheduler.NoteScheduler,
        song_time_seconds: float,
    ) -> Optional[ScheduledNote]:
        for scheduled_note in candidates:
            if scheduled_note.is_resolved or scheduled_note.note_event.hand is not side:
                continue
            depth = scheduler.depth_of(scheduled_note, song_time_seconds)
            if not self._judgement_window.contains_depth(depth, self._geometry.player_z):
                continue
            if self._will_strike(scheduled_note):
                return scheduled_note
        return None

    def frame(
        self,
        scheduler: note_scheduler.NoteScheduler,
        song_time_seconds: float,
        timestamp_ms: float,
    ) -> HandsSnapshot:
        candidates = scheduler.active_notes()
        hands = []
        for side in HandSide:
            target = self._target_for(side, candidates, scheduler, song_time_seconds)
            if target is None:
                continue
            lane_x, lane_y = self._geometry.lane_position(target.note_event.lane)
            tip_x, tip_y = _tip_for_position(self._mapping, lane_x, lane_y)
            hands.append(DetectedHand(handedness_label=_HANDEDNESS_LABELS[side], tip_x=tip_x, tip_y=tip_y))
        return self._conditioner.process_frame(DetectionFrame(timestamp_ms=timestamp_ms, hands=tuple(hands)))


def _ensure_qt_core_application() -> QCoreApplication:
    existing = QCoreApplication.instance()
    if existing is not None:
        return existing
    return QCoreApplication([])


def simulate_session(
    app_config: config.AppConfig,
    *,
    accuracy: float = 0.9,
    seed: Optional[int] = None,
    frame_rate: float = 60.0,
    max_seconds: Optional[float] = None,
) -> SimulationResult:
    if frame_rate <= 0.0:
        raise ValueError("frame_rate must be positive")
    if not 0.0 <= accuracy <= 1.0:
        raise ValueError("accuracy must be in [0, 1]")

    _ensure_qt_core_application()

    now = [0.0]
    chart = chart_generator.generate_chart_from_config(app_config.chart, seed=seed)
    playback = timing_model.WallClockPlayback(time_source=lambda: now[0])
    latest_hands = [HandsSnapshot.empty()]

    controller = SessionController(
        app_config,
        playback=playback,
        hands_source=lambda: latest_hands[0],
        tracking_ready=lambda: True,
        chart_factory=lambda: chart,
    )
    player = ScriptedPlayer(
        conditioner=HandSignalConditioner.from_config(app_config.hand_tracking),
        mapping=HandMapping.from_config(app_config.hand_tracking),
        geometry=PlayfieldGeometry.from_config(app_config.playfield),
        judgement_window=judge.JudgementWindow.from_config(app_config.judgement),
        accuracy=accuracy,
        random_source=random.Random(seed),
    )

    frame_seconds = 1.0 / float(frame_rate)
    countdown_seconds = float(app_config.session.countdown_interval_ms) / 1000.0
    limit_seconds = float(max_seconds) if max_seconds is not None else app_config.session.time_limit_seconds + 5.0

    try:
        controller.on_frame_tick()
        controller.start()
        scheduler = controller.note_scheduler()
        next_countdown = countdown_seconds

        while not controller.state().status.is_terminal and now[0] < limit_seconds:
            now[0] += frame_seconds
            if scheduler is not None:
                latest_hands[0] = player.frame(scheduler, playback.position_seconds(), now[0] * 1000.0)
            controller.on_frame_tick()
            if now[0] >= next_countdown:
                controller.on_countdown_tick()
                next_countdown += countdown_seconds
    finally:
        controller.shutdown()

    return SimulationResult(
        state=controller.state(),
        total_notes=len(chart.notes),
        song_time_seconds=controller.song_time_seconds(),
        seed=seed,
    )
