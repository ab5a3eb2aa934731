# -*- coding: utf-8 -*-
########################
# session_controller.py
########################
# Purpose:
# - Integrates PlaybackClock + chart_generator + NoteScheduler + JudgeEngine + SessionStateMachine.
# - Owns the two cooperative timers: the render-frame tick and the fixed-period countdown.
# - Emits Qt signals for renderers, HUDs and feedback (sound, particles).
#
# Design notes:
# - Everything runs on the Qt event loop thread. The only cross-thread input is the hand snapshot,
#   read through the injected hands_source (last value wins).
# - While paused or in a terminal state no tick changes state. Timers keep their QObject parent,
#   so they die with the controller.
# - Per tick: sync clock, admit, expire (misses), judge (hits). Processing stops as soon as the
#   session leaves playing. Misses are expired one at a time, so every missed flag has a noteMissed.
# - start() builds the chart before leaving idle. A chart factory error leaves the session idle.
# - Terminal states pause playback and stop the countdown. shutdown() stops both timers.
#
########################
# Interfaces:
# Public classes:
# - class SessionController(PyQt6.QtCore.QObject)
#   - Signals:
#     - noteHit(JudgementEvent)
#     - noteMissed(JudgementEvent)
#     - stateChanged(SessionState)
#   - Methods:
#     - activate() -> None
#     - shutdown() -> None
#     - state() -> SessionState
#     - note_scheduler() -> Optional[NoteScheduler]
#     - visible_notes() -> list[NotePose]
#     - song_time_seconds() -> float
#     - start() -> bool
#     - toggle_pause() -> GameStatus
#     - reset() -> bool
#     - on_frame_tick() -> None
#     - on_countdown_tick() -> None
#
# Inputs:
# - AudioPlayback (position, loaded, ended), hands_source() -> HandsSnapshot, tracking_ready() -> bool.
#
# Outputs:
# - Signals above plus visible note poses for rendering.
#
########################

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

import chart_generator
import config
import gameplay_models
import judge
import note_scheduler
import session_state
import timing_model
from hand_signal import HandsSnapshot
from play_space import PlayfieldGeometry
from session_state import GameStatus


logger = logging.getLogger(__name__)


class SessionController(QObject):
    noteHit = pyqtSignal(object)
    noteMissed = pyqtSignal(object)
    stateChanged = pyqtSignal(object)

    def __init__(
        self,
        app_config: config.AppConfig,
        *,
        playback: timing_model.AudioPlayback,
        hands_source: Callable[[], HandsSnapshot],
        tracking_ready: Callable[[], bool],
        chart_factory: Optional[Callable[[], gameplay_models.Chart]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._config = app_config
        self._playback = playback
        self._hands_source = hands_source
        self._tracking_ready = tracking_ready
        self._chart_factory = chart_factory or (lambda: chart_generator.generate_chart_from_config(app_config.chart))

        self._geometry = PlayfieldGeometry.from_config(app_config.playfield)
        self._judgement_window = judge.JudgementWindow.from_config(app_config.judgement)
        self._clock = timing_model.PlaybackClock()
        self._machine = session_state.SessionStateMachine(session_state.SessionRules.from_config(app_config.session))

        self._note_scheduler: Optional[note_scheduler.NoteScheduler] = None
        self._judge_engine: Optional[judge.JudgeEngine] = None

        self._frame_timer = QTimer(self)
        self._frame_timer.setInterval(int(app_config.session.frame_interval_ms))
        self._frame_timer.timeout.connect(self.on_frame_tick)

        self._countdown_timer = QTimer(self)
        self._countdown_timer.setInterval(int(app_config.session.countdown_interval_ms))
        self._countdown_timer.timeout.connect(self.on_countdown_tick)

    # -----------------
    # Lifecycle
    # -----------------

    def activate(self) -> None:
        self._frame_timer.start()
        self._poll_tracking_ready()

    def shutdown(self) -> None:
        self._frame_timer.stop()
        self._countdown_timer.stop()
        if self._machine.status() in (GameStatus.PLAYING, GameStatus.PAUSED):
            self._playback.pause()

    # -----------------
    # Queries
    # -----------------

    def state(self) -> session_state.SessionState:
        return self._machine.state()

    def note_scheduler(self) -> Optional[note_scheduler.NoteScheduler]:
        return self._note_scheduler

    def song_time_seconds(self) -> float:
        return self._clock.song_time_seconds()

    def visible_notes(self) -> List[gameplay_models.NotePose]:
        if self._note_scheduler is None:
            return []
        return self._note_scheduler.visible_notes(self._clock.song_time_seconds())

    # -----------------
    # Commands
    # -----------------

    def start(self) -> bool:
        audio_loaded = bool(self._playback.is_loaded())
        tracking_ready = bool(self._tracking_ready())
        if not self._machine.check_can_start(audio_loaded=audio_loaded, tracking_ready=tracking_ready):
            return False

        # Chart and scheduler are built while still idle, so a bad chart config leaves the session idle.
        chart = self._chart_factory()
        scheduler = note_scheduler.NoteScheduler(
            chart,
            self._geometry,
            visible_span_seconds=self._config.playfield.visible_span_seconds,
            debris_seconds=self._config.playfield.debris_seconds,
        )
        self._machine.start(audio_loaded=audio_loaded, tracking_ready=tracking_ready)

        self._note_scheduler = scheduler
        self._judge_engine = judge.JudgeEngine(scheduler, self._judgement_window)
        self._clock.reset()

        self._playback.seek(0.0)
        self._playback.play()
        self._countdown_timer.start()
        logger.info("Session started with %d notes at %.1f bpm", len(chart.notes), chart.bpm)
        self._emit_state()
        return True

    def toggle_pause(self) -> GameStatus:
        status = self._machine.toggle_pause()
        if status is GameStatus.PAUSED:
            self._playback.pause()
            self._countdown_timer.stop()
        elif status is GameStatus.PLAYING:
            self._playback.play()
            self._countdown_timer.start()
        self._emit_state()
        return status

    def reset(self) -> bool:
        if not self._machine.reset():
            return False
        self._countdown_timer.stop()
        self._playback.pause()
        self._playback.seek(0.0)
        self._clock.reset()
        self._note_scheduler = None
        self._judge_engine = None
        self._emit_state()
        return True

    # -----------------
    # Timer handlers
    # -----------------

    def on_frame_tick(self) -> None:
        if self._machine.status() is GameStatus.LOADING:
            self._poll_tracking_ready()
            return
        if self._machine.status() is not GameStatus.PLAYING:
            return
        if self._note_scheduler is None or self._judge_engine is None:
            return

        song_time = self._clock.sync_from(self._playback)
        self._note_scheduler.admit_notes(song_time)

        changed = False
        # One miss per call: notes behind a game-over miss stay unflagged.
        while self._machine.status() is GameStatus.PLAYING:
            misses = self._note_scheduler.expire_notes(song_time, limit=1)
            if not misses:
                break
            changed = self._apply(misses[0]) or changed

        if self._machine.status() is GameStatus.PLAYING:
            for event in self._judge_engine.update_for_time(song_time, self._hands_source()):
                changed = self._apply(event) or changed

        if self._machine.status() is GameStatus.PLAYING and self._playback.has_ended():
            changed = self._machine.finish_song() or changed

        if changed:
            self._after_state_change()

    def on_countdown_tick(self) -> None:
        if self._machine.countdown_tick():
            self._after_state_change()

    # -----------------
    # Internals
    # -----------------

    def _poll_tracking_ready(self) -> None:
        if self._tracking_ready() and self._machine.mark_tracking_ready():
            self._emit_state()

    def _apply(self, event: gameplay_models.JudgementEvent) -> bool:
        if not self._machine.apply_judgement(event):
            return False
        if event.is_hit:
            self.noteHit.emit(event)
        else:
            self.noteMissed.emit(event)
        return True

    def _after_state_change(self) -> None:
        if self._machine.status().is_terminal:
            self._countdown_timer.stop()
            self._playback.pause()
        self._emit_state()

    def _emit_state(self) -> None:
        self.stateChanged.emit(self._machine.state())
