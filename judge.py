# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit detection engine.
# - Once per tick, matches every active note inside the judgement window against the conditioned
#   position of the hand that note expects.
# - Generates JudgementEvent for hits. Misses come from NoteScheduler.expire_notes.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Strict inputs: consume only song_time_seconds and a HandsSnapshot.
# - The window is asymmetric in depth: wider before the hit zone than after it.
# - Notes are judged independently. One hand sample may hit several notes in the same tick.
# - A note is judged at most once: the first qualifying tick wins.
# - Scheduler owns the note list; JudgeEngine resolves hits via NoteScheduler.mark_hit.
#
########################
# Interfaces:
# Public dataclasses:
# - JudgementWindow(window_before: float, window_after: float, hit_radius: float)
#   - contains_depth(depth: float, player_z: float) -> bool
#
# Public classes:
# - class JudgeEngine
#   - __init__(note_scheduler: NoteScheduler, judgement_window: JudgementWindow)
#   - judgement_window() -> JudgementWindow
#   - clear_recent_judgements() -> None
#   - recent_judgements() -> list[JudgementEvent]
#   - reset() -> None
#   - update_for_time(song_time_seconds: float, hands: HandsSnapshot) -> list[JudgementEvent]
#
# Inputs:
# - song_time_seconds: float (from PlaybackClock)
# - hands: HandsSnapshot (latest value published by the hand tracker)
#
# Outputs:
# - JudgementEvent objects for the session state machine and feedback triggers.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy

import config
import gameplay_models
import note_scheduler
from hand_signal import HandsSnapshot


@dataclass(frozen=True)
class JudgementWindow:
    window_before: float = 1.2
    window_after: float = 0.6
    hit_radius: float = 1.1

    @classmethod
    def from_config(cls, judgement: config.JudgementConfig) -> "JudgementWindow":
        return cls(
            window_before=float(judgement.window_before),
            window_after=float(judgement.window_after),
            hit_radius=float(judgement.hit_radius),
        )

    def contains_depth(self, depth: float, player_z: float) -> bool:
        return (player_z - self.window_before) < float(depth) < (player_z + self.window_after)


class JudgeEngine:
    def __init__(
        self,
        note_scheduler_obj: note_scheduler.NoteScheduler,
        judgement_window: JudgementWindow,
    ) -> None:
        self._note_scheduler = note_scheduler_obj
        self._judgement_window = judgement_window
        self._recent_judgements: List[gameplay_models.JudgementEvent] = []

    def judgement_window(self) -> JudgementWindow:
        return self._judgement_window

    def clear_recent_judgements(self) -> None:
        self._recent_judgements.clear()

    def recent_judgements(self) -> List[gameplay_models.JudgementEvent]:
        return list(self._recent_judgements)

    def reset(self) -> None:
        self._recent_judgements.clear()

    def update_for_time(self, song_time_seconds: float, hands: HandsSnapshot) -> List[gameplay_models.JudgementEvent]:
        now = float(song_time_seconds)
        geometry = self._note_scheduler.geometry()
        hits: List[gameplay_models.JudgementEvent] = []

        for scheduled_note in self._note_scheduler.active_notes():
            if scheduled_note.is_resolved:
                continue

            depth = self._note_scheduler.depth_of(scheduled_note, now)
            if not self._judgement_window.contains_depth(depth, geometry.player_z):
                continue

            hand_position = hands.for_side(scheduled_note.note_event.hand).position
            if hand_position is None:
                continue

            anchor = geometry.anchor(scheduled_note.note_event.lane, depth)
            distance = float(numpy.linalg.norm(hand_position - anchor))
            if distance >= self._judgement_window.hit_radius:
                continue

            event = self._note_scheduler.mark_hit(scheduled_note, now)
            self._recent_judgements.append(event)
            hits.append(event)

        return hits


def _run_unit_tests() -> None:
    from hand_signal import HandSample
    from play_space import PlayfieldGeometry

    HandSide = gameplay_models.HandSide
    chart = gameplay_models.Chart(
        notes=[gameplay_models.NoteEvent(note_id="n", time_seconds=3.0, lane=0, hand=HandSide.LEFT)],
        bpm=120.0,
        duration_seconds=5.0,
    )
    geometry = PlayfieldGeometry()
    scheduler = note_scheduler.NoteScheduler(chart, geometry)
    engine = JudgeEngine(scheduler, JudgementWindow())
    scheduler.admit_notes(3.0)

    empty = HandsSnapshot.empty()
    assert engine.update_for_time(3.0, empty) == []

    # Right hand at the anchor does not count for a left-hand note.
    anchor = geometry.anchor(0, 0.0)
    wrong_hand = HandsSnapshot(left=HandSample(side=HandSide.LEFT), right=HandSample(side=HandSide.RIGHT, position=anchor))
    assert engine.update_for_time(3.0, wrong_hand) == []

    matching_hand = HandsSnapshot(left=HandSample(side=HandSide.LEFT, position=anchor), right=HandSample(side=HandSide.RIGHT))
    hits = engine.update_for_time(3.0, matching_hand)
    assert len(hits) == 1 and hits[0].is_hit
    assert engine.update_for_time(3.0, matching_hand) == []


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
