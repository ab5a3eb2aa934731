# -*- coding: utf-8 -*-
########################
# note_scheduler.py
########################
# Purpose:
# - Maintain the active set: notes that have spawned and are eligible for judgement or expiry.
# - Admits notes from the time-sorted chart as the song clock reaches their spawn time.
# - Expires notes that travel past the miss boundary and reports them as misses.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Schedule order is deterministic: a stable sort by time_seconds keeps chord order as generated.
# - The read index only moves forward, so every note is admitted exactly once.
# - This module owns the ScheduledNote list and its judgement flags. JudgeEngine resolves hits
#   through mark_hit so the active set stays consistent.
#
########################
# Interfaces:
# Public classes:
# - class NoteScheduler
#   - __init__(chart: gameplay_models.Chart, geometry: PlayfieldGeometry, *, visible_span_seconds, debris_seconds)
#   - chart() -> gameplay_models.Chart
#   - geometry() -> PlayfieldGeometry
#   - scheduled_notes() -> list[ScheduledNote]
#   - active_notes() -> list[ScheduledNote]
#   - read_index() -> int
#   - reset() -> None
#   - depth_of(scheduled_note: ScheduledNote, song_time_seconds: float) -> float
#   - admit_notes(song_time_seconds: float) -> list[ScheduledNote]
#   - expire_notes(song_time_seconds: float, *, limit: Optional[int] = None) -> list[JudgementEvent]
#   - mark_hit(scheduled_note: ScheduledNote, song_time_seconds: float) -> JudgementEvent
#   - is_exhausted() -> bool
#   - visible_notes(song_time_seconds: float) -> list[NotePose]
#
# Inputs:
# - Chart, playfield geometry and the current song time.
#
# Outputs:
# - Active notes for JudgeEngine, miss events for the session, note poses for rendering.
#
########################

from __future__ import annotations

from typing import List, Optional

import gameplay_models
from gameplay_models import JudgementEvent, JudgementKind, NotePose, ScheduledNote
from play_space import PlayfieldGeometry


class NoteScheduler:
    def __init__(
        self,
        chart: gameplay_models.Chart,
        geometry: PlayfieldGeometry,
        *,
        visible_span_seconds: float = 4.5,
        debris_seconds: float = 0.3,
    ) -> None:
        sorted_notes = sorted(chart.notes, key=lambda item: float(item.time_seconds))
        self._chart = gameplay_models.Chart(
            notes=list(sorted_notes),
            bpm=float(chart.bpm),
            duration_seconds=float(chart.duration_seconds),
        )
        self._geometry = geometry
        self._spawn_lookahead_seconds = geometry.spawn_lookahead_seconds()
        self._visible_span_seconds = float(visible_span_seconds)
        self._debris_seconds = float(debris_seconds)
        self._scheduled_notes = [ScheduledNote(note_event=note) for note in self._chart.notes]
        self._read_index = 0
        self._active: List[ScheduledNote] = []

    def chart(self) -> gameplay_models.Chart:
        return self._chart

    def geometry(self) -> PlayfieldGeometry:
        return self._geometry

    def scheduled_notes(self) -> List[ScheduledNote]:
        return list(self._scheduled_notes)

    def active_notes(self) -> List[ScheduledNote]:
        return list(self._active)

    def read_index(self) -> int:
        return self._read_index

    def reset(self) -> None:
        self._scheduled_notes = [ScheduledNote(note_event=note) for note in self._chart.notes]
        self._read_index = 0
        self._active.clear()

    def depth_of(self, scheduled_note: ScheduledNote, song_time_seconds: float) -> float:
        return self._geometry.depth_at(scheduled_note.note_event.time_seconds, song_time_seconds)

    def admit_notes(self, song_time_seconds: float) -> List[ScheduledNote]:
        now = float(song_time_seconds)
        admitted: List[ScheduledNote] = []
        while self._read_index < len(self._scheduled_notes):
            candidate = self._scheduled_notes[self._read_index]
            if candidate.note_event.time_seconds - self._spawn_lookahead_seconds > now:
                break
            self._active.append(candidate)
            admitted.append(candidate)
            self._read_index += 1
        return admitted

    def expire_notes(self, song_time_seconds: float, *, limit: Optional[int] = None) -> List[JudgementEvent]:
        """
        Mark notes past the miss boundary as missed and return one MISS event per note.

        With `limit`, at most that many notes are expired. The rest stay active and unflagged until
        the next call.
        """
        now = float(song_time_seconds)
        misses: List[JudgementEvent] = []
        still_active: List[ScheduledNote] = []
        for scheduled_note in self._active:
            if scheduled_note.is_resolved:
                continue
            limit_reached = limit is not None and len(misses) >= limit
            if not limit_reached and self.depth_of(scheduled_note, now) > self._geometry.miss_z:
                scheduled_note.mark_missed()
                misses.append(
                    JudgementEvent(
                        time_seconds=now,
                        note=scheduled_note.note_event,
                        judgement=JudgementKind.MISS,
                        good_cut=False,
                    )
                )
                continue
            still_active.append(scheduled_note)
        self._active = still_active
        return misses

    def mark_hit(self, scheduled_note: ScheduledNote, song_time_seconds: float) -> JudgementEvent:
        scheduled_note.mark_hit(song_time_seconds)
        self._active = [item for item in self._active if item is not scheduled_note]
        return JudgementEvent(
            time_seconds=float(song_time_seconds),
            note=scheduled_note.note_event,
            judgement=JudgementKind.HIT,
            good_cut=True,
        )

    def is_exhausted(self) -> bool:
        return self._read_index >= len(self._scheduled_notes) and not self._active

    def visible_notes(self, song_time_seconds: float) -> List[NotePose]:
        now = float(song_time_seconds)
        poses: List[NotePose] = []
        for scheduled_note in self._scheduled_notes[: self._read_index]:
            if scheduled_note.missed:
                continue
            if scheduled_note.hit and now - float(scheduled_note.hit_time_seconds or 0.0) >= self._debris_seconds:
                continue
            note_event = scheduled_note.note_event
            if abs(note_event.time_seconds - now) >= self._visible_span_seconds:
                continue
            depth = self.depth_of(scheduled_note, now)
            poses.append(NotePose(note=scheduled_note, position=self._geometry.anchor(note_event.lane, depth)))
        return poses


def _run_unit_tests() -> None:
    HandSide = gameplay_models.HandSide
    notes = [
        gameplay_models.NoteEvent(note_id="b", time_seconds=5.0, lane=1, hand=HandSide.LEFT),
        gameplay_models.NoteEvent(note_id="a", time_seconds=3.0, lane=4, hand=HandSide.RIGHT),
    ]
    chart = gameplay_models.Chart(notes=notes, bpm=120.0, duration_seconds=10.0)
    scheduler = NoteScheduler(chart, PlayfieldGeometry())

    # Lookahead is 30 / 12 = 2.5 seconds.
    assert scheduler.admit_notes(0.4) == []
    admitted = scheduler.admit_notes(0.5)
    assert [n.note_event.note_id for n in admitted] == ["a"]
    assert scheduler.admit_notes(0.5) == []

    # Miss boundary at depth 5 is 5 / 12 seconds after the note time.
    assert scheduler.expire_notes(3.4) == []
    misses = scheduler.expire_notes(3.5)
    assert [m.note.note_id for m in misses] == ["a"]
    assert scheduler.active_notes() == []
    assert scheduler.expire_notes(10.0) == []


if __name__ == "__main__":
    _run_unit_tests()
    print("note_scheduler.py: ok")
