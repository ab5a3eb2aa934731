# -*- coding: utf-8 -*-
########################
# gameplay_models.py
########################
# Purpose:
# - Core gameplay data models for the runtime gameplay pipeline.
# - Defines notes, charts, judgement events and the per-frame note pose handed to renderers.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. Plain dataclasses and enums.
# - NoteEvent is immutable chart data. ScheduledNote carries the one-shot judgement state.
# - A ScheduledNote transitions at most once: unresolved -> hit, or unresolved -> missed.
#
########################
# Interfaces:
# Public enums:
# - HandSide: LEFT | RIGHT
# - CutDirection: UP | DOWN | LEFT | RIGHT | ANY
# - JudgementKind: HIT | MISS
#
# Public dataclasses:
# - NoteEvent(note_id: str, time_seconds: float, lane: int, hand: HandSide, cut_direction: CutDirection)
# - ScheduledNote(note_event: NoteEvent, hit: bool, hit_time_seconds: Optional[float], missed: bool)
#   - is_resolved -> bool
#   - mark_hit(time_seconds: float) -> None
#   - mark_missed() -> None
# - Chart(notes: list[NoteEvent], bpm: float, duration_seconds: float)
# - JudgementEvent(time_seconds: float, note: NoteEvent, judgement: JudgementKind, good_cut: bool)
# - NotePose(note: ScheduledNote, position: numpy.ndarray)
#
# Public functions:
# - vec3(x, y, z) -> numpy.ndarray
#
# Inputs/Outputs:
# - These types are exchanged between chart_generator, NoteScheduler, JudgeEngine, SessionStateMachine
#   and the session controller.
#
########################

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional

import numpy


LANE_COUNT = 6


def vec3(x: float, y: float, z: float) -> numpy.ndarray:
    return numpy.array([float(x), float(y), float(z)], dtype=float)


class HandSide(enum.Enum):
    LEFT = "left"
    RIGHT = "right"


class CutDirection(enum.Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    ANY = "any"


class JudgementKind(enum.Enum):
    HIT = "hit"
    MISS = "miss"


@dataclass(frozen=True)
class NoteEvent:
    note_id: str
    time_seconds: float
    lane: int
    hand: HandSide
    cut_direction: CutDirection = CutDirection.ANY

    def __post_init__(self) -> None:
        if not 0 <= int(self.lane) < LANE_COUNT:
            raise ValueError(f"lane must be in [0, {LANE_COUNT}), got {self.lane}")
        if float(self.time_seconds) < 0.0:
            raise ValueError(f"time_seconds must be non-negative, got {self.time_seconds}")


@dataclass
class ScheduledNote:
    note_event: NoteEvent
    hit: bool = False
    hit_time_seconds: Optional[float] = None
    missed: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.hit or self.missed

    def mark_hit(self, time_seconds: float) -> None:
        if self.is_resolved:
            raise RuntimeError(f"note {self.note_event.note_id} is already resolved")
        self.hit = True
        self.hit_time_seconds = float(time_seconds)

    def mark_missed(self) -> None:
        if self.is_resolved:
            raise RuntimeError(f"note {self.note_event.note_id} is already resolved")
        self.missed = True


@dataclass(frozen=True)
class Chart:
    notes: List[NoteEvent]
    bpm: float
    duration_seconds: float


@dataclass(frozen=True)
class JudgementEvent:
    time_seconds: float
    note: NoteEvent
    judgement: JudgementKind
    # Reserved for cut-quality grading. Every hit is currently a full hit.
    good_cut: bool = True

    @property
    def is_hit(self) -> bool:
        return self.judgement is JudgementKind.HIT


@dataclass(frozen=True)
class NotePose:
    note: ScheduledNote
    position: numpy.ndarray


def _run_unit_tests() -> None:
    note = NoteEvent(note_id="note-0", time_seconds=1.0, lane=2, hand=HandSide.LEFT)
    scheduled = ScheduledNote(note_event=note)
    assert not scheduled.is_resolved

    scheduled.mark_hit(1.02)
    assert scheduled.hit and not scheduled.missed
    assert scheduled.hit_time_seconds == 1.02

    try:
        scheduled.mark_missed()
    except RuntimeError:
        pass
    else:
        raise AssertionError("a hit note must not be marked missed")

    try:
        NoteEvent(note_id="bad", time_seconds=0.0, lane=6, hand=HandSide.RIGHT)
    except ValueError:
        pass
    else:
        raise AssertionError("lane 6 is out of range")


if __name__ == "__main__":
    _run_unit_tests()
    print("gameplay_models.py: ok")
