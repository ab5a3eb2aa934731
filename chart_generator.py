# -*- coding: utf-8 -*-
########################
# chart_generator.py
########################
# Purpose:
# - Procedural chart generation on a fixed beat grid.
# - Four alternating pattern rules spread notes across the six lanes and both hands.
#
# Design notes:
# - No Qt usage. Pure function of tempo, beat range and the random source.
# - Beat indexes are computed as start + n * step, never accumulated, so float drift cannot
#   shift a step off a pattern boundary.
# - Only the random burst pattern consumes the random source. Pass a seed (or seed_for_song)
#   for reproducible charts.
#
########################
# Interfaces:
# Public enums:
# - ChartPattern: CIRCLE_FLOW | OPPOSITES | RANDOM_BURST | PARALLEL_LINES
#
# Public functions:
# - select_pattern(beat_index: float) -> ChartPattern
# - seed_for_song(song_name: str) -> int
# - generate_chart(*, bpm, start_beat, end_beat, beat_step, seed, random_source) -> gameplay_models.Chart
# - generate_chart_from_config(chart_config: config.ChartConfig, *, seed: Optional[int] = None) -> gameplay_models.Chart
#
# Errors:
# - gameplay_errors.InvalidConfiguration for a non-positive tempo or an empty beat range.
#
########################

from __future__ import annotations

import enum
import hashlib
import math
import random
from typing import List, Optional

import config
import gameplay_models
from gameplay_errors import InvalidConfiguration
from gameplay_models import CutDirection, HandSide, NoteEvent


GENERATOR_VERSION = "hex_v1"

DEFAULT_BPM = 128.0
DEFAULT_START_BEAT = 4.0
DEFAULT_END_BEAT = 200.0
DEFAULT_BEAT_STEP = 1.5

_BEATS_PER_PATTERN = 8


class ChartPattern(enum.IntEnum):
    CIRCLE_FLOW = 0
    OPPOSITES = 1
    RANDOM_BURST = 2
    PARALLEL_LINES = 3


def select_pattern(beat_index: float) -> ChartPattern:
    return ChartPattern(int(math.floor(float(beat_index) / _BEATS_PER_PATTERN)) % len(ChartPattern))


def seed_for_song(song_name: str) -> int:
    payload = f"{(song_name or '').strip()}|{GENERATOR_VERSION}".encode("utf-8")
    digest = hashlib.sha256(payload).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def _hand_for_lane(lane: int) -> HandSide:
    return HandSide.LEFT if lane < 3 else HandSide.RIGHT


def _validate_grid(bpm: float, start_beat: float, end_beat: float, beat_step: float) -> None:
    if not math.isfinite(bpm) or bpm <= 0.0:
        raise InvalidConfiguration(f"bpm must be positive, got {bpm}")
    if not math.isfinite(beat_step) or beat_step <= 0.0:
        raise InvalidConfiguration(f"beat_step must be positive, got {beat_step}")
    if start_beat < 0.0:
        raise InvalidConfiguration(f"start_beat must be non-negative, got {start_beat}")
    if end_beat <= start_beat:
        raise InvalidConfiguration(f"end_beat ({end_beat}) must be greater than start_beat ({start_beat})")


def generate_chart(
    *,
    bpm: float = DEFAULT_BPM,
    start_beat: float = DEFAULT_START_BEAT,
    end_beat: float = DEFAULT_END_BEAT,
    beat_step: float = DEFAULT_BEAT_STEP,
    seed: Optional[int] = None,
    random_source: Optional[random.Random] = None,
) -> gameplay_models.Chart:
    bpm = float(bpm)
    start_beat = float(start_beat)
    end_beat = float(end_beat)
    beat_step = float(beat_step)
    _validate_grid(bpm, start_beat, end_beat, beat_step)

    if random_source is None:
        random_source = random.Random(seed)

    seconds_per_beat = 60.0 / bpm
    note_events: List[NoteEvent] = []

    def emit(time_seconds: float, lane: int, hand: HandSide) -> None:
        note_events.append(
            NoteEvent(
                note_id=f"note-{len(note_events)}",
                time_seconds=time_seconds,
                lane=lane,
                hand=hand,
                cut_direction=CutDirection.ANY,
            )
        )

    step_number = 0
    while True:
        beat_index = start_beat + step_number * beat_step
        if beat_index >= end_beat:
            break
        step_number += 1

        time_seconds = beat_index * seconds_per_beat
        pattern = select_pattern(beat_index)

        if pattern is ChartPattern.CIRCLE_FLOW:
            lane = int(math.floor(beat_index)) % gameplay_models.LANE_COUNT
            emit(time_seconds, lane, _hand_for_lane(lane))
        elif pattern is ChartPattern.OPPOSITES:
            if beat_index % 3 == 0:
                emit(time_seconds, 0, HandSide.LEFT)
                emit(time_seconds, 3, HandSide.RIGHT)
        elif pattern is ChartPattern.RANDOM_BURST:
            if beat_index % 2 == 0:
                lane = random_source.randrange(gameplay_models.LANE_COUNT)
                hand = HandSide.LEFT if random_source.random() > 0.5 else HandSide.RIGHT
                emit(time_seconds, lane, hand)
        else:
            if beat_index % 4 == 0:
                emit(time_seconds, 1, HandSide.LEFT)
                emit(time_seconds, 4, HandSide.RIGHT)

    # Emission order is already time ordered; the stable sort keeps chord order as emitted.
    note_events.sort(key=lambda note: note.time_seconds)

    return gameplay_models.Chart(
        notes=note_events,
        bpm=bpm,
        duration_seconds=float(end_beat * seconds_per_beat),
    )


def generate_chart_from_config(chart_config: config.ChartConfig, *, seed: Optional[int] = None) -> gameplay_models.Chart:
    effective_seed = seed if seed is not None else chart_config.seed
    return generate_chart(
        bpm=chart_config.bpm,
        start_beat=chart_config.start_beat,
        end_beat=chart_config.end_beat,
        beat_step=chart_config.beat_step,
        seed=effective_seed,
    )


def _run_unit_tests() -> None:
    chart = generate_chart(bpm=128.0, seed=7)
    times = [note.time_seconds for note in chart.notes]
    assert times == sorted(times)

    first = chart.notes[0]
    assert abs(first.time_seconds - 1.875) < 1e-9
    assert first.lane == 4
    assert first.hand is HandSide.RIGHT

    assert select_pattern(4.0) is ChartPattern.CIRCLE_FLOW
    assert select_pattern(8.5) is ChartPattern.OPPOSITES
    assert select_pattern(16.0) is ChartPattern.RANDOM_BURST
    assert select_pattern(31.0) is ChartPattern.PARALLEL_LINES
    assert select_pattern(32.5) is ChartPattern.CIRCLE_FLOW

    again = generate_chart(bpm=128.0, seed=7)
    assert [(n.lane, n.hand) for n in again.notes] == [(n.lane, n.hand) for n in chart.notes]

    try:
        generate_chart(bpm=0.0)
    except InvalidConfiguration:
        pass
    else:
        raise AssertionError("zero bpm must be rejected")


if __name__ == "__main__":
    _run_unit_tests()
    print("chart_generator.py: ok")
