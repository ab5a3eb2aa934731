# -*- coding: utf-8 -*-
########################
# hand_signal.py
########################
# Purpose:
# - Turn raw per-frame fingertip detections into stable play-space positions and velocities.
# - One HandTrackState per hand, updated once per detection frame.
# - LatestValue is the single-slot, last-value-wins cell the tracker thread publishes into.
#
# Design notes:
# - No Qt usage. Pure gameplay logic plus one lock.
# - Smoothing is an exponential moving average toward the new raw sample, not a physics model.
# - A hand missing from a frame loses its position immediately. Nothing is extrapolated, so
#   collision never sees a stale position. The last smoothed value is kept only for trails.
# - First appearance (including after a gap) uses the raw mapped position and zero velocity.
#
########################
# Interfaces:
# Public dataclasses:
# - DetectedHand(handedness_label: Optional[str], tip_x: float, tip_y: float)
# - DetectionFrame(timestamp_ms: float, hands: tuple[DetectedHand, ...])
# - HandMapping(x_range, y_range, y_offset, depth_factor, min_y)
#   - map_tip(tip_x: float, tip_y: float) -> numpy.ndarray
# - HandSample(side, position, velocity, previous_position, last_known_position, timestamp_ms)
# - HandsSnapshot(left: HandSample, right: HandSample, timestamp_ms: float)
#
# Public classes:
# - class HandTrackState
# - class HandSignalConditioner
#   - process_frame(frame: DetectionFrame) -> HandsSnapshot
#   - snapshot() -> HandsSnapshot
#   - reset() -> None
# - class LatestValue[T]
#   - publish(value: T) -> None
#   - get() -> Optional[T]
#   - version() -> int
#
########################

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Generic, Optional, Tuple, TypeVar

import numpy

import config
import gameplay_models
from gameplay_models import HandSide


T = TypeVar("T")

RIGHT_HAND_LABEL = "right"


@dataclass(frozen=True)
class DetectedHand:
    handedness_label: Optional[str]
    tip_x: float
    tip_y: float

    def side(self) -> HandSide:
        label = (self.handedness_label or "").strip().lower()
        return HandSide.RIGHT if label == RIGHT_HAND_LABEL else HandSide.LEFT


@dataclass(frozen=True)
class DetectionFrame:
    timestamp_ms: float
    hands: Tuple[DetectedHand, ...] = ()


@dataclass(frozen=True)
class HandMapping:
    x_range: float = 7.5
    y_range: float = 6.0
    y_offset: float = 1.2
    depth_factor: float = 0.1
    min_y: float = 0.1

    @classmethod
    def from_config(cls, hand_tracking: config.HandTrackingConfig) -> "HandMapping":
        return cls(
            x_range=float(hand_tracking.x_range),
            y_range=float(hand_tracking.y_range),
            y_offset=float(hand_tracking.y_offset),
            depth_factor=float(hand_tracking.depth_factor),
            min_y=float(hand_tracking.min_y),
        )

    def map_tip(self, tip_x: float, tip_y: float) -> numpy.ndarray:
        # The camera image is mirrored horizontally and its y axis points down.
        world_x = (0.5 - float(tip_x)) * self.x_range
        world_y = (1.0 - float(tip_y)) * self.y_range - (self.y_range / 2.0) + self.y_offset
        world_z = -max(0.0, world_y * self.depth_factor)
        return gameplay_models.vec3(world_x, max(self.min_y, world_y), world_z)


def _copy(value: Optional[numpy.ndarray]) -> Optional[numpy.ndarray]:
    return None if value is None else value.copy()


@dataclass(frozen=True)
class HandSample:
    side: HandSide
    position: Optional[numpy.ndarray] = None
    velocity: numpy.ndarray = field(default_factory=lambda: numpy.zeros(3))
    previous_position: Optional[numpy.ndarray] = None
    last_known_position: Optional[numpy.ndarray] = None
    timestamp_ms: float = 0.0

    @property
    def is_present(self) -> bool:
        return self.position is not None


@dataclass(frozen=True)
class HandsSnapshot:
    left: HandSample
    right: HandSample
    timestamp_ms: float = 0.0

    @classmethod
    def empty(cls) -> "HandsSnapshot":
        return cls(left=HandSample(side=HandSide.LEFT), right=HandSample(side=HandSide.RIGHT))

    def for_side(self, side: HandSide) -> HandSample:
        return self.left if side is HandSide.LEFT else self.right


class HandTrackState:
    def __init__(self, side: HandSide) -> None:
        self.side = side
        self.position: Optional[numpy.ndarray] = None
        self.velocity = numpy.zeros(3)
        self.previous_position: Optional[numpy.ndarray] = None
        self.last_known_position: Optional[numpy.ndarray] = None
        self.timestamp_ms = 0.0

    def update(
        self,
        raw_position: numpy.ndarray,
        *,
        delta_seconds: Optional[float],
        timestamp_ms: float,
        smoothing_factor: float,
        min_delta_seconds: float,
    ) -> None:
        previous = self.position
        if previous is None:
            smoothed = numpy.asarray(raw_position, dtype=float).copy()
            self.velocity = numpy.zeros(3)
        else:
            smoothed = previous + float(smoothing_factor) * (numpy.asarray(raw_position, dtype=float) - previous)
            if delta_seconds is not None and delta_seconds > min_delta_seconds:
                self.velocity = (smoothed - previous) / float(delta_seconds)

        self.previous_position = previous
        self.position = smoothed
        self.last_known_position = smoothed.copy()
        self.timestamp_ms = float(timestamp_ms)

    def clear(self, timestamp_ms: float) -> None:
        self.position = None
        self.previous_position = None
        self.timestamp_ms = float(timestamp_ms)

    def sample(self) -> HandSample:
        return HandSample(
            side=self.side,
            position=_copy(self.position),
            velocity=self.velocity.copy(),
            previous_position=_copy(self.previous_position),
            last_known_position=_copy(self.last_known_position),
            timestamp_ms=float(self.timestamp_ms),
        )


class HandSignalConditioner:
    def __init__(
        self,
        *,
        mapping: Optional[HandMapping] = None,
        smoothing_factor: float = 0.6,
        min_delta_seconds: float = 0.001,
    ) -> None:
        self._mapping = mapping if mapping is not None else HandMapping()
        self._smoothing_factor = float(smoothing_factor)
        self._min_delta_seconds = float(min_delta_seconds)
        self._tracks: Dict[HandSide, HandTrackState] = {}
        self._last_timestamp_ms: Optional[float] = None
        self.reset()

    @classmethod
    def from_config(cls, hand_tracking: config.HandTrackingConfig) -> "HandSignalConditioner":
        return cls(
            mapping=HandMapping.from_config(hand_tracking),
            smoothing_factor=hand_tracking.smoothing_factor,
            min_delta_seconds=hand_tracking.min_delta_seconds,
        )

    def reset(self) -> None:
        self._tracks = {side: HandTrackState(side) for side in HandSide}
        self._last_timestamp_ms = None

    def track(self, side: HandSide) -> HandTrackState:
        return self._tracks[side]

    def process_frame(self, frame: DetectionFrame) -> HandsSnapshot:
        timestamp_ms = float(frame.timestamp_ms)
        delta_seconds: Optional[float] = None
        if self._last_timestamp_ms is not None:
            delta_seconds = (timestamp_ms - self._last_timestamp_ms) / 1000.0
        self._last_timestamp_ms = timestamp_ms

        # Later detections with the same handedness overwrite earlier ones.
        raw_by_side: Dict[HandSide, numpy.ndarray] = {}
        for hand in frame.hands:
            raw_by_side[hand.side()] = self._mapping.map_tip(hand.tip_x, hand.tip_y)

        for side, track in self._tracks.items():
            raw_position = raw_by_side.get(side)
            if raw_position is None:
                track.clear(timestamp_ms)
                continue
            track.update(
                raw_position,
                delta_seconds=delta_seconds,
                timestamp_ms=timestamp_ms,
                smoothing_factor=self._smoothing_factor,
                min_delta_seconds=self._min_delta_seconds,
            )

        return self.snapshot()

    def snapshot(self) -> HandsSnapshot:
        return HandsSnapshot(
            left=self._tracks[HandSide.LEFT].sample(),
            right=self._tracks[HandSide.RIGHT].sample(),
            timestamp_ms=float(self._last_timestamp_ms or 0.0),
        )


class LatestValue(Generic[T]):
    """Single-writer cell. Readers always get the most recently published value."""

    def __init__(self, initial: Optional[T] = None) -> None:
        self._lock = threading.Lock()
        self._value: Optional[T] = initial
        self._version = 0

    def publish(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    def get(self) -> Optional[T]:
        with self._lock:
            return self._value

    def version(self) -> int:
        with self._lock:
            return self._version


def _run_unit_tests() -> None:
    track = HandTrackState(HandSide.RIGHT)
    track.position = numpy.zeros(3)
    track.update(
        gameplay_models.vec3(10.0, 0.0, 0.0),
        delta_seconds=0.5,
        timestamp_ms=500.0,
        smoothing_factor=0.6,
        min_delta_seconds=0.001,
    )
    assert numpy.allclose(track.position, [6.0, 0.0, 0.0])
    assert numpy.allclose(track.velocity, [12.0, 0.0, 0.0])

    conditioner = HandSignalConditioner()
    snap = conditioner.process_frame(
        DetectionFrame(timestamp_ms=0.0, hands=(DetectedHand("Left", 0.5, 0.5),))
    )
    assert snap.left.is_present and not snap.right.is_present
    assert numpy.allclose(snap.left.velocity, 0.0)

    snap = conditioner.process_frame(DetectionFrame(timestamp_ms=33.0, hands=()))
    assert not snap.left.is_present
    assert snap.left.last_known_position is not None

    slot: LatestValue[int] = LatestValue()
    assert slot.get() is None
    slot.publish(1)
    slot.publish(2)
    assert slot.get() == 2 and slot.version() == 2


if __name__ == "__main__":
    _run_unit_tests()
    print("hand_signal.py: ok")
