# -*- coding: utf-8 -*-
########################
# hand_tracker.py
########################
# Purpose:
# - Owns the camera and the MediaPipe hand landmarker, and runs detection on its own thread.
# - Feeds each frame's index fingertips through HandSignalConditioner and publishes the result into
#   a LatestValue slot that the gameplay tick reads.
#
# Design notes:
# - Detection runs at the camera and detector cadence, independent of the render tick.
#   Readers take the latest snapshot and tolerate it being a frame or two old.
# - A detector exception on a single frame is treated as "no hands this frame".
# - is_ready() turns true after the first frame the camera actually delivers, not when it opens.
# - Camera and detector are opened on the tracking thread and always released in its finally block,
#   including when opening fails. stop() joins the thread.
# - mediapipe and cv2 are imported lazily so the gameplay core imports without them.
#
########################
# Interfaces:
# Public protocols:
# - TipDetector: detect(frame_bgr, timestamp_ms: int) -> tuple[DetectedHand, ...], close() -> None
#
# Public classes:
# - class MediaPipeTipDetector(TipDetector)
# - class HandTracker
#   - from_config(hand_tracking: config.HandTrackingConfig) -> HandTracker
#   - start() -> None
#   - stop(timeout_seconds: float = 2.0) -> None
#   - is_ready() -> bool
#   - is_running() -> bool
#   - last_error() -> Optional[BaseException]
#   - latest_hands() -> HandsSnapshot
#
# Public functions:
# - default_model_path() -> pathlib.Path
# - ensure_hand_landmarker_task(model_path: pathlib.Path) -> pathlib.Path
#
########################

from __future__ import annotations

import logging
import threading
import time
import urllib.request
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Tuple

from platformdirs import user_cache_dir

import config
from gameplay_errors import SensorUnavailable
from hand_signal import DetectedHand, DetectionFrame, HandsSnapshot, HandSignalConditioner, LatestValue


logger = logging.getLogger(__name__)

HAND_LANDMARKER_TASK_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/latest/hand_landmarker.task"
)

INDEX_FINGER_TIP = 8


def default_model_path() -> Path:
    return Path(user_cache_dir("Gubang", appauthor=False)) / "hand_landmarker.task"


def ensure_hand_landmarker_task(model_path: Path, *, url: str = HAND_LANDMARKER_TASK_URL, timeout_s: int = 30) -> Path:
    """
    Ensure `hand_landmarker.task` exists at `model_path`.

    If missing, downloads it from the official MediaPipe model bucket.
    """
    if model_path.exists():
        return model_path

    model_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading hand landmarker model to %s", model_path)
    try:
        with urllib.request.urlopen(url, timeout=timeout_s) as response, open(model_path, "wb") as handle:
            handle.write(response.read())
    except OSError as exception:
        # Clean up partial downloads.
        model_path.unlink(missing_ok=True)
        raise SensorUnavailable(
            f"Missing hand landmarker model and download failed.\nExpected model at: {model_path}\nURL: {url}"
        ) from exception

    return model_path


class TipDetector(Protocol):
    def detect(self, frame_bgr: Any, timestamp_ms: int) -> Tuple[DetectedHand, ...]: ...

    def close(self) -> None: ...


class MediaPipeTipDetector:
    """
    Index fingertip detector using the MediaPipe Tasks HandLandmarker in VIDEO mode.

    Input frames are expected as **BGR** images (OpenCV default).
    """

    def __init__(self, hand_tracking: config.HandTrackingConfig) -> None:
        import mediapipe as mp  # type: ignore
        from mediapipe.tasks.python import BaseOptions  # type: ignore
        from mediapipe.tasks.python.vision import HandLandmarker, HandLandmarkerOptions, RunningMode  # type: ignore

        model_path = Path(hand_tracking.model_path) if hand_tracking.model_path else default_model_path()
        model_path = ensure_hand_landmarker_task(model_path)

        options = HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=str(model_path)),
            running_mode=RunningMode.VIDEO,
            num_hands=int(hand_tracking.max_num_hands),
            min_hand_detection_confidence=float(hand_tracking.min_detection_confidence),
            min_hand_presence_confidence=float(hand_tracking.min_presence_confidence),
            min_tracking_confidence=float(hand_tracking.min_tracking_confidence),
        )
        self._mp = mp
        self._landmarker = HandLandmarker.create_from_options(options)

    def detect(self, frame_bgr: Any, timestamp_ms: int) -> Tuple[DetectedHand, ...]:
        import cv2

        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._landmarker.detect_for_video(mp_image, int(timestamp_ms))

        hand_landmarks_list = getattr(result, "hand_landmarks", None) or []
        handedness_list = getattr(result, "handedness", None) or []

        hands = []
        for index, landmarks in enumerate(hand_landmarks_list):
            if len(landmarks) <= INDEX_FINGER_TIP:
                continue
            label = None
            if index < len(handedness_list) and handedness_list[index]:
                category = handedness_list[index][0]
                label = getattr(category, "category_name", None) or getattr(category, "display_name", None)
            tip = landmarks[INDEX_FINGER_TIP]
            hands.append(DetectedHand(handedness_label=label, tip_x=float(tip.x), tip_y=float(tip.y)))
        return tuple(hands)

    def close(self) -> None:
        self._landmarker.close()


def _open_camera(camera_index: int) -> Any:
    import cv2

    return cv2.VideoCapture(int(camera_index))


class HandTracker:
    def __init__(
        self,
        conditioner: HandSignalConditioner,
        *,
        camera_factory: Callable[[], Any],
        detector_factory: Callable[[], TipDetector],
        time_source: Callable[[], float] = time.monotonic,
        idle_sleep_seconds: float = 0.005,
    ) -> None:
        self._conditioner = conditioner
        self._camera_factory = camera_factory
        self._detector_factory = detector_factory
        self._time_source = time_source
        self._idle_sleep_seconds = float(idle_sleep_seconds)

        self._latest: LatestValue[HandsSnapshot] = LatestValue(HandsSnapshot.empty())
        self._ready = threading.Event()
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_error: Optional[BaseException] = None
        self._last_timestamp_ms = -1

    @classmethod
    def from_config(cls, hand_tracking: config.HandTrackingConfig) -> "HandTracker":
        return cls(
            HandSignalConditioner.from_config(hand_tracking),
            camera_factory=lambda: _open_camera(hand_tracking.camera_index),
            detector_factory=lambda: MediaPipeTipDetector(hand_tracking),
        )

    def __enter__(self) -> "HandTracker":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_requested.clear()
        self._ready.clear()
        self._last_error = None
        self._conditioner.reset()
        self._thread = threading.Thread(target=self._run, name="hand-tracker", daemon=True)
        self._thread.start()

    def stop(self, timeout_seconds: float = 2.0) -> None:
        self._stop_requested.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout_seconds)
            if thread.is_alive():
                logger.warning("Hand tracking thread did not stop within %.1fs", timeout_seconds)
            else:
                self._thread = None
        self._ready.clear()

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait_until_ready(self, timeout_seconds: float) -> bool:
        return self._ready.wait(timeout_seconds)

    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    def latest_hands(self) -> HandsSnapshot:
        snapshot = self._latest.get()
        return snapshot if snapshot is not None else HandsSnapshot.empty()

    def _next_timestamp_ms(self) -> int:
        # The VIDEO running mode requires strictly increasing timestamps.
        timestamp_ms = max(self._last_timestamp_ms + 1, int(self._time_source() * 1000.0))
        self._last_timestamp_ms = timestamp_ms
        return timestamp_ms

    def _detect_frame(self, detector: TipDetector, frame: Any, timestamp_ms: int) -> Tuple[DetectedHand, ...]:
        try:
            return tuple(detector.detect(frame, timestamp_ms))
        except Exception as exc:
            logger.debug("Detection failed for frame at %dms: %s", timestamp_ms, exc)
            return ()

    def _run(self) -> None:
        capture: Any = None
        detector: Optional[TipDetector] = None
        try:
            capture = self._camera_factory()
            if capture is None or not capture.isOpened():
                raise SensorUnavailable("camera could not be opened")
            detector = self._detector_factory()
            logger.info("Hand tracking started")

            while not self._stop_requested.is_set():
                ok, frame = capture.read()
                timestamp_ms = self._next_timestamp_ms()
                hands: Tuple[DetectedHand, ...] = ()
                frame_delivered = ok and frame is not None
                if frame_delivered:
                    hands = self._detect_frame(detector, frame, timestamp_ms)
                else:
                    time.sleep(self._idle_sleep_seconds)

                snapshot = self._conditioner.process_frame(DetectionFrame(timestamp_ms=timestamp_ms, hands=hands))
                self._latest.publish(snapshot)
                # Ready only once the camera has delivered a frame.
                if frame_delivered and not self._ready.is_set():
                    self._ready.set()
                    logger.info("Hand tracking ready")
        except Exception as exc:
            self._last_error = exc
            logger.error("Hand tracking stopped: %s", exc)
        finally:
            self._ready.clear()
            self._latest.publish(HandsSnapshot.empty())
            try:
                if detector is not None:
                    detector.close()
            finally:
                if capture is not None:
                    capture.release()
            logger.info("Hand tracking released camera and detector")
