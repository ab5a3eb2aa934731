"""
gubang.py

Entrypoint for the Gubang gameplay engine.

Commands
- chart     Print a generated chart as JSON.
- simulate  Run a whole session headless against a scripted player and print the summary as JSON.
- play      Run the live loop: camera hand tracking, wall clock playback, session timers.
            Rendering and audio output are external; this command logs judgements and state changes.

Integration (play)
- Creates QCoreApplication
- Loads config
- Starts HandTracker, then SessionController, and starts a session as soon as tracking is ready
- Stops timers, the tracking thread and the camera on every exit path
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QCoreApplication, QTimer

import chart_generator
import config
import simulation
import timing_model
from gameplay_errors import GameplayError
from hand_tracker import HandTracker
from session_controller import SessionController
from session_state import GameStatus


logger = logging.getLogger("gubang")


def _load_config(config_path_text: Optional[str]) -> config.AppConfig:
    config_path = Path(config_path_text) if config_path_text else None
    app_config, resolved_path = config.load_config(config_path)
    logger.info("Config: %s", resolved_path if resolved_path is not None else "(defaults)")
    return app_config


def _run_chart(args: argparse.Namespace, app_config: config.AppConfig) -> int:
    seed = args.seed
    if seed is None and args.song:
        seed = chart_generator.seed_for_song(args.song)
    chart_config = app_config.chart
    if args.bpm is not None:
        chart_config = chart_config.model_copy(update={"bpm": float(args.bpm)})

    chart = chart_generator.generate_chart_from_config(chart_config, seed=seed)
    payload = {
        "bpm": chart.bpm,
        "duration_seconds": chart.duration_seconds,
        "seed": seed,
        "notes": [
            {
                "id": note.note_id,
                "time": round(note.time_seconds, 6),
                "lane": note.lane,
                "hand": note.hand.value,
                "cut_direction": note.cut_direction.value,
            }
            for note in chart.notes
        ],
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _run_simulate(args: argparse.Namespace, app_config: config.AppConfig) -> int:
    result = simulation.simulate_session(
        app_config,
        accuracy=float(args.accuracy),
        seed=args.seed,
        frame_rate=float(args.frame_rate),
    )
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0


def _run_play(args: argparse.Namespace, app_config: config.AppConfig) -> int:
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    tracker = HandTracker.from_config(app_config.hand_tracking)
    playback = timing_model.WallClockPlayback(duration_seconds=args.song_seconds)
    seed = chart_generator.seed_for_song(args.song) if args.song else app_config.chart.seed
    chart_config = app_config.chart.model_copy(update={"seed": seed})

    controller = SessionController(
        app_config,
        playback=playback,
        hands_source=tracker.latest_hands,
        tracking_ready=tracker.is_ready,
        chart_factory=lambda: chart_generator.generate_chart_from_config(chart_config),
    )

    def on_state_changed(state) -> None:
        logger.info(
            "status=%s score=%d combo=%d health=%.1f time_left=%.0f",
            state.status.value,
            state.score,
            state.combo,
            state.health,
            state.time_remaining_seconds,
        )
        if state.status is GameStatus.IDLE:
            try:
                controller.start()
            except GameplayError as exception:
                logger.warning("Session not started: %s", exception)
        elif state.status.is_terminal:
            print(json.dumps(state.to_dict(), ensure_ascii=False, indent=2))
            app.quit()

    def on_tracker_check() -> None:
        error = tracker.last_error()
        if error is not None and not tracker.is_running():
            logger.error("Hand tracking unavailable: %s", error)
            app.exit(2)

    controller.stateChanged.connect(on_state_changed)
    controller.noteHit.connect(lambda event: logger.debug("hit %s lane=%d", event.note.note_id, event.note.lane))
    controller.noteMissed.connect(lambda event: logger.debug("miss %s lane=%d", event.note.note_id, event.note.lane))

    # Lets Python handle Ctrl+C while the Qt loop is running.
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    watchdog = QTimer()
    watchdog.setInterval(250)
    watchdog.timeout.connect(on_tracker_check)

    try:
        tracker.start()
        controller.activate()
        watchdog.start()
        return int(app.exec())
    finally:
        watchdog.stop()
        controller.shutdown()
        tracker.stop()


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gubang")
    parser.add_argument("--config", default=None, help="Path to gubang_config.json.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chart_parser = subparsers.add_parser("chart", help="Print a generated chart as JSON.")
    chart_parser.add_argument("--bpm", type=float, default=None)
    chart_parser.add_argument("--seed", type=int, default=None)
    chart_parser.add_argument("--song", default="", help="Derive the seed from a song name.")

    simulate_parser = subparsers.add_parser("simulate", help="Run a headless session with a scripted player.")
    simulate_parser.add_argument("--accuracy", type=float, default=0.9)
    simulate_parser.add_argument("--seed", type=int, default=None)
    simulate_parser.add_argument("--frame-rate", type=float, default=60.0)

    play_parser = subparsers.add_parser("play", help="Run the live loop with camera tracking.")
    play_parser.add_argument("--song", default="", help="Song name, used to seed the chart.")
    play_parser.add_argument("--song-seconds", type=float, default=None, help="Song length. Ends the session in victory.")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argument_parser().parse_args(argv)
    logging.basicConfig(level=str(args.log_level).upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        app_config = _load_config(args.config)
        if args.command == "chart":
            return _run_chart(args, app_config)
        if args.command == "simulate":
            return _run_simulate(args, app_config)
        return _run_play(args, app_config)
    except GameplayError as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
