import pytest

import chart_generator
import config
from gameplay_errors import AudioSourceMissing, InvalidConfiguration, SensorUnavailable
from gameplay_models import HandSide, JudgementKind
from hand_signal import HandSample, HandsSnapshot
from play_space import PlayfieldGeometry
from session_controller import SessionController
from session_state import GameStatus

from conftest import LEFT, RIGHT, make_chart


class _FakePlayback:
    def __init__(self, loaded=True):
        self.loaded = loaded
        self.position = 0.0
        self.playing = False
        self.ended = False
        self.calls = []

    def is_loaded(self):
        return self.loaded

    def position_seconds(self):
        return self.position

    def has_ended(self):
        return self.ended

    def play(self):
        self.playing = True
        self.calls.append("play")

    def pause(self):
        self.playing = False
        self.calls.append("pause")

    def seek(self, position_seconds):
        self.position = float(position_seconds)
        self.calls.append("seek")


class _Hands:
    def __init__(self):
        self.snapshot = HandsSnapshot.empty()

    def __call__(self):
        return self.snapshot

    def hold(self, side, position):
        sample = HandSample(side=side, position=position, last_known_position=position)
        left = sample if side is HandSide.LEFT else HandSample(side=HandSide.LEFT)
        right = sample if side is HandSide.RIGHT else HandSample(side=HandSide.RIGHT)
        self.snapshot = HandsSnapshot(left=left, right=right, timestamp_ms=0.0)

    def release(self):
        self.snapshot = HandsSnapshot.empty()


@pytest.fixture
def harness(qt_app):
    playback = _FakePlayback()
    hands = _Hands()
    ready = {"value": True}
    chart = make_chart((3.0, 0, LEFT), (5.0, 3, RIGHT))
    controller = SessionController(
        config.AppConfig(),
        playback=playback,
        hands_source=hands,
        tracking_ready=lambda: ready["value"],
        chart_factory=lambda: chart,
    )
    hits, misses, states = [], [], []
    controller.noteHit.connect(hits.append)
    controller.noteMissed.connect(misses.append)
    controller.stateChanged.connect(states.append)
    yield controller, playback, hands, ready, hits, misses, states
    controller.shutdown()


def _advance(controller, playback, to_seconds, step=1.0 / 60.0):
    while playback.position < to_seconds:
        playback.position = min(to_seconds, playback.position + step)
        controller.on_frame_tick()


def test_loading_moves_to_idle_when_tracking_ready(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    ready["value"] = False
    controller.on_frame_tick()
    assert controller.state().status is GameStatus.LOADING
    ready["value"] = True
    controller.on_frame_tick()
    assert controller.state().status is GameStatus.IDLE
    assert states[-1].status is GameStatus.IDLE


def test_start_rejects_missing_preconditions(qt_app):
    playback = _FakePlayback(loaded=False)
    ready = {"value": True}
    controller = SessionController(
        config.AppConfig(), playback=playback, hands_source=HandsSnapshot.empty, tracking_ready=lambda: ready["value"]
    )
    controller.on_frame_tick()
    with pytest.raises(AudioSourceMissing):
        controller.start()
    playback.loaded = True
    ready["value"] = False
    with pytest.raises(SensorUnavailable):
        controller.start()
    assert controller.state().status is GameStatus.IDLE
    assert "play" not in playback.calls
    controller.shutdown()


def test_start_plays_from_zero_and_builds_scheduler(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    playback.position = 12.0
    assert controller.start()
    assert playback.position == 0.0
    assert playback.playing
    assert controller.state().status is GameStatus.PLAYING
    assert controller.note_scheduler() is not None
    assert controller.visible_notes() == []


def test_hit_and_miss_signals(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    controller.start()

    geometry = PlayfieldGeometry()
    hands.hold(HandSide.LEFT, geometry.anchor(0, 0.0))
    _advance(controller, playback, 3.2)
    assert [event.note.note_id for event in hits] == ["note-0"]
    assert hits[0].judgement is JudgementKind.HIT

    hands.release()
    _advance(controller, playback, 5.6)
    assert [event.note.note_id for event in misses] == ["note-1"]
    assert misses[0].good_cut is False

    state = controller.state()
    assert (state.score, state.combo, state.health) == (100, 0, 90.0)
    assert (state.hit_count, state.miss_count) == (1, 1)


def test_visible_notes_while_playing(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    controller.start()
    _advance(controller, playback, 1.0)
    poses = controller.visible_notes()
    assert [pose.note.note_event.note_id for pose in poses] == ["note-0"]


def test_pause_freezes_ticks_and_playback(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    controller.start()
    assert controller.toggle_pause() is GameStatus.PAUSED
    assert not playback.playing

    playback.position = 10.0
    controller.on_frame_tick()
    controller.on_countdown_tick()
    assert misses == []
    assert controller.state().time_remaining_seconds == 90.0

    assert controller.toggle_pause() is GameStatus.PLAYING
    assert playback.playing


def test_countdown_to_victory_pauses_playback(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    controller.start()
    for _ in range(90):
        controller.on_countdown_tick()
    assert controller.state().status is GameStatus.VICTORY
    assert not playback.playing
    assert states[-1].status is GameStatus.VICTORY


def test_song_end_is_victory(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    controller.start()
    playback.ended = True
    controller.on_frame_tick()
    assert controller.state().status is GameStatus.VICTORY


def test_game_over_stops_processing(qt_app):
    playback = _FakePlayback()
    chart = make_chart(*[(1.0 + 0.1 * index, index % 6, LEFT) for index in range(12)])
    controller = SessionController(
        config.AppConfig(),
        playback=playback,
        hands_source=HandsSnapshot.empty,
        tracking_ready=lambda: True,
        chart_factory=lambda: chart,
    )
    misses = []
    controller.noteMissed.connect(misses.append)
    controller.on_frame_tick()
    controller.start()

    # Every note is past the miss boundary at once.
    playback.position = 10.0
    controller.on_frame_tick()

    assert controller.state().status is GameStatus.GAME_OVER
    assert controller.state().health == 0.0
    assert len(misses) == 10
    assert not playback.playing

    flagged = [note for note in controller.note_scheduler().scheduled_notes() if note.missed]
    assert [note.note_event.note_id for note in flagged] == [event.note.note_id for event in misses]
    assert sum(1 for note in controller.note_scheduler().scheduled_notes() if not note.is_resolved) == 2
    controller.shutdown()


def test_reset_returns_to_idle_and_clears_session(harness):
    controller, playback, hands, ready, hits, misses, states = harness
    controller.on_frame_tick()
    controller.start()
    _advance(controller, playback, 4.0)
    assert controller.reset()
    assert controller.state().status is GameStatus.IDLE
    assert controller.note_scheduler() is None
    assert playback.position == 0.0
    assert controller.song_time_seconds() == 0.0

    assert controller.start()
    assert controller.state().health == 100.0
    assert controller.state().miss_count == 0


def test_failed_chart_build_leaves_session_idle(qt_app):
    playback = _FakePlayback()
    controller = SessionController(
        config.AppConfig(),
        playback=playback,
        hands_source=HandsSnapshot.empty,
        tracking_ready=lambda: True,
        chart_factory=lambda: chart_generator.generate_chart(bpm=0.0),
    )
    states = []
    controller.stateChanged.connect(states.append)
    controller.on_frame_tick()

    with pytest.raises(InvalidConfiguration):
        controller.start()

    assert controller.state().status is GameStatus.IDLE
    assert controller.note_scheduler() is None
    assert "play" not in playback.calls
    assert [state.status for state in states] == [GameStatus.IDLE]

    # The countdown cannot run down an unstarted session.
    for _ in range(200):
        controller.on_countdown_tick()
    assert controller.state().status is GameStatus.IDLE
    assert controller.state().time_remaining_seconds == 90.0
    controller.shutdown()
