import pytest

from timing_model import AudioPlayback, PlaybackClock, WallClockPlayback


class _FakeTime:
    def __init__(self, value=0.0):
        self.value = value

    def __call__(self):
        return self.value


def test_clock_clamps_negative_and_applies_offset():
    clock = PlaybackClock()
    clock.set_av_offset_seconds(0.05)
    clock.update_player_time_seconds(-1.0)
    assert clock.player_time_seconds() == 0.0
    assert clock.song_time_seconds() == pytest.approx(0.05)


def test_clock_never_moves_backwards_until_reset():
    clock = PlaybackClock()
    clock.update_player_time_seconds(2.0)
    clock.update_player_time_seconds(1.9)
    assert clock.player_time_seconds() == 2.0
    clock.reset()
    clock.update_player_time_seconds(0.5)
    assert clock.player_time_seconds() == 0.5


def test_clock_sync_from_playback():
    fake_time = _FakeTime(100.0)
    playback = WallClockPlayback(time_source=fake_time)
    clock = PlaybackClock()
    playback.play()
    fake_time.value = 101.25
    assert clock.sync_from(playback) == pytest.approx(1.25)
    snapshot = clock.snapshot()
    assert snapshot.song_time_seconds == pytest.approx(1.25)


def test_wall_clock_playback_pause_seek_and_end():
    fake_time = _FakeTime(0.0)
    playback = WallClockPlayback(duration_seconds=10.0, time_source=fake_time)
    assert isinstance(playback, AudioPlayback)
    assert playback.is_loaded()
    assert playback.position_seconds() == 0.0

    playback.play()
    fake_time.value = 4.0
    playback.pause()
    fake_time.value = 50.0
    assert playback.position_seconds() == pytest.approx(4.0)
    assert not playback.is_playing()

    playback.seek(9.0)
    playback.play()
    fake_time.value = 51.5
    assert playback.position_seconds() == pytest.approx(10.0)
    assert playback.has_ended()


def test_wall_clock_playback_without_duration_never_ends():
    fake_time = _FakeTime(0.0)
    playback = WallClockPlayback(time_source=fake_time)
    playback.play()
    fake_time.value = 10_000.0
    assert not playback.has_ended()


def test_unloaded_playback_reports_not_loaded():
    playback = WallClockPlayback(loaded=False)
    assert not playback.is_loaded()
    playback.load(duration_seconds=3.0)
    assert playback.is_loaded()
