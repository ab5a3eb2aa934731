import numpy
import pytest

from conftest import LEFT, RIGHT, make_chart
from gameplay_models import JudgementKind
from note_scheduler import NoteScheduler
from play_space import PlayfieldGeometry

# Default geometry: spawn -30, player 0, miss 5, speed 12.
# Lookahead is 2.5s; a note becomes a miss 5/12s after its time.
LOOKAHEAD = 2.5
MISS_DELAY = 5.0 / 12.0


def _scheduler(*specs):
    return NoteScheduler(make_chart(*specs), PlayfieldGeometry())

# ==========================================
# 1. Admission
# ==========================================

def test_note_admitted_only_once_spawn_time_reached():
    scheduler = _scheduler((4.0, 0, LEFT))
    assert scheduler.admit_notes(4.0 - LOOKAHEAD - 0.01) == []
    assert scheduler.active_notes() == []
    admitted = scheduler.admit_notes(4.0 - LOOKAHEAD)
    assert [n.note_event.note_id for n in admitted] == ["note-0"]


def test_each_note_admitted_exactly_once():
    scheduler = _scheduler((3.0, 0, LEFT), (3.5, 1, LEFT), (6.0, 2, LEFT))
    seen = []
    for step in range(0, 100):
        seen.extend(n.note_event.note_id for n in scheduler.admit_notes(step * 0.1))
    assert seen == ["note-0", "note-1", "note-2"]
    assert scheduler.read_index() == 3


def test_active_set_never_contains_future_notes():
    scheduler = _scheduler((3.0, 0, LEFT), (5.0, 1, RIGHT), (9.0, 2, LEFT))
    for step in range(0, 120):
        now = step * 0.1
        scheduler.admit_notes(now)
        scheduler.expire_notes(now)
        for active in scheduler.active_notes():
            assert active.note_event.time_seconds - LOOKAHEAD <= now + 1e-9


def test_chart_is_resorted_stably_by_time():
    scheduler = _scheduler((5.0, 0, LEFT), (2.0, 3, RIGHT), (2.0, 0, LEFT))
    assert [n.note_event.note_id for n in scheduler.scheduled_notes()] == ["note-1", "note-2", "note-0"]


def test_chord_notes_admitted_together():
    scheduler = _scheduler((3.0, 0, LEFT), (3.0, 3, RIGHT))
    admitted = scheduler.admit_notes(0.5)
    assert len(admitted) == 2

# ==========================================
# 2. Expiry
# ==========================================

def test_unhit_note_missed_once_after_boundary():
    scheduler = _scheduler((3.0, 2, RIGHT))
    scheduler.admit_notes(3.0)
    assert scheduler.expire_notes(3.0 + MISS_DELAY - 0.01) == []

    misses = scheduler.expire_notes(3.0 + MISS_DELAY + 0.01)
    assert len(misses) == 1
    assert misses[0].judgement is JudgementKind.MISS
    assert misses[0].note.note_id == "note-0"
    assert scheduler.active_notes() == []

    assert scheduler.expire_notes(10.0) == []
    note = scheduler.scheduled_notes()[0]
    assert note.missed and not note.hit and note.hit_time_seconds is None


def test_late_admission_then_immediate_expiry():
    """A frame stall can admit and expire a note in the same tick; it still misses once."""
    scheduler = _scheduler((1.0, 0, LEFT))
    scheduler.admit_notes(5.0)
    misses = scheduler.expire_notes(5.0)
    assert len(misses) == 1
    assert scheduler.is_exhausted()


def test_expire_limit_leaves_remaining_notes_unflagged():
    scheduler = _scheduler((1.0, 0, LEFT), (1.2, 1, RIGHT), (1.4, 2, LEFT))
    scheduler.admit_notes(5.0)

    first = scheduler.expire_notes(5.0, limit=1)
    assert [event.note.note_id for event in first] == ["note-0"]
    remaining = scheduler.active_notes()
    assert [note.note_event.note_id for note in remaining] == ["note-1", "note-2"]
    assert not any(note.is_resolved for note in remaining)

    rest = scheduler.expire_notes(5.0)
    assert [event.note.note_id for event in rest] == ["note-1", "note-2"]
    assert scheduler.is_exhausted()


def test_mark_hit_removes_from_active_and_blocks_miss():
    scheduler = _scheduler((3.0, 0, LEFT))
    scheduler.admit_notes(3.0)
    note = scheduler.active_notes()[0]
    event = scheduler.mark_hit(note, 3.05)
    assert event.judgement is JudgementKind.HIT
    assert event.good_cut is True
    assert scheduler.active_notes() == []
    assert scheduler.expire_notes(10.0) == []
    assert note.hit and not note.missed
    assert note.hit_time_seconds == pytest.approx(3.05)


def test_reset_rewinds_read_index_and_flags():
    scheduler = _scheduler((3.0, 0, LEFT))
    scheduler.admit_notes(10.0)
    scheduler.expire_notes(10.0)
    scheduler.reset()
    assert scheduler.read_index() == 0
    assert scheduler.active_notes() == []
    assert not scheduler.scheduled_notes()[0].is_resolved

# ==========================================
# 3. Visible notes for rendering
# ==========================================

def test_visible_notes_carry_lane_anchor_and_depth():
    geometry = PlayfieldGeometry()
    scheduler = NoteScheduler(make_chart((3.0, 1, LEFT)), geometry)
    scheduler.admit_notes(2.0)
    poses = scheduler.visible_notes(2.0)
    assert len(poses) == 1
    expected = geometry.anchor(1, -12.0)
    assert numpy.allclose(poses[0].position, expected)


def test_hit_notes_visible_as_debris_briefly():
    scheduler = _scheduler((3.0, 0, LEFT))
    scheduler.admit_notes(3.0)
    scheduler.mark_hit(scheduler.active_notes()[0], 3.0)
    assert len(scheduler.visible_notes(3.2)) == 1
    assert scheduler.visible_notes(3.31) == []


def test_missed_and_unadmitted_notes_not_visible():
    scheduler = _scheduler((3.0, 0, LEFT), (20.0, 1, LEFT))
    scheduler.admit_notes(3.5)
    scheduler.expire_notes(3.5)
    assert scheduler.visible_notes(3.5) == []
