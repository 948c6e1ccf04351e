import pytest

from uptier.timegrid import (
    TimeBlock,
    WorkingDay,
    compute_end_time,
    free_blocks,
    minutes_to_time,
    snap_minutes,
    snap_to_grid,
    time_to_minutes,
)


def test_snap_rounds_to_nearest_line():
    assert snap_to_grid("09:07") == "09:00"
    assert snap_to_grid("09:08") == "09:15"
    # halves round up
    assert snap_to_grid("09:30", 60) == "10:00"
    assert snap_to_grid("14:52", 30) == "15:00"


def test_snap_is_idempotent_on_grid_lines():
    for minute in range(0, 24 * 60, 15):
        assert snap_minutes(minute) == minute


def test_snap_is_monotonic():
    snapped = [snap_minutes(m) for m in range(24 * 60)]
    assert all(a <= b for a, b in zip(snapped, snapped[1:]))


def test_snap_never_leaves_the_day():
    assert snap_to_grid("23:58") == "23:45"
    assert snap_to_grid("23:59", 30) == "23:30"


def test_end_time_stops_at_midnight():
    assert compute_end_time("09:00", 45) == "09:45"
    assert compute_end_time("23:30", 90) == "24:00"


def test_time_conversions():
    assert time_to_minutes("09:30") == 570
    assert time_to_minutes("09:30:00") == 570
    assert minutes_to_time(570) == "09:30"
    assert minutes_to_time(-5) == "00:00"
    with pytest.raises(ValueError):
        time_to_minutes("24:01")
    with pytest.raises(ValueError):
        time_to_minutes("noon")


def test_working_day_validation():
    day = WorkingDay()
    assert (day.start_time, day.end_time, day.total_minutes) == ("06:00", "22:00", 16 * 60)
    with pytest.raises(ValueError):
        WorkingDay(start_hour=22, end_hour=6)


def test_free_blocks_of_an_empty_day():
    assert free_blocks([], WorkingDay()) == [TimeBlock("06:00", "22:00")]


def test_free_blocks_tolerate_overlap_and_clip_to_the_day():
    busy = [("05:00", "06:30"), ("09:00", "10:00"), ("09:30", "11:00"), ("21:30", "23:00")]
    assert free_blocks(busy, WorkingDay()) == [
        TimeBlock("06:30", "09:00"),
        TimeBlock("11:00", "21:30"),
    ]


def test_free_and_busy_time_cover_the_day():
    day = WorkingDay(8, 18)
    busy = [("08:00", "09:00"), ("12:00", "12:45"), ("16:15", "18:00")]
    blocks = free_blocks(busy, day)
    busy_minutes = sum(time_to_minutes(e) - time_to_minutes(s) for s, e in busy)
    assert sum(b.duration_minutes for b in blocks) + busy_minutes == day.total_minutes
    assert blocks[0].to_dict() == {"start_time": "09:00", "end_time": "12:00", "duration_minutes": 180}
