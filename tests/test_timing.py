"""
Stage timing tests.
"""

import pytest

from photo3d.utils.timing import (
    ProgressTimer,
    TimingLog,
    TimingResult,
    get_timing_log,
    reset_timing_log,
    timed_operation,
)


class TestTimedOperation:
    def test_records_success(self):
        reset_timing_log()
        with timed_operation("projection") as result:
            pass

        assert result.success
        assert result.elapsed_seconds >= 0.0
        assert get_timing_log().entries == [result]

    def test_records_failure(self):
        """A failing stage is logged and its exception propagates."""
        reset_timing_log()
        with pytest.raises(RuntimeError):
            with timed_operation("filtering"):
                raise RuntimeError("boom")

        entry = get_timing_log().entries[0]
        assert not entry.success
        assert entry.error == "boom"

    def test_unlogged(self):
        reset_timing_log()
        with timed_operation("topology", log=False):
            pass
        assert get_timing_log().entries == []


class TestTimingLog:
    def test_totals(self):
        log = TimingLog()
        log.add(TimingResult("filtering", 0.5, True))
        log.add(TimingResult("filtering", 0.25, True))
        log.add(TimingResult("background", 2.0, True))

        assert sum(e.elapsed_seconds for e in log.entries) == pytest.approx(2.75)
        assert log.total_time() >= 0.0
        assert log.get_slowest(1)[0].operation == "background"
        assert len(log.as_rows()) == 3
        assert "background" in log.summary()


class TestProgressTimer:
    def test_counts(self):
        timer = ProgressTimer(total=4, operation_name="frames", log_interval=0.0)
        timer.update()
        timer.update(2)
        assert timer.current == 3
        timer.finish()


class TestTimingSummary:
    def test_total_is_wall_time(self):
        """The total covers the whole run, not just the timed stages."""
        log = TimingLog()
        log.add(TimingResult("background", 2.0, True))
        assert log.total_time() < 2.0

    def test_one_line_per_stage(self):
        log = TimingLog()
        log.add(TimingResult("projection", 0.1, True))
        log.add(TimingResult("filtering", 0.2, False, error="boom"))
        lines = log.summary().splitlines()

        assert len(lines) == 3
        assert lines[0].startswith("projection")
        assert lines[1].endswith("ERROR")
        assert lines[2].startswith("total")
