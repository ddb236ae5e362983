"""Tests for progress parsing and reporting."""

import pytest

from studio_render.render.progress import (
    ProgressReporter,
    StderrProgressParser,
    encode_percent,
    parse_elapsed,
)


class TestParseElapsed:
    """Tests for the time= marker parser."""

    def test_parses_time_marker(self):
        line = "frame=  120 fps= 30 q=28.0 size=     256kB time=00:01:02.48 bitrate= 400kbits/s speed=1.2x"
        assert parse_elapsed(line) == pytest.approx(62.48)

    def test_uses_last_marker(self):
        assert parse_elapsed("time=00:00:01.00 ... time=00:00:04.50") == pytest.approx(4.5)

    def test_no_marker(self):
        assert parse_elapsed("Input #0, image2, from 'slide_0.jpg':") is None


class TestEncodePercent:
    """Tests for mapping encoded seconds onto 50-95."""

    def test_bounds(self):
        assert encode_percent(0, 9.6) == 50
        assert encode_percent(9.6, 9.6) == 95
        assert encode_percent(30, 9.6) == 95

    def test_midpoint(self):
        assert encode_percent(4.8, 9.6) == 72

    def test_zero_duration(self):
        assert encode_percent(3, 0) == 50

    def test_monotonic_and_within_band(self):
        values = [encode_percent(t / 10, 9.6) for t in range(0, 150)]
        assert values == sorted(values)
        assert all(50 <= v <= 95 for v in values)


class TestStderrProgressParser:
    """Tests for incremental stderr parsing."""

    def test_splits_carriage_returns(self):
        parser = StderrProgressParser()
        assert parser.feed(b"frame=1 time=00:00:01.00 x\rframe=2 time=00:00:02.00 x\r") == pytest.approx(2.0)
        assert parser.elapsed == pytest.approx(2.0)

    def test_holds_partial_line(self):
        parser = StderrProgressParser()
        assert parser.feed(b"frame=1 time=00:00:0") is None
        assert parser.feed(b"3.50 bitrate=1\n") == pytest.approx(3.5)

    def test_tail_keeps_last_lines(self):
        parser = StderrProgressParser(tail_lines=2)
        parser.feed("one\ntwo\nthree\nfour")
        parser.flush()
        assert parser.tail() == "three\nfour"

    def test_decodes_invalid_utf8(self):
        parser = StderrProgressParser()
        parser.feed(b"bad \xff byte\n")
        assert "bad" in parser.tail()


class TestProgressReporter:
    """Tests for monotonic progress reporting."""

    def test_never_goes_backwards(self):
        calls = []
        reporter = ProgressReporter(lambda p, s: calls.append((p, s)))
        reporter.report(40, "Preparing audio")
        reporter.report(30, "Generating QR code")
        assert [p for p, _ in calls] == [40, 40]
        assert calls[-1][1] == "Generating QR code"

    def test_duplicate_reports_suppressed(self):
        calls = []
        reporter = ProgressReporter(lambda p, s: calls.append(p))
        reporter.report(60, "Rendering video")
        reporter.report(60, "Rendering video")
        assert calls == [60]

    def test_nothing_after_finish(self):
        calls = []
        reporter = ProgressReporter(lambda p, s: calls.append((p, s)))
        reporter.report(50, "Rendering video")
        reporter.finish()
        reporter.report(99, "late")
        assert calls == [(50, "Rendering video"), (100, "Complete")]

    def test_nothing_after_close(self):
        calls = []
        reporter = ProgressReporter(lambda p, s: calls.append(p))
        reporter.close()
        reporter.report(10, "x")
        assert calls == []

    def test_without_callback(self):
        reporter = ProgressReporter()
        reporter.report(10, "x")
        assert reporter.percent == 10
