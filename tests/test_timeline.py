"""Tests for timeline validation, normalization and transition planning."""

import logging
import random

import pytest

from studio_render.exceptions import InvalidTimelineError
from studio_render.render.timeline import (
    END_SCREEN_SLIDE_ID,
    add_end_screen,
    calculate_duration,
    normalize_timeline,
    plan_composition,
    plan_transitions,
    validate_end_screen_placement,
    validate_timeline,
)
from studio_render.schemas.project import EndScreen, Slide

from conftest import build_slides


class TestValidateTimeline:
    """Tests for validate_timeline."""

    def test_valid_timeline(self):
        """Back-to-back slides from 0 are valid."""
        result = validate_timeline(build_slides([3, 3, 3]))
        assert result.valid
        assert result.errors == []

    def test_empty_timeline_is_invalid(self):
        result = validate_timeline([])
        assert not result.valid
        assert [e.message for e in result.errors] == ["No slides in timeline"]
        assert result.errors[0].index is None

    def test_end_before_start(self):
        slides = [Slide(id="a", start_time=0, end_time=3), Slide(id="b", start_time=3, end_time=3)]
        result = validate_timeline(slides)
        assert [(e.index, e.message) for e in result.errors] == [(1, "End time must be after start time")]

    def test_first_slide_not_at_zero(self):
        slides = [Slide(id="a", start_time=1, end_time=3)]
        result = validate_timeline(slides)
        assert [(e.index, e.message) for e in result.errors] == [(0, "First slide should start at 0")]

    def test_gap_between_slides(self):
        slides = [Slide(id="a", start_time=0, end_time=3), Slide(id="b", start_time=4, end_time=6)]
        result = validate_timeline(slides)
        assert [(e.index, e.message) for e in result.errors] == [(1, "Gap before this slide")]

    def test_overlap_with_previous(self):
        slides = [Slide(id="a", start_time=0, end_time=3), Slide(id="b", start_time=2, end_time=6)]
        result = validate_timeline(slides)
        assert [(e.index, e.message) for e in result.errors] == [(1, "Overlaps with previous slide")]

    def test_collects_all_errors(self):
        """Validation does not stop at the first problem."""
        slides = [
            Slide(id="a", start_time=0.5, end_time=3),
            Slide(id="b", start_time=4, end_time=4),
            Slide(id="c", start_time=3, end_time=5),
        ]
        result = validate_timeline(slides)
        indices = [e.index for e in result.errors]
        assert indices == [0, 1, 1, 2]
        assert str(result.errors[0]) == "Slide 0: First slide should start at 0"

    def test_raise_for_errors(self):
        result = validate_timeline([])
        with pytest.raises(InvalidTimelineError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.errors == result.errors
        assert "No slides in timeline" in exc_info.value.message


class TestEndScreenPlacement:
    """Tests for end-screen slide placement rules."""

    def test_end_screen_must_be_last(self):
        slides = build_slides([3, 3, 3])
        slides[1] = slides[1].model_copy(update={"is_end_screen": True})
        result = validate_end_screen_placement(slides)
        assert [(e.index, e.message) for e in result.errors] == [(1, "End screen must be the last slide")]

    def test_only_one_end_screen(self):
        slides = [s.model_copy(update={"is_end_screen": True}) for s in build_slides([3, 3])]
        result = validate_end_screen_placement(slides)
        messages = [e.message for e in result.errors]
        assert "Only one end screen slide is allowed" in messages

    def test_placement_is_part_of_validation(self):
        slides = build_slides([3, 3])
        slides[0] = slides[0].model_copy(update={"is_end_screen": True})
        assert not validate_timeline(slides).valid


class TestNormalizeTimeline:
    """Tests for normalize_timeline."""

    def test_repacks_from_zero(self):
        slides = [
            Slide(id="a", start_time=2, end_time=5),
            Slide(id="b", start_time=7, end_time=8.5),
        ]
        normalized = normalize_timeline(slides)
        assert [(s.start_time, s.end_time) for s in normalized] == [(0, 3), (3, 4.5)]
        assert validate_timeline(normalized).valid

    def test_preserves_order_and_durations(self):
        slides = [
            Slide(id="a", start_time=10, end_time=12),
            Slide(id="b", start_time=1, end_time=5),
        ]
        normalized = normalize_timeline(slides)
        assert [s.id for s in normalized] == ["a", "b"]
        assert [s.duration for s in normalized] == [s.duration for s in slides]

    def test_idempotent(self):
        slides = [Slide(id="a", start_time=1, end_time=2.2), Slide(id="b", start_time=5, end_time=9)]
        once = normalize_timeline(slides)
        assert normalize_timeline(once) == once

    @pytest.mark.parametrize("seed", range(20))
    def test_random_durations_preserved_and_stable(self, seed):
        """Float durations survive re-packing to within a microsecond, and a second pass changes nothing."""
        rng = random.Random(seed)
        slides = []
        for i in range(rng.randint(1, 12)):
            start = round(rng.uniform(0, 100), 3)
            slides.append(Slide(id=f"s{i}", start_time=start, end_time=start + round(rng.uniform(0.1, 9.9), 3)))

        once = normalize_timeline(slides)
        for before, after in zip(slides, once):
            assert after.duration == pytest.approx(before.duration, abs=1e-6)
        assert once[0].start_time == 0
        assert all(a.end_time == b.start_time for a, b in zip(once, once[1:]))
        assert validate_timeline(once).valid
        assert normalize_timeline(once) == once

    def test_tenths_do_not_drift(self):
        slides = build_slides([0.1, 2.9, 0.7, 2.9])
        assert [s.duration for s in normalize_timeline(slides)] == pytest.approx([0.1, 2.9, 0.7, 2.9], abs=1e-6)
        assert normalize_timeline(slides)[-1].end_time == 6.6

    def test_does_not_mutate_input(self):
        slides = [Slide(id="a", start_time=1, end_time=2)]
        normalize_timeline(slides)
        assert slides[0].start_time == 1


class TestDurationAndEndScreen:
    """Tests for calculate_duration and add_end_screen."""

    def test_calculate_duration(self):
        assert calculate_duration(build_slides([3, 2.5])) == 5.5
        assert calculate_duration([]) == 0.0

    def test_add_end_screen_when_enabled(self):
        slides = add_end_screen(build_slides([3, 3]), EndScreen(enabled=True, duration_seconds=4))
        assert len(slides) == 3
        end = slides[-1]
        assert end.id == END_SCREEN_SLIDE_ID
        assert end.is_end_screen
        assert (end.start_time, end.end_time) == (6, 10)

    def test_add_end_screen_when_disabled(self):
        slides = build_slides([3, 3])
        assert add_end_screen(slides, EndScreen(enabled=False)) == slides

    def test_add_end_screen_not_duplicated(self):
        slides = add_end_screen(build_slides([3]), EndScreen(enabled=True))
        assert add_end_screen(slides, EndScreen(enabled=True)) == slides

    def test_image_end_screen_uses_content(self):
        slides = add_end_screen(build_slides([3]), EndScreen(enabled=True, type="image", content="/tmp/end.png"))
        assert slides[-1].image_source == "/tmp/end.png"


class TestTransitionPlan:
    """Tests for crossfade offset bookkeeping."""

    def test_four_three_second_slides(self):
        """4 x 3s slides with 0.8s transitions render 9.6s."""
        plan = plan_transitions([3, 3, 3, 3], 0.8)
        assert plan.transition_count == 3
        assert plan.actual_duration == pytest.approx(9.6)
        assert plan.offsets == [3, 6, 9]

    def test_single_slide_has_no_transitions(self):
        plan = plan_transitions([5], 0.8)
        assert plan.offsets == []
        assert plan.actual_duration == 5
        assert plan.input_duration(0) == 5

    def test_all_but_last_slide_extended(self):
        plan = plan_transitions([2, 4, 3], 0.8)
        assert [plan.input_duration(i) for i in range(3)] == pytest.approx([2.8, 4.8, 3])

    @pytest.mark.parametrize(
        "durations",
        [[1, 1], [3, 0.5, 7], [0.9, 0.9, 0.9, 0.9, 0.9], [10, 2, 2, 2, 2, 2, 2, 2]],
    )
    def test_offsets_inside_accumulated_stream(self, durations):
        """Every offset is non-negative and below the accumulated length after it."""
        plan = plan_transitions(durations, 0.8)
        accumulated = durations[0]
        for i, offset in enumerate(plan.offsets, start=1):
            accumulated += durations[i]
            assert 0 <= offset < accumulated
        assert plan.actual_duration == pytest.approx(sum(durations) - (len(durations) - 1) * 0.8)

    def test_non_positive_duration_rejected(self):
        with pytest.raises(InvalidTimelineError) as exc_info:
            plan_transitions([3, 0, 3], 0.8)
        assert exc_info.value.errors[0].index == 1

    def test_uses_configured_transition_duration(self):
        plan = plan_transitions([3, 3])
        assert plan.transition_duration == 0.8

    def test_slide_past_trimmed_end_is_reported(self, caplog):
        """5 x 3s slides: the last crossfade starts at 12s but the chain ends at 11.8s."""
        with caplog.at_level(logging.WARNING, logger="studio_render.render.timeline"):
            plan = plan_transitions([3, 3, 3, 3, 3], 0.8)

        assert plan.offsets[-1] == 12
        assert plan.actual_duration == pytest.approx(11.8)
        assert plan.clipped_slides() == [4]
        assert plan.visible_duration(4) == 0
        assert "Slide 4 never appears" in caplog.text

    def test_partly_shown_slide_is_reported(self, caplog):
        with caplog.at_level(logging.WARNING, logger="studio_render.render.timeline"):
            plan = plan_transitions([3, 3, 3, 3], 0.8)

        assert plan.clipped_slides() == [3]
        assert plan.visible_duration(3) == pytest.approx(0.6)
        assert "Slide 3 is cut to 0.6s" in caplog.text

    def test_long_last_slide_is_not_reported(self, caplog):
        with caplog.at_level(logging.WARNING, logger="studio_render.render.timeline"):
            plan = plan_transitions([3, 3, 5], 0.8)

        assert plan.clipped_slides() == []
        assert plan.visible_duration(2) == pytest.approx(3.4)
        assert caplog.text == ""


class TestCompositionPlan:
    """Tests for splitting content and the spliced end screen."""

    def test_text_end_screen_is_spliced(self):
        slides = add_end_screen(build_slides([3, 3, 3, 3]), EndScreen(enabled=True, duration_seconds=3))
        plan = plan_composition(slides, EndScreen(enabled=True, duration_seconds=3), 0.8)
        assert plan.splices_end_screen
        assert plan.content_duration == pytest.approx(9.6)
        assert plan.total_duration == pytest.approx(12.6)

    def test_image_end_screen_joins_chain(self):
        end_screen = EndScreen(enabled=True, type="image", content="/tmp/end.png", duration_seconds=3)
        slides = add_end_screen(build_slides([3, 3]), end_screen)
        plan = plan_composition(slides, end_screen, 0.8)
        assert not plan.splices_end_screen
        assert len(plan.content.base_durations) == 3
        assert plan.total_duration == pytest.approx(9 - 2 * 0.8)

    def test_end_screen_only(self):
        end_screen = EndScreen(enabled=True, duration_seconds=3)
        slides = add_end_screen([], end_screen)
        plan = plan_composition(slides, end_screen, 0.8)
        assert plan.content_duration == 0
        assert plan.total_duration == 3
