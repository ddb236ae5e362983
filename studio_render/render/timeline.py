"""
Timeline validation, normalization and transition planning.

A timeline is an ordered list of slides that must tile [0, duration) with no
gaps or overlaps. Rendering chains slides with fixed-length crossfades, so this
module also owns the offset bookkeeping for those crossfades:

1. Every slide except the last in a chain is rendered for its base duration
   plus one transition duration so neighbours overlap
2. Offsets accumulate base durations, never extended ones
3. The rendered duration subtracts one transition window per transition
"""

import logging
from dataclasses import dataclass, field

from studio_render.config import get_settings
from studio_render.exceptions import InvalidTimelineError
from studio_render.schemas.project import EndScreen, Slide, TimelineIssue

logger = logging.getLogger(__name__)

END_SCREEN_SLIDE_ID = "end-screen"

# Float slack when comparing neighbouring slide boundaries
TIME_EPSILON = 1e-3
TIME_PRECISION = 6


@dataclass
class TimelineValidation:
    """Result of validating a slide list. Collects every finding, not only the first."""

    errors: list[TimelineIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise InvalidTimelineError(self.errors)


def validate_timeline(slides: list[Slide]) -> TimelineValidation:
    """Check that slides start at 0 and follow each other without gaps or overlaps."""
    result = TimelineValidation()
    if not slides:
        result.errors.append(TimelineIssue(message="No slides in timeline"))
        return result

    for i, slide in enumerate(slides):
        if slide.end_time <= slide.start_time:
            result.errors.append(TimelineIssue(index=i, message="End time must be after start time"))

        if i == 0:
            if abs(slide.start_time) > TIME_EPSILON:
                result.errors.append(TimelineIssue(index=i, message="First slide should start at 0"))
            continue

        prev = slides[i - 1]
        if slide.start_time < prev.end_time - TIME_EPSILON:
            result.errors.append(TimelineIssue(index=i, message="Overlaps with previous slide"))
        elif slide.start_time > prev.end_time + TIME_EPSILON:
            result.errors.append(TimelineIssue(index=i, message="Gap before this slide"))

    result.errors.extend(validate_end_screen_placement(slides).errors)
    return result


def validate_end_screen_placement(slides: list[Slide]) -> TimelineValidation:
    """At most one end-screen slide, and it must be the last one."""
    result = TimelineValidation()
    end_indices = [i for i, s in enumerate(slides) if s.is_end_screen]
    for position, index in enumerate(end_indices):
        if position > 0:
            result.errors.append(TimelineIssue(index=index, message="Only one end screen slide is allowed"))
        elif index != len(slides) - 1:
            result.errors.append(TimelineIssue(index=index, message="End screen must be the last slide"))
    return result


def normalize_timeline(slides: list[Slide]) -> list[Slide]:
    """Re-pack slides back to back from 0, keeping order and each slide's duration.

    Boundaries are rounded to TIME_PRECISION decimals, so a duration is kept to
    within a microsecond and normalizing twice gives the same timeline.
    """
    normalized: list[Slide] = []
    cursor = 0.0
    for slide in slides:
        end = round(cursor + slide.duration, TIME_PRECISION)
        normalized.append(slide.model_copy(update={"start_time": cursor, "end_time": end}))
        cursor = end
    return normalized


def calculate_duration(slides: list[Slide]) -> float:
    """Timeline length: the end time of the last slide."""
    if not slides:
        return 0.0
    return slides[-1].end_time


def add_end_screen(slides: list[Slide], end_screen: EndScreen) -> list[Slide]:
    """Append the end-screen slide when the end screen is enabled and not already present."""
    if not end_screen.enabled or any(s.is_end_screen for s in slides):
        return list(slides)

    start = calculate_duration(slides)
    end_slide = Slide(
        id=END_SCREEN_SLIDE_ID,
        image_source=end_screen.content if end_screen.type == "image" else "",
        start_time=start,
        end_time=start + end_screen.duration_seconds,
        is_end_screen=True,
    )
    return [*slides, end_slide]


@dataclass
class TransitionPlan:
    """Crossfade bookkeeping for one chain of slides."""

    base_durations: list[float]
    transition_duration: float
    offsets: list[float]  # offsets[i - 1] is the crossfade offset into slide i

    @property
    def transition_count(self) -> int:
        return max(len(self.base_durations) - 1, 0)

    @property
    def actual_duration(self) -> float:
        if not self.base_durations:
            return 0.0
        return sum(self.base_durations) - self.transition_count * self.transition_duration

    def input_duration(self, index: int) -> float:
        """How long slide `index` is rendered for: extended unless it closes the chain."""
        base = self.base_durations[index]
        if index < len(self.base_durations) - 1:
            return base + self.transition_duration
        return base

    def visible_duration(self, index: int) -> float:
        """Seconds of slide `index` inside the trimmed chain, counted from its crossfade in."""
        start = self.offsets[index - 1] if index > 0 else 0.0
        return max(min(self.actual_duration - start, self.base_durations[index]), 0.0)

    def clipped_slides(self) -> list[int]:
        """Slides whose crossfade in does not finish before the chain is trimmed."""
        return [
            i
            for i, offset in enumerate(self.offsets, start=1)
            if offset + self.transition_duration > self.actual_duration + TIME_EPSILON
        ]


def plan_transitions(base_durations: list[float], transition_duration: float | None = None) -> TransitionPlan:
    """Compute crossfade offsets for a chain of slides.

    Raises:
        InvalidTimelineError: if a duration is not positive or an offset would
            fall outside the stream it is applied to
    """
    if transition_duration is None:
        transition_duration = get_settings().render_transition_duration_s

    issues = [
        TimelineIssue(index=i, message=f"Slide duration must be positive (got {d:g}s)")
        for i, d in enumerate(base_durations)
        if d <= 0
    ]
    if issues:
        raise InvalidTimelineError(issues)

    offsets: list[float] = []
    if base_durations:
        accumulated = base_durations[0]
        for i in range(1, len(base_durations)):
            offset = accumulated
            accumulated += base_durations[i]
            if offset < 0 or offset >= accumulated:
                raise InvalidTimelineError(
                    [TimelineIssue(index=i, message=f"Crossfade offset {offset:g}s outside stream of {accumulated:g}s")]
                )
            offsets.append(round(offset, TIME_PRECISION))

    for i, d in enumerate(base_durations[1:], start=1):
        if d < transition_duration:
            # Still renderable, but the crossfade covers the whole slide
            logger.warning(
                f"[TIMELINE] Slide {i} lasts {d:g}s, shorter than the {transition_duration:g}s transition"
            )

    plan = TransitionPlan(
        base_durations=list(base_durations),
        transition_duration=transition_duration,
        offsets=offsets,
    )
    for i in plan.clipped_slides():
        visible = plan.visible_duration(i)
        if visible <= 0:
            logger.warning(
                f"[TIMELINE] Slide {i} never appears: its crossfade starts at {plan.offsets[i - 1]:g}s "
                f"but the video ends at {plan.actual_duration:g}s"
            )
        else:
            logger.warning(
                f"[TIMELINE] Slide {i} is cut to {visible:g}s of its {base_durations[i]:g}s: "
                f"the video ends at {plan.actual_duration:g}s"
            )
    return plan


@dataclass
class CompositionPlan:
    """How a validated timeline maps onto the rendered stream."""

    content: TransitionPlan  # Slides joined by crossfades
    end_screen_duration: float = 0.0  # Non-zero when the end screen is spliced in

    @property
    def content_duration(self) -> float:
        return self.content.actual_duration

    @property
    def splices_end_screen(self) -> bool:
        return self.end_screen_duration > 0

    @property
    def total_duration(self) -> float:
        return self.content_duration + self.end_screen_duration


def plan_composition(
    slides: list[Slide],
    end_screen: EndScreen,
    transition_duration: float | None = None,
) -> CompositionPlan:
    """Split slides into the crossfaded content chain and an optional spliced end screen.

    A text end screen is spliced after the content with no transition into or
    out of it. An image end screen, or an end-screen slide with the end screen
    disabled, is treated as an ordinary slide in the chain.
    """
    last = slides[-1] if slides else None
    if last is not None and last.is_end_screen and end_screen.enabled and end_screen.type == "text":
        content = plan_transitions([s.duration for s in slides[:-1]], transition_duration)
        return CompositionPlan(content=content, end_screen_duration=last.duration)
    return CompositionPlan(content=plan_transitions([s.duration for s in slides], transition_duration))
