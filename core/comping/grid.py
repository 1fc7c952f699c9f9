"""
core/comping/grid.py — Grid-aligned pattern application.

apply_rhythm_pattern() stamps a pattern's hits onto absolute beats. The
pattern's phase is anchored to multiples of its own length from beat 0,
not to the chord's start, so a two-bar pattern keeps its shape when a new
chord arrives halfway through it.

    phase_base = floor(start_beat / length) * length

Repetitions from phase_base onwards are enumerated until the chord ends;
only hits whose absolute position lies in [chord.start, chord.end) survive.

Durations:
    explicit hit duration, else the gap to the next hit (wrapping to the next
    repetition), always capped at the chord's end.
"""

from __future__ import annotations

import math

from core.comping.types import ChordEvent, RhythmPattern, ScheduledHit

_EPSILON: float = 1e-9


def phase_base(start_beat: float, length_in_beats: float) -> float:
    """Start of the pattern repetition containing ``start_beat``.

    Examples:
        >>> phase_base(6.0, 4.0)
        4.0
        >>> phase_base(8.0, 8.0)
        8.0
    """
    return math.floor(start_beat / length_in_beats + _EPSILON) * length_in_beats


def apply_rhythm_pattern(
    pattern: RhythmPattern,
    chord_event: ChordEvent,
    start_beat: float | None = None,
) -> tuple[ScheduledHit, ...]:
    """Schedule a pattern's (swung) hits inside one chord event.

    Args:
        pattern:     Pattern to stamp.
        chord_event: Chord whose span bounds the hits.
        start_beat:  Beat used to derive the phase base; defaults to the
                     chord's start. Values after the chord start are clamped
                     to it. Hits are always bounded by the chord.

    Returns:
        ScheduledHits ordered by absolute start beat, with positive durations.
    """
    hits = pattern.swung_hits()
    if not hits:
        return ()

    length = pattern.length_in_beats
    start = chord_event.start_beat
    end = chord_event.end_beat
    anchor = start if start_beat is None else min(start_beat, start)
    base = phase_base(anchor, length)

    scheduled: list[ScheduledHit] = []
    while base < end:
        for index, hit in enumerate(hits):
            position = base + hit.position
            if not (start - _EPSILON <= position < end - _EPSILON):
                continue
            remaining = end - position
            if hit.duration is not None:
                duration = min(hit.duration, remaining)
            else:
                if index + 1 < len(hits):
                    next_position = hits[index + 1].position
                else:
                    next_position = length + hits[0].position
                duration = min(next_position - hit.position, remaining)
            if duration <= 0:
                continue
            scheduled.append(
                ScheduledHit(
                    start_beat=position,
                    pattern_position=hit.position,
                    duration=duration,
                    velocity=hit.velocity,
                    hit_type=hit.hit_type,
                )
            )
        base += length

    scheduled.sort(key=lambda h: h.start_beat)
    return tuple(scheduled)
