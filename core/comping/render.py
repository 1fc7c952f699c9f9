"""
core/comping/render.py — Humanized jazz piano renderer.

HumanizedRenderer turns chord events, their chosen voicings and rhythm
patterns into NoteEvents with stochastic timing, rolls, velocity shaping and
articulation.

Per chord event (data-driven, not clock-driven):
    1. Hits come from apply_rhythm_pattern() (grid-aligned, swung).
    2. A hit in the and-of-four zone (bar position >= 3.4) that sits right
       before the chord's end is an anticipation: it sounds the NEXT
       voicing and rings across the bar line into the next chord.
    3. When the previous event anticipated, this event's downbeat hit is
       skipped, because those notes are already ringing.
    4. Every surviving hit gets one shared Gaussian offset plus lay-back
       (or the anticipation push), an optional roll, per-note velocity and
       duration shaping.
    5. Without a pattern the chord is sounded once, sustained, on its start.

Onset window:
    Notes for a chord never start before chord.start - ANTICIPATION_WINDOW or
    at/after chord.end + ANTICIPATION_WINDOW; jittered onsets are clamped.

Velocity convention: integer MIDI velocity, clamped to [15, 127].
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from core.comping.config import DEFAULT_RENDERER_CONFIG, RendererConfig
from core.comping.grid import apply_rhythm_pattern
from core.comping.randomness import GaussianSource
from core.comping.types import (
    MIDDLE_C,
    ChordEvent,
    HitType,
    NoteEvent,
    RhythmPattern,
    Voicing,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BAR_BEATS: float = 4.0
ANTICIPATION_THRESHOLD: float = 3.4  # bar position where the and-of-four zone starts
ANTICIPATION_WINDOW: float = BAR_BEATS - ANTICIPATION_THRESHOLD
DEFAULT_ANTICIPATION_SUSTAIN: float = 1.5  # beats rung into the next bar
BEAT_ONE_TOLERANCE: float = 0.1
MIN_VELOCITY: int = 15
MAX_VELOCITY: int = 127
MIN_NOTE_DURATION: float = 0.1
SUSTAINED_HIT_VELOCITY: float = 1.0
_EPSILON: float = 1e-6


def is_anticipation_position(pattern_position: float) -> bool:
    """True for bar positions in [3.4, 4.0), the and-of-four zone."""
    in_bar = pattern_position % BAR_BEATS
    return ANTICIPATION_THRESHOLD <= in_bar < BAR_BEATS


def anticipation_sustain(pattern: RhythmPattern) -> float:
    """How far an anticipation rings into the next bar.

    The first sounding hit after the downbeat ends the sustain; patterns
    without one use DEFAULT_ANTICIPATION_SUSTAIN.
    """
    for hit in pattern.swung_hits():
        if hit.position > BEAT_ONE_TOLERANCE and hit.hit_type is not HitType.REST:
            return hit.position
    return DEFAULT_ANTICIPATION_SUSTAIN


def select_notes(hit_type: HitType, voicing: Voicing) -> tuple[int, ...]:
    """Notes of ``voicing`` sounded by a hit of ``hit_type``."""
    notes = voicing.notes
    if hit_type is HitType.FULL_CHORD:
        return notes
    if hit_type is HitType.BASS_ONLY:
        return notes[:1]
    if hit_type is HitType.TOP_NOTE:
        return notes[-1:]
    if hit_type is HitType.LEFT_HAND:
        return voicing.left_hand or notes[: max(1, len(notes) // 2)]
    if hit_type is HitType.RIGHT_HAND:
        return voicing.right_hand or notes[-max(1, len(notes) // 2) :]
    return ()


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class HumanizedRenderer:
    """Renders voiced chord events into humanized NoteEvents.

    Args:
        config:   Humanization parameters.
        gaussian: Random source; a fresh one seeded with ``seed`` when None.
        seed:     Seed for the fresh source.
        channel:  MIDI channel stamped on every NoteEvent.
    """

    def __init__(
        self,
        config: RendererConfig = DEFAULT_RENDERER_CONFIG,
        gaussian: GaussianSource | None = None,
        *,
        seed: int | None = None,
        channel: int = 0,
    ) -> None:
        self.config = config
        self.gaussian = gaussian or GaussianSource(seed=seed)
        self.channel = channel

    def render(
        self,
        events: Sequence[ChordEvent],
        voicings: Sequence[Voicing],
        pattern: RhythmPattern | None,
    ) -> tuple[NoteEvent, ...]:
        """Render every event with the same pattern (None = sustained chords)."""
        return self.render_with_patterns(events, voicings, [pattern] * len(events))

    def render_with_patterns(
        self,
        events: Sequence[ChordEvent],
        voicings: Sequence[Voicing],
        patterns: Sequence[RhythmPattern | None],
    ) -> tuple[NoteEvent, ...]:
        """Render events, each with its own pattern.

        Args:
            events:   Chord events in timeline order.
            voicings: One voicing per event.
            patterns: One pattern (or None) per event.

        Returns:
            NoteEvents sorted by start beat. Empty input gives an empty tuple.

        Raises:
            ValueError: If the three sequences differ in length.
        """
        if not (len(events) == len(voicings) == len(patterns)):
            raise ValueError(
                f"events, voicings and patterns must align: "
                f"{len(events)} events, {len(voicings)} voicings, {len(patterns)} patterns"
            )
        if not events:
            return ()

        notes: list[NoteEvent] = []
        previous_anticipated = False
        count = len(events)

        for index, event in enumerate(events):
            current = voicings[index]
            upcoming = voicings[(index + 1) % count]
            skip_downbeat = previous_anticipated and index > 0
            pattern = patterns[index]

            if pattern is None:
                previous_anticipated = False
                if skip_downbeat:
                    continue
                notes.extend(
                    self.render_hit(
                        current.notes,
                        current,
                        start_beat=event.start_beat,
                        duration=event.duration,
                        hit_velocity=SUSTAINED_HIT_VELOCITY,
                        anticipation=False,
                        bounds=event,
                    )
                )
                continue

            sustain = anticipation_sustain(pattern)
            anticipated = False
            for hit in apply_rhythm_pattern(pattern, event):
                if hit.hit_type is HitType.REST:
                    continue
                if skip_downbeat and hit.start_beat - event.start_beat < BEAT_ONE_TOLERANCE:
                    continue

                anticipation = (
                    is_anticipation_position(hit.pattern_position)
                    and event.end_beat - hit.start_beat <= ANTICIPATION_WINDOW + _EPSILON
                )
                voicing = upcoming if anticipation else current
                if anticipation:
                    duration = (event.end_beat - hit.start_beat) + sustain
                else:
                    duration = hit.duration

                selected = select_notes(hit.hit_type, voicing)
                if not selected:
                    continue
                notes.extend(
                    self.render_hit(
                        selected,
                        voicing,
                        start_beat=hit.start_beat,
                        duration=duration,
                        hit_velocity=hit.velocity,
                        anticipation=anticipation,
                        bounds=event,
                    )
                )
                anticipated = anticipated or anticipation
            previous_anticipated = anticipated

        notes.sort(key=lambda n: (n.start_beat, n.pitch))
        logger.debug("Rendered %d note events for %d chords", len(notes), count)
        return tuple(notes)

    def render_hit(
        self,
        pitches: Sequence[int],
        voicing: Voicing,
        *,
        start_beat: float,
        duration: float,
        hit_velocity: float,
        anticipation: bool,
        bounds: ChordEvent | None = None,
    ) -> list[NoteEvent]:
        """Humanize one hit: shared timing offset, optional roll, per-note dynamics.

        Args:
            pitches:      Notes sounded by the hit.
            voicing:      Voicing the notes come from (hand membership, melody).
            start_beat:   Nominal onset in beats.
            duration:     Nominal duration in beats.
            hit_velocity: Relative hit velocity 0.0–1.0.
            anticipation: Use the anticipation push instead of lay-back.
            bounds:       Chord event whose onset window clamps the result.

        Returns:
            One NoteEvent per pitch, in roll order.
        """
        cfg = self.config
        rng = self.gaussian
        ordered = sorted(pitches)
        if not ordered:
            return []

        feel = cfg.anticipation_push if anticipation else cfg.lay_back
        chord_offset = rng.gauss(0.0, cfg.timing_jitter) + feel

        roll = cfg.strum_speed > 0 and len(ordered) > 1 and rng.random() < cfg.strum_probability
        if roll and rng.random() < cfg.reverse_strum_probability:
            ordered.reverse()

        low, high = 0.0, float("inf")
        if bounds is not None:
            low = max(0.0, bounds.start_beat - ANTICIPATION_WINDOW)
            high = bounds.end_beat + ANTICIPATION_WINDOW - _EPSILON

        melody = max(ordered)
        left_hand = set(voicing.left_hand)
        events: list[NoteEvent] = []
        for index, pitch in enumerate(ordered):
            offset = chord_offset
            if roll:
                offset += index * cfg.strum_speed + rng.gauss(0.0, cfg.strum_randomness)
            onset = min(max(start_beat + offset, low), high)

            events.append(
                NoteEvent(
                    start_beat=onset,
                    pitch=pitch,
                    velocity=self._velocity(pitch, hit_velocity, pitch in left_hand, pitch == melody),
                    duration=max(MIN_NOTE_DURATION, duration * cfg.legato + rng.gauss(0.0, cfg.duration_jitter)),
                    hand="left" if pitch in left_hand else "right",
                    channel=self.channel,
                )
            )
        return events

    def _velocity(self, pitch: int, hit_velocity: float, left_hand: bool, melody: bool) -> int:
        cfg = self.config
        rng = self.gaussian
        value = cfg.velocity_center * hit_velocity + (pitch - MIDDLE_C) * cfg.pitch_velocity_bias
        if left_hand:
            value *= cfg.left_hand_velocity_reduction
        if melody and rng.random() < cfg.melody_accent_probability:
            value += cfg.melody_accent_boost
        value += rng.gauss(0.0, cfg.velocity_jitter)
        if rng.random() < cfg.ghost_note_probability:
            value *= cfg.ghost_note_velocity
        return int(min(max(round(value), MIN_VELOCITY), MAX_VELOCITY))
