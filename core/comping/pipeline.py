"""
core/comping/pipeline.py — End-to-end comping render.

render_progression() chains the core stages:

    validate → optimize voicings (looped DP) → per-measure density
    → pattern per chord → grid apply + humanize → NoteEvents

The result carries the loop length so a playback driver knows where the
run restarts. Everything is computed locally and returned at once, so a
failure in any stage publishes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from core.comping.config import HumanizationPreset, MusicStyle, resolve_renderer_config
from core.comping.density import (
    SPARSE_WHOLE_NOTE_PROBABILITY,
    analyze_measure_density,
    select_pattern_for_density,
)
from core.comping.patterns import RhythmPatternLibrary, load_default_library
from core.comping.randomness import GaussianSource
from core.comping.render import HumanizedRenderer
from core.comping.types import (
    ChordEvent,
    NoteEvent,
    RhythmPattern,
    TimeSignature,
    Voicing,
    progression_length,
    validate_progression,
)
from core.comping.voice_leading import VoiceLeadingOptimizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompingResult:
    """Rendered comping for one progression.

    Attributes:
        events:      NoteEvents ordered by start beat
        voicings:    Voicing chosen for each chord event, in input order
        patterns:    Pattern governing each chord event (None = on the beat)
        loop_length: Beats until the progression repeats
    """

    events: tuple[NoteEvent, ...]
    voicings: tuple[Voicing, ...]
    patterns: tuple[RhythmPattern | None, ...]
    loop_length: float


def choose_patterns(
    events: Sequence[ChordEvent],
    *,
    beats_per_measure: float,
    fallback: RhythmPattern | None,
    style: str | MusicStyle,
    library: RhythmPatternLibrary,
    gaussian: GaussianSource,
    whole_note_probability: float = SPARSE_WHOLE_NOTE_PROBABILITY,
) -> tuple[RhythmPattern | None, ...]:
    """Pick one pattern per chord event from its measure's chord count."""
    density = analyze_measure_density(events, beats_per_measure)
    chosen: list[RhythmPattern | None] = []
    for event in events:
        pattern = select_pattern_for_density(
            density[event.measure_number(beats_per_measure)],
            event.duration,
            beats_per_measure,
            fallback,
            library=library,
            style=style,
            rng=gaussian.rng,
            whole_note_probability=whole_note_probability,
        )
        logger.debug(
            "Beat %.2f %s → %s",
            event.start_beat,
            event.chord.symbol,
            pattern.name if pattern else "on the beat",
        )
        chosen.append(pattern)
    return tuple(chosen)


def render_progression(
    events: Sequence[ChordEvent],
    *,
    style: str | MusicStyle = MusicStyle.SWING,
    humanization: HumanizationPreset = HumanizationPreset.STYLE_DEFAULT,
    beats_per_measure: float | TimeSignature = 4.0,
    fallback: RhythmPattern | None = None,
    seed: int | None = None,
    library: RhythmPatternLibrary | None = None,
    optimizer: VoiceLeadingOptimizer | None = None,
    loop: bool = True,
) -> CompingResult:
    """Voice, pattern and humanize a chord progression.

    Args:
        events:            Ordered, non-overlapping chord events.
        style:             Style selecting patterns and the renderer preset.
        humanization:      Humanization amount applied to the style preset.
        beats_per_measure: Measure length, or a TimeSignature.
        fallback:          Pattern for measures no density rule covers
                           (None = sustain the chord on its start beat).
        seed:              Seed for every random draw; None = non-deterministic.
        library:           Pattern catalog; the shared default when None.
        optimizer:         Voice-leading optimizer; a default one when None.
        loop:              Optimize voice leading across the loop seam.

    Returns:
        CompingResult. An empty progression yields empty events with loop
        length 0.0.

    Raises:
        ValueError: If the events overlap or beats_per_measure is not positive.
    """
    if isinstance(beats_per_measure, TimeSignature):
        beats_per_measure = beats_per_measure.beats_per_measure
    if beats_per_measure <= 0:
        raise ValueError(f"beats_per_measure must be positive, got {beats_per_measure}")
    events = list(events)
    validate_progression(events)
    if not events:
        return CompingResult(events=(), voicings=(), patterns=(), loop_length=0.0)

    style = MusicStyle.parse(style)
    library = library or load_default_library()
    optimizer = optimizer or VoiceLeadingOptimizer()
    gaussian = GaussianSource(seed=seed)

    voicings = optimizer.optimize_progression(events, loop=loop)
    patterns = choose_patterns(
        events,
        beats_per_measure=beats_per_measure,
        fallback=fallback,
        style=style,
        library=library,
        gaussian=gaussian,
    )
    config = resolve_renderer_config(style, humanization)
    notes = HumanizedRenderer(config, gaussian).render_with_patterns(events, voicings, patterns)

    loop_length = progression_length(events)
    logger.info(
        "Rendered %d chords as %d notes (%s, %s), loop %.1f beats",
        len(events),
        len(notes),
        style.value,
        humanization.value,
        loop_length,
    )
    return CompingResult(events=notes, voicings=voicings, patterns=patterns, loop_length=loop_length)
