"""
core/comping/ — Jazz piano comping engine.

Exports:
    Types:     Chord, ChordQuality, ChordEvent, TimeSignature, Voicing,
               VoicingFamily, HitType, RhythmHit, RhythmPattern,
               ScheduledHit, NoteEvent
    Voicing:   VoicingGenerator, find_best_octave
    Leading:   VoiceLeadingOptimizer, CostWeights, CandidateSetExhaustedError
    Patterns:  RhythmPatternLibrary, load_default_library
    Density:   select_pattern_for_density, analyze_measure_density
    Grid:      apply_rhythm_pattern
    Render:    HumanizedRenderer, GaussianSource
    Config:    MusicStyle, RendererConfig, HumanizationPreset
    Pipeline:  render_progression, CompingResult
"""

from core.comping.config import (
    HumanizationPreset,
    MusicStyle,
    RendererConfig,
    renderer_preset,
    resolve_renderer_config,
)
from core.comping.density import (
    analyze_measure_density,
    select_pattern_for_density,
    select_pattern_for_intensity,
    select_weighted_pattern,
)
from core.comping.grid import apply_rhythm_pattern
from core.comping.patterns import RhythmPatternLibrary, load_default_library
from core.comping.pipeline import CompingResult, render_progression
from core.comping.randomness import GaussianSource
from core.comping.render import HumanizedRenderer
from core.comping.types import (
    Chord,
    ChordEvent,
    ChordQuality,
    HitType,
    NoteEvent,
    RhythmHit,
    RhythmPattern,
    ScheduledHit,
    TimeSignature,
    Voicing,
    VoicingFamily,
)
from core.comping.voice_leading import CandidateSetExhaustedError, CostWeights, VoiceLeadingOptimizer
from core.comping.voicing import VoicingGenerator, find_best_octave

__all__ = [
    # Types
    "Chord",
    "ChordQuality",
    "ChordEvent",
    "TimeSignature",
    "Voicing",
    "VoicingFamily",
    "HitType",
    "RhythmHit",
    "RhythmPattern",
    "ScheduledHit",
    "NoteEvent",
    # Voicing
    "VoicingGenerator",
    "find_best_octave",
    # Voice leading
    "VoiceLeadingOptimizer",
    "CostWeights",
    "CandidateSetExhaustedError",
    # Patterns
    "RhythmPatternLibrary",
    "load_default_library",
    # Density
    "select_pattern_for_density",
    "select_pattern_for_intensity",
    "select_weighted_pattern",
    "analyze_measure_density",
    # Grid
    "apply_rhythm_pattern",
    # Render
    "HumanizedRenderer",
    "GaussianSource",
    # Config
    "MusicStyle",
    "RendererConfig",
    "HumanizationPreset",
    "renderer_preset",
    "resolve_renderer_config",
    # Pipeline
    "render_progression",
    "CompingResult",
]
