"""
render_comping tool — voice and humanize a jazz chord progression.

Pure computation unless output_path is given, in which case a .mid file is
written through ingestion/midi_export.py.

Input chords are plain dicts, laid end to end from beat 0:
    {"root": "D", "quality": "-7", "duration": 4.0}
    {"root": "G", "quality": "7", "duration": 4.0, "extensions": ["b9"]}

Quality accepts the chord-symbol suffix ("-7", "maj7", "7alt"), the enum
name ("minor7") or a common alias ("m7", "min7", "m7b5").

Output:
  - note events (start, pitch, velocity, duration, hand)
  - the chosen voicing per chord
  - the pattern chosen per chord
  - loop length in beats and seconds
"""

from pathlib import Path
from typing import Any

from core.comping.config import HumanizationPreset, MusicStyle
from core.comping.pipeline import render_progression
from core.comping.types import Chord, ChordEvent, ChordQuality, TimeSignature
from ingestion.midi_export import events_to_midi
from tools.base import MusicalTool, ToolParameter, ToolResult

MIN_BPM: int = 40
MAX_BPM: int = 320
MAX_CHORDS: int = 256

_QUALITY_ALIASES: dict[str, ChordQuality] = {
    "maj": ChordQuality.MAJOR,
    "m": ChordQuality.MINOR,
    "min": ChordQuality.MINOR,
    "m7": ChordQuality.MINOR7,
    "min7": ChordQuality.MINOR7,
    "dom7": ChordQuality.DOMINANT7,
    "m7b5": ChordQuality.HALF_DIMINISHED,
    "ø": ChordQuality.HALF_DIMINISHED,
    "o7": ChordQuality.DIMINISHED7,
    "+": ChordQuality.AUGMENTED,
    "m9": ChordQuality.MINOR9,
    "alt": ChordQuality.ALTERED,
}


def parse_quality(raw: str) -> ChordQuality:
    """Resolve a quality string to a ChordQuality.

    Raises:
        ValueError: If nothing matches.
    """
    text = raw.strip()
    for quality in ChordQuality:
        if text == quality.value:
            return quality
    lowered = text.lower()
    for quality in ChordQuality:
        if lowered == quality.name.lower():
            return quality
    if lowered in _QUALITY_ALIASES:
        return _QUALITY_ALIASES[lowered]
    raise ValueError(f"Unknown chord quality: {raw!r}")


def build_events(chords: list[dict[str, Any]]) -> list[ChordEvent]:
    """Lay chord dicts end to end from beat 0.

    Raises:
        ValueError: On a missing root, unknown note or quality, or bad duration.
    """
    events: list[ChordEvent] = []
    beat = 0.0
    for index, spec in enumerate(chords):
        if not isinstance(spec, dict) or not spec.get("root"):
            raise ValueError(f"Chord {index} must be a dict with a 'root'")
        chord = Chord.from_name(
            str(spec["root"]).strip(),
            parse_quality(str(spec.get("quality", ""))),
            bass=spec.get("bass") or None,
            extensions=tuple(spec.get("extensions") or ()),
        )
        duration = float(spec.get("duration", 4.0))
        events.append(ChordEvent(chord=chord, start_beat=beat, duration=duration))
        beat += duration
    return events


class RenderComping(MusicalTool):
    """
    Render a chord progression as humanized jazz piano comping.

    Voices every chord with loop-aware voice leading, picks a rhythm per
    measure from its harmonic density and renders it with the style's
    timing and dynamics feel.
    """

    @property
    def name(self) -> str:
        return "render_comping"

    @property
    def description(self) -> str:
        return (
            "Render a jazz chord progression as humanized piano comping. "
            "Chooses rootless, shell, quartal or drop voicings with smooth voice "
            "leading (including the loop back to the first chord), picks rhythms "
            "from how many chords fall in each bar, and applies swing, lay-back, "
            "rolls and dynamics. Returns note events and optionally a .mid file. "
            f"Styles: {', '.join(s.value for s in MusicStyle)}."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="chords",
                type=list,
                description=(
                    "Chords in order, each {'root': 'D', 'quality': '-7', 'duration': 4.0}; "
                    "optional 'bass' and 'extensions'."
                ),
            ),
            ToolParameter(
                name="style",
                type=str,
                description="Comping style. Default: 'swing'.",
                required=False,
                default="swing",
                choices=tuple(s.value for s in MusicStyle),
            ),
            ToolParameter(
                name="humanization",
                type=str,
                description="Humanization amount on top of the style feel. Default: 'style_default'.",
                required=False,
                default="style_default",
                choices=tuple(p.value for p in HumanizationPreset),
            ),
            ToolParameter(
                name="bpm",
                type=int,
                description=f"Tempo in BPM ({MIN_BPM}–{MAX_BPM}). Default: the style's tempo.",
                required=False,
                default=0,
            ),
            ToolParameter(
                name="beats_per_bar",
                type=int,
                description="Quarter-note beats per bar (2–7). Default: 4.",
                required=False,
                default=4,
                minimum=2,
                maximum=7,
            ),
            ToolParameter(
                name="seed",
                type=int,
                description="Random seed for reproducible output.",
                required=False,
            ),
            ToolParameter(
                name="output_path",
                type=str,
                description="Optional path to write a .mid file.",
                required=False,
                default="",
            ),
        ]

    def execute(self, **kwargs: Any) -> ToolResult:
        chords: list = kwargs.get("chords") or []
        style_raw: str = kwargs.get("style") or "swing"
        humanization_raw: str = (kwargs.get("humanization") or "style_default").strip().lower()
        bpm_raw: int = kwargs.get("bpm") or 0
        beats_per_bar: int = kwargs.get("beats_per_bar") or 4
        seed: int | None = kwargs.get("seed")
        output_path: str = (kwargs.get("output_path") or "").strip()

        if not chords:
            return ToolResult(success=False, error="chords must contain at least one chord")
        if len(chords) > MAX_CHORDS:
            return ToolResult(success=False, error=f"at most {MAX_CHORDS} chords are supported")

        try:
            style = MusicStyle.parse(style_raw)
            humanization = HumanizationPreset(humanization_raw)
            events = build_events(chords)
        except ValueError as e:
            return ToolResult(success=False, error=str(e))

        bpm = bpm_raw or int(style.default_tempo)
        if not (MIN_BPM <= bpm <= MAX_BPM):
            return ToolResult(success=False, error=f"bpm must be between {MIN_BPM} and {MAX_BPM}")

        meter = TimeSignature(beats_per_bar, 4)
        result = render_progression(
            events,
            style=style,
            humanization=humanization,
            beats_per_measure=meter,
            seed=seed,
        )

        note_events = [
            {
                "start": round(n.start_beat, 4),
                "note": n.pitch,
                "velocity": n.velocity,
                "duration": round(n.duration, 4),
                "hand": n.hand,
            }
            for n in result.events
        ]
        voicings = [
            {
                "chord": event.chord.symbol,
                "start": event.start_beat,
                "family": voicing.family.value,
                "notes": list(voicing.notes),
                "note_names": list(voicing.note_names()),
                "pattern": pattern.name if pattern else None,
            }
            for event, voicing, pattern in zip(events, result.voicings, result.patterns)
        ]

        metadata: dict[str, Any] = {"humanization": humanization.value}
        if output_path:
            path = Path(output_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            events_to_midi(result.events, bpm=bpm, output_path=path, time_signature=meter)
            metadata["midi_file"] = str(path.resolve())

        return ToolResult(
            success=True,
            data={
                "note_events": note_events,
                "voicings": voicings,
                "note_count": len(note_events),
                "loop_length_beats": result.loop_length,
                "loop_length_seconds": round(result.loop_length / bpm * 60.0, 2),
                "style": style.value,
                "bpm": bpm,
            },
            metadata=metadata,
        )
