"""
ingestion/midi_export.py — Write rendered comping NoteEvents to MIDI files using mido.

This module is the I/O output boundary of the comping pipeline:
    chords → render_progression (core/comping/) → events_to_midi → .mid

Usage:
    from ingestion.midi_export import events_to_midi, midi_to_events

MIDI structure:
    Type 1, Track 0 = tempo + time signature meta, Track 1 = piano notes.
    Each NoteEvent keeps its own channel.

Why beat-based timing:
    NoteEvents live on an absolute beat timeline, so ticks are simply
        tick = round(beat × ticks_per_beat)
    and the file's tempo alone decides wall-clock speed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import mido

from core.comping.types import MIDDLE_C, NoteEvent, TimeSignature

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TICKS_PER_BEAT: int = 480
"""Standard MIDI ticks per quarter note. 480 gives 1 ms resolution at 120 BPM."""

DEFAULT_BPM: float = 120.0

_NOTE_ON: int = 0
_NOTE_OFF: int = 1


# ---------------------------------------------------------------------------
# Time conversion utilities
# ---------------------------------------------------------------------------


def _beats_to_ticks(beats: float, ticks_per_beat: int) -> int:
    """Convert a beat position to MIDI ticks (negative positions clamp to 0)."""
    if beats < 0:
        return 0
    return round(beats * ticks_per_beat)


def _bpm_to_tempo_us(bpm: float) -> int:
    """Convert BPM to MIDI tempo (microseconds per beat).

    MIDI represents tempo as microseconds per quarter note.
    120 BPM = 500,000 μs/beat.

    Raises:
        ValueError: If bpm is not positive.
    """
    if bpm <= 0:
        raise ValueError(f"bpm must be positive, got {bpm}")
    return max(1, round(60_000_000.0 / bpm))


def _meta_track(bpm: float, time_signature: TimeSignature) -> mido.MidiTrack:
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("set_tempo", tempo=_bpm_to_tempo_us(bpm), time=0))
    track.append(
        mido.MetaMessage(
            "time_signature",
            numerator=time_signature.beats,
            denominator=time_signature.beat_type,
            clocks_per_click=24,
            notated_32nd_notes_per_beat=8,
            time=0,
        )
    )
    track.append(mido.MetaMessage("end_of_track", time=0))
    return track


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def events_to_midi(
    events: Sequence[NoteEvent],
    *,
    bpm: float = DEFAULT_BPM,
    output_path: str | Path | None = None,
    ticks_per_beat: int = DEFAULT_TICKS_PER_BEAT,
    time_signature: TimeSignature = TimeSignature(),
) -> mido.MidiFile:
    """Convert rendered NoteEvents to a Type 1 MIDI file.

    Delta time encoding:
        Absolute tick positions are computed for every note_on/note_off,
        sorted (note_off before note_on at equal ticks so repeated pitches
        re-attack cleanly), then turned into deltas.

    Args:
        events:         NoteEvents in any order. Must not be empty.
        bpm:            Tempo written to the meta track.
        output_path:    If provided, saves the file there (parent must exist).
        ticks_per_beat: MIDI resolution.
        time_signature: Meter written to the meta track.

    Returns:
        mido.MidiFile object.

    Raises:
        ValueError: If events is empty or bpm is not positive.
        OSError:    If output_path is not writable.
    """
    if not events:
        raise ValueError("events sequence must not be empty")

    midi = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)
    midi.tracks.append(_meta_track(bpm, time_signature))

    piano_track = mido.MidiTrack()
    midi.tracks.append(piano_track)

    # (absolute_tick, kind, channel, pitch, velocity)
    timeline: list[tuple[int, int, int, int, int]] = []
    for event in events:
        on_tick = _beats_to_ticks(event.start_beat, ticks_per_beat)
        off_tick = _beats_to_ticks(event.end_beat, ticks_per_beat)
        if off_tick <= on_tick:
            off_tick = on_tick + 1
        velocity = max(1, min(127, event.velocity))  # note_on with velocity 0 means note_off
        timeline.append((on_tick, _NOTE_ON, event.channel, event.pitch, velocity))
        timeline.append((off_tick, _NOTE_OFF, event.channel, event.pitch, 0))

    timeline.sort(key=lambda e: (e[0], -e[1]))

    current_tick = 0
    for abs_tick, kind, channel, pitch, velocity in timeline:
        delta = abs_tick - current_tick
        current_tick = abs_tick
        message = "note_on" if kind == _NOTE_ON else "note_off"
        piano_track.append(mido.Message(message, channel=channel, note=pitch, velocity=velocity, time=delta))

    piano_track.append(mido.MetaMessage("end_of_track", time=0))

    if output_path is not None:
        midi.save(str(output_path))
        logger.info("Wrote %d note events to %s", len(events), output_path)

    return midi


# ---------------------------------------------------------------------------
# Round-trip parser (MIDI → NoteEvents)
# ---------------------------------------------------------------------------


def midi_to_events(midi_file: mido.MidiFile) -> list[NoteEvent]:
    """Parse the piano track of a MIDI file back into NoteEvents.

    Hand is not stored in MIDI; notes below middle C come back as "left".
    Overlapping notes of the same pitch and channel pair first-in first-out.

    Returns:
        NoteEvents sorted by start beat. Empty if the file has no note track.
    """
    if len(midi_file.tracks) < 2:
        return []

    ticks_per_beat = midi_file.ticks_per_beat
    abs_tick = 0
    pending: dict[tuple[int, int], list[tuple[int, int]]] = {}
    parsed: list[NoteEvent] = []

    for msg in midi_file.tracks[1]:
        abs_tick += msg.time
        if msg.type == "note_on" and msg.velocity > 0:
            pending.setdefault((msg.channel, msg.note), []).append((abs_tick, msg.velocity))
        elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
            queue = pending.get((msg.channel, msg.note))
            if not queue:
                logger.warning("Unmatched note_off for pitch %d at tick %d", msg.note, abs_tick)
                continue
            on_tick, velocity = queue.pop(0)
            parsed.append(
                NoteEvent(
                    start_beat=on_tick / ticks_per_beat,
                    pitch=msg.note,
                    velocity=velocity,
                    duration=max(1, abs_tick - on_tick) / ticks_per_beat,
                    hand="left" if msg.note < MIDDLE_C else "right",
                    channel=msg.channel,
                )
            )

    return sorted(parsed, key=lambda n: (n.start_beat, n.pitch))
