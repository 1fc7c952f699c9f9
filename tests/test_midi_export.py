"""
Tests for ingestion/midi_export.py — MIDI file generation and round-trip.

Tests cover:
    - Time conversion utilities (_beats_to_ticks, _bpm_to_tempo_us)
    - events_to_midi() structure: meta track, piano track, channels
    - Round-trip: events → MIDI → events (pitch, start, duration, velocity preserved)
    - File I/O (saves correctly to tmp_path)
    - Edge cases: empty input, repeated pitches, sub-tick durations
"""

import mido
import pytest

from core.comping.types import NoteEvent, TimeSignature
from ingestion.midi_export import (
    DEFAULT_TICKS_PER_BEAT,
    _beats_to_ticks,
    _bpm_to_tempo_us,
    events_to_midi,
    midi_to_events,
)

# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def _make_event(
    pitch: int = 64,
    start_beat: float = 0.0,
    duration: float = 1.0,
    velocity: int = 80,
    hand: str = "right",
    channel: int = 0,
) -> NoteEvent:
    return NoteEvent(
        start_beat=start_beat,
        pitch=pitch,
        velocity=velocity,
        duration=duration,
        hand=hand,
        channel=channel,
    )


def _piano_messages(midi: mido.MidiFile, kind: str) -> list[mido.Message]:
    return [m for m in midi.tracks[1] if m.type == kind]


# ---------------------------------------------------------------------------
# _beats_to_ticks
# ---------------------------------------------------------------------------


class TestBeatsToTicks:
    def test_one_beat(self):
        """1 beat at 480 ticks/beat → 480 ticks."""
        assert _beats_to_ticks(1.0, 480) == 480

    def test_swung_eighth(self):
        """0.67 beats → 321.6 ticks, rounded to 322."""
        assert _beats_to_ticks(0.67, 480) == 322

    def test_negative_returns_zero(self):
        """Pushed notes before beat 0 clamp to tick 0 (no negative deltas in MIDI)."""
        assert _beats_to_ticks(-0.02, 480) == 0

    def test_returns_int(self):
        assert isinstance(_beats_to_ticks(1.5, 96), int)


# ---------------------------------------------------------------------------
# _bpm_to_tempo_us
# ---------------------------------------------------------------------------


class TestBpmToTempo:
    def test_120_bpm(self):
        """120 BPM = 500,000 μs per quarter note."""
        assert _bpm_to_tempo_us(120.0) == 500_000

    def test_ballad_tempo(self):
        assert _bpm_to_tempo_us(72.0) == 833_333

    @pytest.mark.parametrize("bpm", [0.0, -10.0])
    def test_non_positive_raises(self, bpm):
        with pytest.raises(ValueError, match="bpm must be positive"):
            _bpm_to_tempo_us(bpm)


# ---------------------------------------------------------------------------
# events_to_midi
# ---------------------------------------------------------------------------


class TestEventsToMidi:
    def test_empty_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            events_to_midi([])

    def test_type_1_with_two_tracks(self):
        midi = events_to_midi([_make_event()])
        assert midi.type == 1
        assert len(midi.tracks) == 2
        assert midi.ticks_per_beat == DEFAULT_TICKS_PER_BEAT

    def test_meta_track(self):
        """Track 0 carries tempo and time signature."""
        midi = events_to_midi([_make_event()], bpm=140.0, time_signature=TimeSignature(3, 4))
        meta = {m.type: m for m in midi.tracks[0]}
        assert meta["set_tempo"].tempo == _bpm_to_tempo_us(140.0)
        assert meta["time_signature"].numerator == 3
        assert meta["time_signature"].denominator == 4

    def test_note_on_and_off_per_event(self):
        events = [_make_event(60), _make_event(64), _make_event(67)]
        midi = events_to_midi(events)
        assert len(_piano_messages(midi, "note_on")) == 3
        assert len(_piano_messages(midi, "note_off")) == 3

    def test_channel_preserved(self):
        midi = events_to_midi([_make_event(channel=5)])
        assert {m.channel for m in _piano_messages(midi, "note_on")} == {5}

    def test_note_off_before_note_on_at_same_tick(self):
        """A repeated pitch re-attacks cleanly: off precedes the next on."""
        events = [_make_event(60, 0.0, 1.0), _make_event(60, 1.0, 1.0)]
        notes = [m for m in events_to_midi(events).tracks[1] if m.type in ("note_on", "note_off")]
        assert [m.type for m in notes] == ["note_on", "note_off", "note_on", "note_off"]

    def test_zero_length_gets_one_tick(self):
        """Durations shorter than a tick still produce a playable note."""
        midi = events_to_midi([_make_event(duration=0.0001)])
        (note_off,) = _piano_messages(midi, "note_off")
        assert note_off.time == 1

    def test_saves_file(self, tmp_path):
        path = tmp_path / "comping.mid"
        events_to_midi([_make_event()], output_path=path)
        assert path.exists()
        assert len(mido.MidiFile(str(path)).tracks) == 2


# ---------------------------------------------------------------------------
# Round-trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    def test_events_survive(self):
        events = [
            _make_event(48, 0.0, 3.5, 70, hand="left"),
            _make_event(64, 0.5, 0.5, 90),
            _make_event(67, 2.0, 1.0, 100),
        ]
        parsed = midi_to_events(events_to_midi(events))
        assert [(n.pitch, n.start_beat, n.duration, n.velocity) for n in parsed] == [
            (48, 0.0, 3.5, 70),
            (64, 0.5, 0.5, 90),
            (67, 2.0, 1.0, 100),
        ]

    def test_hand_inferred_from_pitch(self):
        parsed = midi_to_events(events_to_midi([_make_event(59), _make_event(60)]))
        assert [n.hand for n in parsed] == ["left", "right"]

    def test_overlapping_same_pitch_pairs_in_order(self):
        events = [_make_event(60, 0.0, 2.0), _make_event(60, 1.0, 2.0)]
        parsed = midi_to_events(events_to_midi(events))
        assert len(parsed) == 2
        assert [n.start_beat for n in parsed] == [0.0, 1.0]

    def test_from_saved_file(self, tmp_path):
        path = tmp_path / "loop.mid"
        events_to_midi([_make_event(72, 1.0, 0.5)], output_path=path)
        (parsed,) = midi_to_events(mido.MidiFile(str(path)))
        assert parsed.pitch == 72
        assert parsed.start_beat == 1.0

    def test_no_note_track(self):
        assert midi_to_events(mido.MidiFile(type=1)) == []
