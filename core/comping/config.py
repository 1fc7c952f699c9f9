"""
core/comping/config.py — Styles, renderer presets and humanization presets.

Style data lives in YAML under core/comping/templates/ and is parsed once per
file (functools.cache), so every caller shares the same read-only mapping.

    styles.yaml            → MusicStyle metadata + canonical pattern shapes
    renderer_presets.yaml  → RendererConfig presets + humanization scales

Configuration surface:
    MusicStyle          — named style; selects a renderer preset and a pattern subset
    RendererConfig      — frozen bundle of timing / strum / velocity / articulation knobs
    HumanizationPreset  — robotic, tight, natural, loose, expressive, style-default;
                          scales a style's RendererConfig
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

_TEMPLATES_DIR: Path = Path(__file__).parent / "templates"

_TEMPLATE_FILES: dict[str, str] = {
    "styles": "styles.yaml",
    "renderer_presets": "renderer_presets.yaml",
}


@functools.cache
def _load_template(name: str) -> dict[str, Any]:
    """Load and cache one YAML template by logical name.

    Args:
        name: "styles" or "renderer_presets"

    Returns:
        Parsed YAML dict

    Raises:
        ValueError: If the name is unknown or the file is missing/malformed
    """
    filename = _TEMPLATE_FILES.get(name)
    if filename is None:
        raise ValueError(f"Unknown template {name!r}. Available: {sorted(_TEMPLATE_FILES)}")

    template_path = _TEMPLATES_DIR / filename
    if not template_path.exists():
        raise ValueError(f"Template file not found: {template_path}")

    with template_path.open() as fh:
        data = yaml.safe_load(fh)

    if not isinstance(data, dict):
        raise ValueError(f"Template {template_path} must contain a mapping")
    logger.debug("Loaded template %s", template_path)
    return data


# ---------------------------------------------------------------------------
# MusicStyle
# ---------------------------------------------------------------------------


class MusicStyle(enum.Enum):
    """Comping style identifier; values are the keys used in styles.yaml."""

    SWING = "swing"
    BOSSA_NOVA = "bossa_nova"
    BALLAD = "ballad"
    LATIN = "latin"
    FUNK = "funk"
    GOSPEL = "gospel"
    STRIDE = "stride"

    @classmethod
    def parse(cls, name: str | MusicStyle) -> MusicStyle:
        """Accept "Bossa Nova", "bossa nova", "bossa_nova" or a MusicStyle.

        Raises:
            ValueError: If no style matches.
        """
        if isinstance(name, MusicStyle):
            return name
        key = name.strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unknown style {name!r}. Available: {[s.value for s in cls]}"
            ) from None

    @property
    def _data(self) -> dict[str, Any]:
        return _load_template("styles")["styles"][self.value]

    @property
    def display_name(self) -> str:
        return self._data["display_name"]

    @property
    def default_tempo(self) -> float:
        return float(self._data["default_tempo"])

    @property
    def renderer_preset(self) -> str:
        return self._data["renderer_preset"]

    @property
    def swings(self) -> bool:
        """Whether swingable patterns of this style get the swing feel."""
        return bool(self._data.get("swing_feel", False))


def pattern_shapes() -> list[dict[str, Any]]:
    """Canonical pattern shapes shared by every style (raw YAML records)."""
    return _load_template("styles")["pattern_shapes"]


# ---------------------------------------------------------------------------
# RendererConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RendererConfig:
    """Humanization parameters for the renderer. Times are in beats.

    Attributes:
        timing_jitter:                Std-dev of the per-hit Gaussian offset
        lay_back:                     Constant delay (negative = push ahead)
        anticipation_push:            Offset used instead of lay_back on anticipations
        strum_speed:                  Delay between successive notes of a roll
        strum_randomness:             Std-dev of per-note roll jitter
        strum_probability:            Chance that a hit is rolled
        reverse_strum_probability:    Chance that a roll runs top-down
        velocity_center:              MIDI velocity for a hit of relative velocity 1.0
        velocity_jitter:              Std-dev of per-note velocity noise
        pitch_velocity_bias:          Velocity added per semitone above middle C
        ghost_note_probability:       Chance of a note being ghosted
        ghost_note_velocity:          Velocity multiplier for ghosted notes
        legato:                       Duration multiplier (1.0 = full length)
        duration_jitter:              Std-dev of duration noise
        melody_accent_probability:    Chance the top note of a hit is accented
        melody_accent_boost:          Velocity added to accented top notes
        left_hand_velocity_reduction: Velocity multiplier for left-hand notes
    """

    timing_jitter: float = 0.022
    lay_back: float = 0.012
    anticipation_push: float = -0.008
    strum_speed: float = 0.018
    strum_randomness: float = 0.006
    strum_probability: float = 0.85
    reverse_strum_probability: float = 0.15
    velocity_center: float = 78.0
    velocity_jitter: float = 10.0
    pitch_velocity_bias: float = 0.12
    ghost_note_probability: float = 0.03
    ghost_note_velocity: float = 0.28
    legato: float = 0.88
    duration_jitter: float = 0.04
    melody_accent_probability: float = 0.6
    melody_accent_boost: float = 8.0
    left_hand_velocity_reduction: float = 0.92

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        for name in ("timing_jitter", "strum_speed", "strum_randomness", "velocity_jitter", "duration_jitter"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        for name in (
            "strum_probability",
            "reverse_strum_probability",
            "ghost_note_probability",
            "ghost_note_velocity",
            "melody_accent_probability",
            "left_hand_velocity_reduction",
        ):
            if not (0.0 <= getattr(self, name) <= 1.0):
                raise ValueError(f"{name} must be in [0, 1], got {getattr(self, name)}")
        if not (1.0 <= self.velocity_center <= 127.0):
            raise ValueError(f"velocity_center must be in [1, 127], got {self.velocity_center}")
        if not (0.0 < self.legato <= 1.5):
            raise ValueError(f"legato must be in (0, 1.5], got {self.legato}")
        if abs(self.lay_back) >= 0.5 or abs(self.anticipation_push) >= 0.5:
            raise ValueError("lay_back and anticipation_push must stay within half a beat")


DEFAULT_RENDERER_CONFIG = RendererConfig()
"""Neutral jazz defaults used when no style is selected."""

_CONFIG_FIELDS: frozenset[str] = frozenset(f.name for f in dataclasses.fields(RendererConfig))


def available_presets() -> list[str]:
    """Names of the renderer presets defined in renderer_presets.yaml."""
    return sorted(_load_template("renderer_presets")["presets"])


@functools.cache
def renderer_preset(name: str) -> RendererConfig:
    """Build the named RendererConfig preset (e.g. "swing", "robotic").

    Raises:
        ValueError: If the preset is unknown or names an unknown field.
    """
    presets = _load_template("renderer_presets")["presets"]
    key = name.strip().lower()
    if key not in presets:
        raise ValueError(f"Unknown renderer preset {name!r}. Available: {sorted(presets)}")
    values = presets[key] or {}
    unknown = set(values) - _CONFIG_FIELDS
    if unknown:
        raise ValueError(f"Preset {key!r} has unknown fields: {sorted(unknown)}")
    return RendererConfig(**{k: float(v) for k, v in values.items()})


def config_for_style(style: str | MusicStyle) -> RendererConfig:
    """RendererConfig for a style (bossa nova shares the latin preset)."""
    return renderer_preset(MusicStyle.parse(style).renderer_preset)


# ---------------------------------------------------------------------------
# Humanization presets
# ---------------------------------------------------------------------------


class HumanizationPreset(enum.Enum):
    """User-facing humanization amount applied on top of a style preset."""

    ROBOTIC = "robotic"
    TIGHT = "tight"
    NATURAL = "natural"
    LOOSE = "loose"
    EXPRESSIVE = "expressive"
    STYLE_DEFAULT = "style_default"


def apply_humanization(config: RendererConfig, preset: HumanizationPreset) -> RendererConfig:
    """Scale ``config`` by a humanization preset.

    ROBOTIC replaces the config with the zero-jitter "robotic" preset;
    STYLE_DEFAULT returns ``config`` unchanged; the others multiply the
    timing, strum, velocity and duration noise by factors from
    renderer_presets.yaml.
    """
    if preset is HumanizationPreset.ROBOTIC:
        return renderer_preset("robotic")
    if preset is HumanizationPreset.STYLE_DEFAULT:
        return config

    scales = _load_template("renderer_presets")["humanization_scales"][preset.value]
    timing = float(scales["timing"])
    strum = float(scales["strum"])
    velocity = float(scales["velocity"])
    duration = float(scales["duration"])
    return dataclasses.replace(
        config,
        timing_jitter=config.timing_jitter * timing,
        lay_back=config.lay_back * timing,
        anticipation_push=config.anticipation_push * timing,
        strum_speed=config.strum_speed * strum,
        strum_randomness=config.strum_randomness * strum,
        velocity_jitter=config.velocity_jitter * velocity,
        duration_jitter=config.duration_jitter * duration,
    )


def resolve_renderer_config(
    style: str | MusicStyle,
    humanization: HumanizationPreset = HumanizationPreset.STYLE_DEFAULT,
) -> RendererConfig:
    """Style preset with a humanization preset applied."""
    return apply_humanization(config_for_style(style), humanization)
