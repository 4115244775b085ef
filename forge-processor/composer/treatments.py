"""
Pixel treatments for brand assets.

Every treatment works on an RGBA pixel buffer: a numpy array of shape
(height, width, 4) and dtype uint8. Treatments take exclusive ownership of
the buffer while they run, modify it in place and return the same array.
Do not hand the same buffer to two treatments at once.

Intensities and colors are never rejected: out-of-range values are clamped.
The alpha channel is left untouched; buffers are composited as if opaque.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import numpy as np

from .pixelmath import clamp, lerp, parse_color, to_channels

logger = logging.getLogger(__name__)

BLEND_MODES = ("normal", "multiply", "screen")

GRAIN_STEPS = {"fine": 1, "medium": 2, "coarse": 3}


def _rgb(buffer: np.ndarray) -> np.ndarray:
    return buffer[..., :3].astype(np.float32)


# ============== Overlay ==============

def apply_overlay(
    buffer: np.ndarray,
    color: str,
    opacity: float,
    blend_mode: str = "normal",
) -> np.ndarray:
    """
    Fill the whole canvas with one color.

    Args:
        buffer: RGBA buffer, modified in place
        color: Overlay color (e.g. "#1A1A3E")
        opacity: 0-1, clamped
        blend_mode: "normal" (source-over), "multiply" or "screen"

    Returns:
        The same buffer
    """
    alpha = clamp(opacity, 0.0, 1.0)
    if alpha == 0:
        return buffer

    if blend_mode not in BLEND_MODES:
        logger.warning(f"Unknown blend mode '{blend_mode}', using normal")
        blend_mode = "normal"

    rgb = _rgb(buffer)
    src = np.array(parse_color(color), dtype=np.float32)

    if blend_mode == "multiply":
        src = rgb * src / 255.0
    elif blend_mode == "screen":
        src = 255.0 - (255.0 - rgb) * (255.0 - src) / 255.0

    buffer[..., :3] = to_channels(lerp(rgb, src, alpha))
    return buffer


# ============== Duotone ==============

def apply_duotone(
    buffer: np.ndarray,
    shadow_color: str,
    highlight_color: str,
    intensity: float,
) -> np.ndarray:
    """
    Map luminance onto two brand colors.

    Luminance uses the Rec.601 weights; dark pixels move toward
    `shadow_color`, light pixels toward `highlight_color`. The result is
    blended with the original by `intensity` (0 leaves the image as is).
    """
    t = clamp(intensity, 0.0, 1.0)
    if t == 0:
        return buffer

    rgb = _rgb(buffer)
    shadow = np.array(parse_color(shadow_color), dtype=np.float32)
    highlight = np.array(parse_color(highlight_color), dtype=np.float32)

    luminance = (0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]) / 255.0
    mapped = lerp(shadow, highlight, luminance[..., None])

    buffer[..., :3] = to_channels(lerp(rgb, mapped, t))
    return buffer


# ============== Vignette ==============

def apply_vignette(
    buffer: np.ndarray,
    intensity: float,
    size: float = 0.5,
    color: str = "#000000",
) -> np.ndarray:
    """
    Darken the edges with a radial gradient centred on the canvas.

    The gradient is transparent up to `size` x the centre-to-corner distance
    and reaches `intensity` opacity at the corners.
    """
    strength = clamp(intensity, 0.0, 1.0)
    if strength == 0:
        return buffer

    height, width = buffer.shape[:2]
    cx, cy = width / 2, height / 2
    outer = math.sqrt(cx * cx + cy * cy)
    inner = outer * clamp(size, 0.1, 0.9)

    ys, xs = np.ogrid[:height, :width]
    distance = np.sqrt((xs + 0.5 - cx) ** 2 + (ys + 0.5 - cy) ** 2)
    ramp = np.clip((distance - inner) / (outer - inner), 0.0, 1.0) * strength

    rgb = _rgb(buffer)
    tint = np.array(parse_color(color), dtype=np.float32)
    buffer[..., :3] = to_channels(lerp(rgb, tint, ramp[..., None].astype(np.float32)))
    return buffer


# ============== Grain ==============

def apply_grain(
    buffer: np.ndarray,
    intensity: float,
    grain_size: str = "medium",
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Add film grain.

    Each grain particle gets one random offset in
    [-intensity*127.5, intensity*127.5] applied equally to R, G and B.
    "fine" grain is one particle per pixel; "medium" and "coarse" share a
    particle across 2x2 and 3x3 blocks.

    Args:
        buffer: RGBA buffer, modified in place
        intensity: 0-1, clamped
        grain_size: "fine", "medium" or "coarse"
        rng: Random generator (pass a seeded one for reproducible output)
    """
    strength = clamp(intensity, 0.0, 1.0)
    if strength == 0:
        return buffer

    rng = rng or np.random.default_rng()
    step = GRAIN_STEPS.get(grain_size, GRAIN_STEPS["medium"])

    height, width = buffer.shape[:2]
    blocks_y = -(-height // step)
    blocks_x = -(-width // step)

    noise = (rng.random((blocks_y, blocks_x), dtype=np.float32) - 0.5) * strength * 255.0
    if step > 1:
        noise = np.repeat(np.repeat(noise, step, axis=0), step, axis=1)[:height, :width]

    buffer[..., :3] = to_channels(_rgb(buffer) + noise[..., None])
    return buffer


# ============== Color grading ==============

@dataclass(frozen=True)
class GradingPreset:
    """Adjustments applied by one grading preset."""
    id: str
    name: str
    description: str
    temperature: float
    contrast: float
    saturation: float
    shadow_lift: float
    tint: Tuple[float, float, float]


GRADING_PRESETS: Dict[str, GradingPreset] = {
    p.id: p for p in [
        GradingPreset("warm_lifestyle", "Warm Lifestyle",
                      "Temperatura calida, saturacion +10. Lifestyle, hogar, moda casual.",
                      temperature=15, contrast=5, saturation=10, shadow_lift=0, tint=(10, 5, -5)),
        GradingPreset("cold_editorial", "Cold Editorial",
                      "Temperatura fria, contraste +15. Streetwear, moda contemporanea.",
                      temperature=-20, contrast=15, saturation=-5, shadow_lift=0, tint=(-5, 0, 10)),
        GradingPreset("high_contrast_urban", "High Contrast Urban",
                      "Contraste maximo, saturacion -10, negros profundos.",
                      temperature=0, contrast=30, saturation=-10, shadow_lift=0, tint=(0, 0, 0)),
        GradingPreset("faded_vintage", "Faded Vintage",
                      "Saturacion -20, negros levantados, amarillo en medios tonos.",
                      temperature=5, contrast=-10, saturation=-20, shadow_lift=30, tint=(8, 6, -3)),
        GradingPreset("clean_neutral", "Clean Neutral",
                      "Sin cambios. Imagen tal cual.",
                      temperature=0, contrast=0, saturation=0, shadow_lift=0, tint=(0, 0, 0)),
    ]
}


def apply_color_grading(buffer: np.ndarray, preset: str, intensity: float) -> np.ndarray:
    """
    Apply a grading preset scaled by `intensity`.

    Order: temperature, contrast curve, shadow lift, saturation, midtone
    tint. Values are clamped to 0-255 after every step. "clean_neutral" and
    unknown presets return the buffer untouched.
    """
    grading = GRADING_PRESETS.get(preset)
    if grading is None or preset == "clean_neutral":
        return buffer

    t = clamp(intensity, 0.0, 1.0)
    rgb = _rgb(buffer)

    # 1. Temperature: warm = +R -B
    shift = grading.temperature * t
    rgb[..., 0] += shift
    rgb[..., 2] -= shift
    np.clip(rgb, 0, 255, out=rgb)

    # 2. Contrast around 128
    c = grading.contrast * t
    factor = (259 * (c + 255)) / (255 * (259 - c))
    rgb = np.clip(factor * (rgb - 128) + 128, 0, 255)

    # 3. Shadow lift
    if grading.shadow_lift > 0:
        lift = grading.shadow_lift * t
        rgb = np.clip(rgb + lift * (1 - rgb / 255), 0, 255)

    # 4. Saturation relative to the pixel average
    avg = rgb.mean(axis=-1, keepdims=True)
    sat = 1 + grading.saturation * t / 100
    rgb = np.clip(avg + (rgb - avg) * sat, 0, 255)

    # 5. Midtone tint, strongest at 50% luminance
    mask = np.sin(rgb.mean(axis=-1, keepdims=True) / 255 * math.pi)
    tint = np.array(grading.tint, dtype=np.float32)
    rgb = rgb + tint * t * mask

    buffer[..., :3] = to_channels(rgb)
    return buffer


# ============== Treatment presets ==============

@dataclass(frozen=True)
class TreatmentConfig:
    """Parameters for one treatment pass."""
    type: str
    intensity: float = 0.0
    color: Optional[str] = None
    secondary_color: Optional[str] = None
    blend_mode: str = "normal"
    preset: Optional[str] = None
    grain_size: str = "medium"
    size: float = 0.5


@dataclass(frozen=True)
class TreatmentPreset:
    id: str
    name: str
    description: str
    default_config: TreatmentConfig


TREATMENT_PRESETS: List[TreatmentPreset] = [
    TreatmentPreset("none", "Ninguno", "Sin tratamiento. Imagen original.",
                    TreatmentConfig(type="none")),
    TreatmentPreset("overlay", "Overlay de Color",
                    "Color solido de la paleta de marca con opacidad ajustable.",
                    TreatmentConfig(type="overlay", intensity=0.3, color="#000000")),
    TreatmentPreset("duotone", "Duotono",
                    "Convierte la imagen a dos tonos de la paleta de marca.",
                    TreatmentConfig(type="duotone", intensity=0.8,
                                    color="#1a1a2e", secondary_color="#e0e0e0")),
    TreatmentPreset("vignette", "Vineta Editorial",
                    "Oscurece los bordes progresivamente.",
                    TreatmentConfig(type="vignette", intensity=0.3, color="#000000")),
    TreatmentPreset("grain", "Grain Cinematografico",
                    "Textura de grano analogico.",
                    TreatmentConfig(type="grain", intensity=0.15, grain_size="fine")),
    TreatmentPreset("grading", "Color Grading",
                    "Temperatura, contraste, saturacion y curvas tonales con presets.",
                    TreatmentConfig(type="grading", intensity=0.7, preset="clean_neutral")),
]

TREATMENT_PRESETS_BY_ID: Dict[str, TreatmentPreset] = {p.id: p for p in TREATMENT_PRESETS}


def get_treatment_config(treatment_id: str, **overrides) -> Optional[TreatmentConfig]:
    """Default config for a treatment id, with optional field overrides."""
    preset = TREATMENT_PRESETS_BY_ID.get(treatment_id)
    if preset is None:
        return None
    config = preset.default_config
    return replace(config, **overrides) if overrides else config


def apply_treatment(
    buffer: np.ndarray,
    config: TreatmentConfig,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Dispatch one TreatmentConfig to its transform."""
    if config.type == "none":
        return buffer
    if config.type == "overlay":
        return apply_overlay(buffer, config.color or "#000000", config.intensity, config.blend_mode)
    if config.type == "duotone":
        return apply_duotone(
            buffer,
            config.color or "#1a1a2e",
            config.secondary_color or "#e0e0e0",
            config.intensity,
        )
    if config.type == "vignette":
        return apply_vignette(buffer, config.intensity, config.size, config.color or "#000000")
    if config.type == "grain":
        return apply_grain(buffer, config.intensity, config.grain_size, rng=rng)
    if config.type == "grading":
        return apply_color_grading(buffer, config.preset or "clean_neutral", config.intensity)
    raise ValueError(f"Unsupported treatment: {config.type}")


# Variation 3 rotates the brand treatment through this cycle
TREATMENT_CYCLE = {"none": "grain", "grain": "overlay_subtle", "overlay_subtle": "none"}


def advance_treatment(treatment: str) -> str:
    """Next treatment in the variation cycle; anything outside it resets to none."""
    return TREATMENT_CYCLE.get(treatment, "none")


def directive_treatment(name: str, palette=None) -> Optional[TreatmentConfig]:
    """
    Pixel pass for a named image-directive treatment.

    Overlay directives are painted by the renderer itself; "grain" and
    "duotone" map to their library presets (duotone picks up the brand
    background/text colors when a palette is given).
    """
    if name == "grain":
        return get_treatment_config("grain")
    if name == "duotone":
        if palette is not None:
            return get_treatment_config(
                "duotone", color=palette.background, secondary_color=palette.text_primary
            )
        return get_treatment_config("duotone")
    return None


def get_treatment_options() -> dict:
    """Treatments and grading presets for user selection."""
    return {
        "treatments": [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "default_intensity": p.default_config.intensity,
            }
            for p in TREATMENT_PRESETS
        ],
        "grading_presets": [
            {"id": g.id, "name": g.name, "description": g.description}
            for g in GRADING_PRESETS.values()
        ],
        "blend_modes": list(BLEND_MODES),
        "grain_sizes": list(GRAIN_STEPS),
    }
