"""
PieceRenderer - Pillow-based rasterizer for composition instructions.

Handles:
1. Building an editable scene (serializable layer list) from an instruction
2. Drawing the source image with cover cropping
3. Overlay and pixel treatment passes over the background
4. Text, pill, rating badge and logo layers
5. Encoding previews and export-quality files

Scenes are plain JSON, so a hand-edited piece can be saved and re-rendered
later without running the layout engine again.
"""

import base64
import binascii
import io
import logging
from dataclasses import asdict, dataclass, field
from typing import List, Literal, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw
from pydantic import BaseModel, Field

from .fonts import FontRegistry
from .pixelmath import color_alpha, parse_color
from .schemas import CompositionElement, CompositionInstruction, CropRect
from .treatments import TreatmentConfig, apply_overlay, apply_treatment

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, Image.Image, None]

OVERLAY_OPACITY = {"overlay_subtle": 0.2, "overlay_medium": 0.4}
DEFAULT_MAX_WIDTH_RATIO = 0.8
LINE_HEIGHT = 1.16
PREVIEW_QUALITY = 70


# ============== Scene model ==============

class SceneObject(BaseModel):
    """One drawable layer. Pixel units, origin top-left of the canvas."""
    kind: Literal["image", "treatment", "overlay", "text", "pill", "rating_badge", "logo"]
    left: float = 0.0
    top: float = 0.0
    width: Optional[float] = None
    text: Optional[str] = None
    font_family: Optional[str] = None
    font_weight: Optional[int] = None
    font_size: Optional[int] = None
    font_style: Optional[str] = None
    fill: Optional[str] = None
    text_align: Optional[str] = None
    background_color: Optional[str] = None
    background_opacity: Optional[float] = None
    border_radius: Optional[int] = None
    padding: Optional[int] = None
    opacity: Optional[float] = None
    crop: Optional[CropRect] = None
    treatment: Optional[dict] = None


class Scene(BaseModel):
    """Serializable, editable render state for one piece."""
    version: int = 1
    format: Optional[str] = None
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    background_color: str = "#000000"
    objects: List[SceneObject] = Field(default_factory=list)

    @property
    def font_families(self) -> List[str]:
        seen = []
        for obj in self.objects:
            if obj.font_family and obj.font_family not in seen:
                seen.append(obj.font_family)
        return seen


def serialize_scene(scene: Scene) -> str:
    return scene.model_dump_json(exclude_none=True)


def restore_scene(state: str) -> Scene:
    return Scene.model_validate_json(state)


@dataclass
class RenderedCanvas:
    """
    Raster output of one render call.

    The image belongs to the caller that asked for the render; call
    dispose() once the encoded output has been extracted.
    """
    image: Optional[Image.Image]
    scene: Scene
    warnings: List[str] = field(default_factory=list)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.scene.width, self.scene.height)

    def dispose(self):
        if self.image is not None:
            self.image.close()
            self.image = None


# ============== Helpers ==============

def decode_data_url(data: str) -> bytes:
    """Bytes of a data URL ("data:image/png;base64,...") or bare base64 string."""
    payload = data.split(",", 1)[1] if data.startswith("data:") else data
    return base64.b64decode(payload)


def to_data_url(data: bytes, media_type: str = "image/jpeg") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def load_image(source: ImageSource) -> Optional[Image.Image]:
    """Open an image as RGBA; returns None if it can't be decoded."""
    if source is None:
        return None
    try:
        if isinstance(source, Image.Image):
            return source.convert("RGBA")
        if isinstance(source, str):
            source = decode_data_url(source)
        with Image.open(io.BytesIO(source)) as img:
            return img.convert("RGBA")
    except (OSError, ValueError, binascii.Error) as e:
        logger.warning(f"Failed to load image: {e}")
        return None


def apply_case(text: str, transform: Optional[str]) -> str:
    if transform == "uppercase":
        return text.upper()
    if transform == "lowercase":
        return text.lower()
    return text


def _rgba(color: Optional[str], opacity: float = 1.0, default=(255, 255, 255)) -> Tuple[int, int, int, int]:
    r, g, b = parse_color(color, default)
    alpha = color_alpha(color) * opacity
    return (r, g, b, int(round(max(0.0, min(alpha, 1.0)) * 255)))


def _anchor_left(x: float, width: float, alignment: Optional[str]) -> float:
    if alignment == "center":
        return x - width / 2
    if alignment == "right":
        return x - width
    return x


class PieceRenderer:
    """
    Renders composition instructions using Pillow.

    Fonts come from the injected FontRegistry; `rng` seeds grain passes so
    tests can get reproducible pixels.
    """

    def __init__(self, fonts: FontRegistry, rng: Optional[np.random.Generator] = None):
        self.fonts = fonts
        self.rng = rng

    # ---------- scene building ----------

    def build_scene(
        self,
        instruction: CompositionInstruction,
        treatments: Optional[List[TreatmentConfig]] = None,
    ) -> Scene:
        """
        Turn an instruction into an editable scene.

        Args:
            instruction: Resolved composition
            treatments: Extra pixel passes applied to the background
                before overlays and elements are drawn

        Returns:
            Scene with layers in draw order
        """
        width, height = instruction.canvas.width, instruction.canvas.height
        objects = [SceneObject(kind="image", width=width, crop=instruction.image.crop)]

        for config in treatments or []:
            objects.append(SceneObject(kind="treatment", treatment=asdict(config)))

        opacity = OVERLAY_OPACITY.get(instruction.image.treatment)
        if opacity is not None:
            objects.append(SceneObject(kind="overlay", fill="#000000", opacity=opacity))

        for el in instruction.elements:
            objects.append(self._element_object(el, width, height))

        return Scene(format=instruction.format, width=width, height=height, objects=objects)

    def _element_object(self, el: CompositionElement, width: int, height: int) -> SceneObject:
        left = el.position.x * width
        top = el.position.y * height

        if el.type == "logo":
            return SceneObject(kind="logo", left=left, top=top, width=(el.scale or 0.12) * width)

        if el.type == "rating_badge":
            return SceneObject(
                kind="rating_badge",
                left=left,
                top=top,
                text=f"★ {el.content or '4.9'}",
                font_family=el.font_family,
                font_weight=el.font_weight or 700,
                font_size=el.font_size_px or 28,
                fill=el.color or "#FFFFFF",
                background_color=el.background_color or "rgba(0,0,0,0.6)",
                background_opacity=0.9 if el.background_opacity is None else el.background_opacity,
                border_radius=el.border_radius or 12,
                padding=el.padding or 16,
            )

        if el.type == "pill":
            return SceneObject(
                kind="pill",
                left=left,
                top=top,
                text=el.content or "",
                font_family=el.font_family,
                font_weight=el.font_weight or 400,
                font_size=el.font_size_px or 14,
                font_style=el.font_style,
                fill=el.color or "#FFFFFF",
                text_align=el.alignment or "left",
                background_color=el.background_color or "rgba(255,255,255,0.18)",
                background_opacity=0.85 if el.background_opacity is None else el.background_opacity,
                border_radius=el.border_radius or 16,
                padding=el.padding or 12,
            )

        return SceneObject(
            kind="text",
            left=left,
            top=top,
            width=(el.max_width_ratio or DEFAULT_MAX_WIDTH_RATIO) * width,
            text=apply_case(el.content or "", el.text_transform),
            font_family=el.font_family,
            font_weight=el.font_weight or 400,
            font_size=el.font_size_px or 32,
            font_style=el.font_style or "normal",
            fill=el.color or "#FFFFFF",
            text_align=el.alignment or "left",
        )

    # ---------- rendering ----------

    def render(
        self,
        instruction: CompositionInstruction,
        source: ImageSource,
        logo: ImageSource = None,
        treatments: Optional[List[TreatmentConfig]] = None,
    ) -> RenderedCanvas:
        """Render an instruction onto a new canvas sized to its format."""
        scene = self.build_scene(instruction, treatments)
        return self.render_scene(scene, source, logo)

    def render_scene(self, scene: Scene, source: ImageSource, logo: ImageSource = None) -> RenderedCanvas:
        """
        Paint a scene. Image or logo load failures never abort the render:
        the background stays black and logo layers draw nothing.
        """
        # Fonts must be resolved before any text is measured
        self.fonts.ensure_loaded(scene.font_families)

        canvas = Image.new("RGBA", (scene.width, scene.height), _rgba(scene.background_color, default=(0, 0, 0)))
        result = RenderedCanvas(image=canvas, scene=scene)

        source_img = load_image(source)
        if source is not None and source_img is None:
            result.warnings.append("source_image_unavailable")

        logo_img = None
        if any(obj.kind == "logo" for obj in scene.objects):
            logo_img = load_image(logo)
            if logo is not None and logo_img is None:
                result.warnings.append("logo_unavailable")

        for obj in scene.objects:
            if obj.kind == "image":
                if source_img is not None:
                    self._draw_background(canvas, source_img, obj.crop or CropRect())
            elif obj.kind == "treatment":
                canvas = self._apply_pass(canvas, TreatmentConfig(**obj.treatment))
            elif obj.kind == "overlay":
                canvas = self._apply_pass(
                    canvas, TreatmentConfig(type="overlay", intensity=obj.opacity or 0.0, color=obj.fill)
                )
            elif obj.kind == "text":
                canvas = self._draw_text(canvas, obj)
            elif obj.kind in ("pill", "rating_badge"):
                canvas = self._draw_box(canvas, obj)
            elif obj.kind == "logo" and logo_img is not None:
                self._draw_logo(canvas, logo_img, obj)

        result.image = canvas
        if source_img is not None:
            source_img.close()
        if logo_img is not None:
            logo_img.close()
        return result

    def _draw_background(self, canvas: Image.Image, img: Image.Image, crop: CropRect):
        """Cover-fit the crop rectangle onto the canvas."""
        width, height = canvas.size
        crop_x = crop.x * img.width
        crop_y = crop.y * img.height
        crop_w = crop.width * img.width
        crop_h = crop.height * img.height

        scale = max(width / crop_w, height / crop_h)
        # The visible part of the source once scaled and shifted by -crop*scale
        box = (crop_x, crop_y, crop_x + width / scale, crop_y + height / scale)
        resized = img.resize((width, height), Image.Resampling.LANCZOS, box=box)
        canvas.alpha_composite(resized)
        resized.close()

    def _apply_pass(self, canvas: Image.Image, config: TreatmentConfig) -> Image.Image:
        if config.type == "overlay":
            buffer = apply_overlay(np.array(canvas), config.color or "#000000", config.intensity, config.blend_mode)
        else:
            buffer = apply_treatment(np.array(canvas), config, rng=self.rng)
        return Image.fromarray(buffer, "RGBA")

    def _wrap(self, draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> List[str]:
        """Greedy word wrap; a single word wider than the box keeps its own line."""
        lines = []
        for paragraph in text.split("\n"):
            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if current and draw.textlength(candidate, font=font) > max_width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    def _draw_text(self, canvas: Image.Image, obj: SceneObject) -> Image.Image:
        """Text goes on its own layer so translucent fills blend with the canvas."""
        if not obj.text:
            return canvas
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        size = obj.font_size or 32
        font = self.fonts.get_font(obj.font_family, obj.font_weight, size, obj.font_style)
        max_width = obj.width or canvas.width * DEFAULT_MAX_WIDTH_RATIO
        fill = _rgba(obj.fill)

        y = obj.top
        for line in self._wrap(draw, obj.text, font, max_width):
            line_width = draw.textlength(line, font=font)
            x = _anchor_left(obj.left, line_width, obj.text_align)
            draw.text((x, y), line, font=font, fill=fill)
            y += size * LINE_HEIGHT
        return self._composite(canvas, layer)

    def _draw_box(self, canvas: Image.Image, obj: SceneObject) -> Image.Image:
        """Pill or rating badge: padded rounded rectangle with centred text."""
        size = obj.font_size or 14
        padding = obj.padding or 0
        font = self.fonts.get_font(obj.font_family, obj.font_weight, size, obj.font_style)

        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        text = obj.text or ""
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        box_w = (right - left) + padding * 2
        box_h = (bottom - top) + padding * 2

        if obj.kind == "rating_badge":
            x0, y0 = obj.left - box_w / 2, obj.top - box_h / 2
        else:
            x0, y0 = _anchor_left(obj.left, box_w, obj.text_align), obj.top

        opacity = 1.0 if obj.background_opacity is None else obj.background_opacity
        draw.rounded_rectangle(
            (x0, y0, x0 + box_w, y0 + box_h),
            radius=obj.border_radius or 0,
            fill=_rgba(obj.background_color, opacity),
        )
        canvas = self._composite(canvas, layer)

        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).text(
            (x0 + padding - left, y0 + padding - top), text, font=font, fill=_rgba(obj.fill)
        )
        return self._composite(canvas, layer)

    @staticmethod
    def _composite(canvas: Image.Image, layer: Image.Image) -> Image.Image:
        composed = Image.alpha_composite(canvas, layer)
        layer.close()
        return composed

    def _draw_logo(self, canvas: Image.Image, logo: Image.Image, obj: SceneObject):
        target_w = max(1, int(round(obj.width or canvas.width * 0.12)))
        target_h = max(1, int(round(logo.height * target_w / logo.width)))
        scaled = logo.resize((target_w, target_h), Image.Resampling.LANCZOS)
        canvas.alpha_composite(scaled, dest=(int(round(obj.left)), int(round(obj.top))))
        scaled.close()

    # ---------- encoding ----------

    def encode(self, rendered: RenderedCanvas, file_format: str = "jpg", quality: int = 85) -> bytes:
        """Encode a rendered canvas; JPEG output is flattened onto black."""
        if rendered.image is None:
            raise ValueError("Canvas has already been disposed")

        buffer = io.BytesIO()
        if file_format == "png":
            rendered.image.save(buffer, format="PNG", optimize=True)
        else:
            flat = Image.new("RGB", rendered.image.size, (0, 0, 0))
            flat.paste(rendered.image, mask=rendered.image.split()[3])
            flat.save(buffer, format="JPEG", quality=int(quality))
            flat.close()
        return buffer.getvalue()

    def to_preview(
        self,
        rendered: RenderedCanvas,
        quality: int = PREVIEW_QUALITY,
        max_dimension: Optional[int] = None,
    ) -> bytes:
        """Small JPEG for quick feedback."""
        if rendered.image is None:
            raise ValueError("Canvas has already been disposed")
        if not max_dimension or max(rendered.image.size) <= max_dimension:
            return self.encode(rendered, "jpg", quality)

        thumb = rendered.image.copy()
        thumb.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        preview = RenderedCanvas(image=thumb, scene=rendered.scene)
        try:
            return self.encode(preview, "jpg", quality)
        finally:
            preview.dispose()
