import io
from typing import List

import numpy as np
import pytest
from PIL import Image

from composer.fonts import FontRegistry
from composer.renderer import PieceRenderer
from composer.schemas import (
    BoundingBox,
    BrandAnalysis,
    BrandProfile,
    CopyInput,
    ImageAnalysis,
    Point,
)
from providers.base import LLMResponse, VisionProvider


def make_image_bytes(width=240, height=160, fmt="PNG") -> bytes:
    """Horizontal gradient with a bright square in the middle."""
    ramp = np.linspace(0, 255, width, dtype=np.uint8)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[..., 0] = ramp
    pixels[..., 1] = 80
    pixels[..., 2] = ramp[::-1]
    pixels[height // 3: 2 * height // 3, width // 3: 2 * width // 3] = 230
    buffer = io.BytesIO()
    Image.fromarray(pixels, "RGB").save(buffer, format=fmt)
    return buffer.getvalue()


def make_logo_bytes(size=64) -> bytes:
    logo = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    logo.paste((255, 255, 255, 255), (8, 8, size - 8, size - 8))
    buffer = io.BytesIO()
    logo.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeImageAnalyzer:
    """Stands in for VisionAnalyzer; records every call."""

    def __init__(self, analysis: ImageAnalysis = None, brand_analysis: BrandAnalysis = None, error=None):
        self.analysis = analysis or ImageAnalysis()
        self.brand_analysis = brand_analysis or BrandAnalysis(confidence_score=0.8)
        self.error = error
        self.image_calls = []
        self.brand_calls = []

    async def analyze_image(self, image, brand, intention, copy):
        self.image_calls.append((image, brand.brand_id, intention, copy))
        if self.error:
            raise self.error
        return self.analysis

    async def analyze_brand_assets(self, images, brand_name):
        self.brand_calls.append((len(images), brand_name))
        if self.error:
            raise self.error
        return self.brand_analysis


class ScriptedProvider(VisionProvider):
    """Returns queued responses in order."""

    def __init__(self, responses: List[LLMResponse], available=True, name="scripted"):
        self.responses = list(responses)
        self.available = available
        self._name = name
        self.calls = []

    @property
    def name(self):
        return self._name

    def is_available(self):
        return self.available

    async def complete_json(self, system, prompt, images, model=None, config=None):
        self.calls.append({"system": system, "prompt": prompt, "images": images, "model": model})
        return self.responses.pop(0)


def ok(text: str, provider="scripted") -> LLMResponse:
    return LLMResponse(text=text, model_used="test-model", provider=provider)


def failed(error="api_error: boom", provider="scripted") -> LLMResponse:
    return LLMResponse(text="", model_used="test-model", provider=provider, error=error)


@pytest.fixture
def brand():
    return BrandProfile(
        brand_id="brand-1",
        brand_name="Northwind",
        tagline="Made to move",
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-01T00:00:00+00:00",
        reference_assets_count=3,
        confidence_score=0.8,
    )


@pytest.fixture
def analysis():
    return ImageAnalysis(
        subject_position=Point(x=0.7, y=0.4),
        subject_bbox=BoundingBox(x1=0.5, y1=0.2, x2=0.9, y2=0.8),
        clean_zones=["top-left", "bottom-left"],
        background_complexity="low",
    )


@pytest.fixture
def copy_input():
    return CopyInput(heading="Summer Drop", subheading="New colors are here", cta="Shop now")


@pytest.fixture
def source_image():
    return make_image_bytes()


@pytest.fixture
def logo_image():
    return make_logo_bytes()


@pytest.fixture
def fonts():
    return FontRegistry()


@pytest.fixture
def renderer(fonts):
    return PieceRenderer(fonts, rng=np.random.default_rng(7))


@pytest.fixture
def fake_analyzer(analysis):
    return FakeImageAnalyzer(analysis=analysis)
