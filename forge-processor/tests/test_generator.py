import asyncio

import pytest

from composer.generator import AssetGenerator, mark_edited, piece_id
from composer.renderer import PieceRenderer
from composer.schemas import BrandImageTreatment, GeneratedPiece
from conftest import FakeImageAnalyzer


class BrokenRenderer(PieceRenderer):
    def render(self, instruction, source, logo=None, treatments=None):
        raise RuntimeError("canvas exploded")


class RecordingRenderer(PieceRenderer):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scenes = []

    def render(self, instruction, source, logo=None, treatments=None):
        rendered = super().render(instruction, source, logo, treatments)
        self.scenes.append(rendered.scene)
        return rendered


@pytest.fixture
def generator(fake_analyzer, renderer):
    return AssetGenerator(fake_analyzer, renderer)


@pytest.mark.asyncio
async def test_compose_calls_analyzer_once(generator, fake_analyzer, brand, copy_input, source_image):
    result = await generator.compose(
        source_image, brand, "convert", copy_input, ["ec_thumbnail", "gdn_medium_rect"]
    )
    assert len(fake_analyzer.image_calls) == 1
    assert result.analysis == fake_analyzer.analysis
    assert [(i.format, i.variation_seed) for i in result.instructions] == [
        ("ec_thumbnail", 1), ("ec_thumbnail", 2), ("ec_thumbnail", 3),
        ("gdn_medium_rect", 1), ("gdn_medium_rect", 2), ("gdn_medium_rect", 3),
    ]


@pytest.mark.asyncio
async def test_compose_validates_formats_before_analysis(generator, fake_analyzer, brand, copy_input, source_image):
    with pytest.raises(ValueError, match="At least one format"):
        await generator.compose(source_image, brand, "convert", copy_input, [])
    with pytest.raises(ValueError, match="No valid formats"):
        await generator.compose(source_image, brand, "convert", copy_input, ["bogus"])
    assert fake_analyzer.image_calls == []


@pytest.mark.asyncio
async def test_generate_renders_previews_in_order(generator, brand, copy_input, source_image):
    progress = []
    result = await generator.generate(
        source_image, brand, "convert", copy_input, ["ec_thumbnail", "email_header"],
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert not result.cancelled
    assert [p.id for p in result.pieces] == [
        "ec_thumbnail-v1-1", "ec_thumbnail-v2-2", "ec_thumbnail-v3-3",
        "email_header-v1-4", "email_header-v2-5", "email_header-v3-6",
    ]
    assert progress == [(n, 6) for n in range(1, 7)]
    for piece in result.pieces:
        assert piece.preview_data_url.startswith("data:image/jpeg;base64,")
        assert piece.generation_mode == "compositor"
        assert not piece.edited
        assert piece.canvas_state is None
        assert piece.composition.format == piece.format_id


@pytest.mark.asyncio
async def test_generate_stops_when_cancelled(generator, brand, copy_input, source_image):
    cancel = asyncio.Event()

    def on_progress(done, total):
        if done == 2:
            cancel.set()

    result = await generator.generate(
        source_image, brand, "convert", copy_input, ["ec_thumbnail", "email_header"],
        cancel=cancel, on_progress=on_progress,
    )
    assert result.cancelled
    assert [p.id for p in result.pieces] == ["ec_thumbnail-v1-1", "ec_thumbnail-v2-2"]


@pytest.mark.asyncio
async def test_render_failure_keeps_piece_without_preview(fake_analyzer, fonts, brand, copy_input, source_image):
    generator = AssetGenerator(fake_analyzer, BrokenRenderer(fonts))
    result = await generator.generate(source_image, brand, "awareness", copy_input, ["ec_thumbnail"])
    assert len(result.pieces) == 3
    assert all(p.preview_data_url is None for p in result.pieces)
    assert all(p.composition is not None for p in result.pieces)


@pytest.mark.asyncio
async def test_analysis_errors_propagate(renderer, brand, copy_input, source_image):
    analyzer = FakeImageAnalyzer(error=RuntimeError("vision down"))
    generator = AssetGenerator(analyzer, renderer)
    with pytest.raises(RuntimeError, match="vision down"):
        await generator.generate(source_image, brand, "convert", copy_input, ["ec_thumbnail"])


@pytest.mark.asyncio
async def test_grain_directive_is_rendered(fake_analyzer, fonts, brand, copy_input, source_image):
    grainy = brand.model_copy(update={"image_treatment": BrandImageTreatment(preferred_treatment="grain")})
    renderer = RecordingRenderer(fonts)
    generator = AssetGenerator(fake_analyzer, renderer)
    result = await generator.generate(source_image, grainy, "awareness", copy_input, ["ec_thumbnail"])
    first = renderer.scenes[0]
    assert [obj.kind for obj in first.objects][:2] == ["image", "treatment"]
    assert result.pieces[0].canvas_state is None


def test_piece_id_and_mark_edited(brand):
    assert piece_id("ig_stories", 2, 5) == "ig_stories-v2-5"

    piece = GeneratedPiece(id="ig_stories-v2-5", format_id="ig_stories", variation=2)
    edited = mark_edited(piece, '{"width": 10, "height": 10}')
    assert edited.edited
    assert edited.canvas_state == '{"width": 10, "height": 10}'
    assert not piece.edited
