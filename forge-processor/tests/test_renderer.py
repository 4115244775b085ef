import io

import numpy as np
import pytest
from PIL import Image

from composer.fonts import FontRegistry
from composer.layout import LayoutEngine
from composer.formats import get_format
from composer.renderer import (
    PieceRenderer,
    Scene,
    SceneObject,
    apply_case,
    decode_data_url,
    load_image,
    restore_scene,
    serialize_scene,
    to_data_url,
)
from composer.schemas import (
    Canvas,
    CompositionElement,
    CompositionInstruction,
    ImageDirective,
    Point,
)
from composer.treatments import get_treatment_config
from conftest import make_logo_bytes


def solid_png(color=(255, 0, 0), size=(60, 50)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def instruction(treatment="none", elements=None, format_id="gdn_medium_rect", width=300, height=250):
    return CompositionInstruction(
        format=format_id,
        canvas=Canvas(width=width, height=height),
        image=ImageDirective(treatment=treatment),
        elements=elements or [],
        variation_seed=1,
    )


def heading(content="Summer Drop", **style):
    return CompositionElement(
        type="text", role="heading", content=content, position=Point(x=0.1, y=0.1),
        font_family="Inter", font_weight=700, font_size_px=24, **style,
    )


def test_scene_layers_in_draw_order(renderer):
    logo = CompositionElement(type="logo", position=Point(x=0.08, y=0.06), scale=0.1)
    scene = renderer.build_scene(
        instruction("overlay_medium", [heading(), logo]),
        treatments=[get_treatment_config("grain")],
    )
    assert [obj.kind for obj in scene.objects] == ["image", "treatment", "overlay", "text", "logo"]
    assert scene.objects[2].opacity == 0.4
    assert scene.objects[3].left == pytest.approx(30)
    assert scene.objects[4].width == pytest.approx(30)
    assert scene.font_families == ["Inter"]


def test_text_transform_applied_in_scene(renderer):
    scene = renderer.build_scene(instruction(elements=[heading("quiet", text_transform="uppercase")]))
    assert scene.objects[1].text == "QUIET"
    assert apply_case("Mixed", "lowercase") == "mixed"
    assert apply_case("Mixed", None) == "Mixed"


def test_render_draws_source_at_format_size(renderer):
    rendered = renderer.render(instruction(), solid_png())
    try:
        assert rendered.image.size == (300, 250)
        assert rendered.image.getpixel((150, 125))[:3] == (255, 0, 0)
        assert rendered.warnings == []
    finally:
        rendered.dispose()


def test_overlay_darkens_background(renderer):
    rendered = renderer.render(instruction("overlay_subtle"), solid_png())
    assert rendered.image.getpixel((150, 125))[:3] == (204, 0, 0)
    rendered.dispose()


def test_extra_treatments_run_before_elements(renderer):
    duotone = get_treatment_config("duotone", color="#000000", secondary_color="#FFFFFF", intensity=1.0)
    rendered = renderer.render(instruction(), solid_png((255, 255, 255)), treatments=[duotone])
    assert rendered.image.getpixel((10, 10))[:3] == (255, 255, 255)
    rendered.dispose()


def test_unreadable_source_renders_on_black(renderer):
    rendered = renderer.render(instruction(elements=[heading()]), b"not an image")
    assert rendered.warnings == ["source_image_unavailable"]
    assert rendered.image.getpixel((299, 249))[:3] == (0, 0, 0)
    rendered.dispose()


def test_missing_source_is_not_a_warning(renderer):
    rendered = renderer.render(instruction(), None)
    assert rendered.warnings == []
    rendered.dispose()


def test_logo_is_composited(renderer):
    logo = CompositionElement(type="logo", position=Point(x=0.1, y=0.1), scale=0.2)
    rendered = renderer.render(instruction(elements=[logo]), solid_png(), logo=make_logo_bytes())
    assert rendered.image.getpixel((60, 55))[:3] == (255, 255, 255)
    rendered.dispose()


def test_bad_logo_is_skipped_with_warning(renderer):
    logo = CompositionElement(type="logo", position=Point(x=0.1, y=0.1), scale=0.2)
    rendered = renderer.render(instruction(elements=[logo]), solid_png(), logo="data:image/png;base64,AAAA")
    assert rendered.warnings == ["logo_unavailable"]
    assert rendered.image.getpixel((60, 55))[:3] == (255, 0, 0)
    rendered.dispose()


def test_pill_and_badge_render(renderer):
    pill = CompositionElement(
        type="pill", role="subheading", content="New colors", position=Point(x=0.1, y=0.5),
        font_size_px=14, background_color="#FFFFFF", background_opacity=1.0, padding=10,
    )
    badge = CompositionElement(type="rating_badge", content="4.8", position=Point(x=0.5, y=0.2))
    rendered = renderer.render(instruction(elements=[pill, badge]), solid_png())
    # inside the padded box, clear of the rounded corner
    assert rendered.image.getpixel((45, 135))[:3] == (255, 255, 255)
    assert rendered.scene.objects[2].text == "★ 4.8"
    rendered.dispose()


@pytest.mark.parametrize("kind", ["text", "pill"])
def test_translucent_text_blends_with_canvas(renderer, kind):
    scene = Scene(width=160, height=80, background_color="#FFFFFF", objects=[
        SceneObject(
            kind=kind, left=10, top=10, text="HHHH", font_size=40, fill="rgba(0, 0, 0, 0.5)",
            text_align="left", background_color="#FFFFFF", padding=4,
        ),
    ])
    rendered = renderer.render_scene(scene, None)
    pixels = np.array(rendered.image)

    assert pixels[..., 3].min() == 255
    darkest = int(pixels[..., 0].min())
    assert 110 <= darkest <= 145


def test_scene_round_trip_renders_identically(renderer, brand, analysis, copy_input, source_image):
    engine = LayoutEngine()
    resolved = engine.resolve(get_format("ec_thumbnail"), analysis, brand, "convert", copy_input, 1)
    first = renderer.render(resolved, source_image)
    restored = restore_scene(serialize_scene(first.scene))
    assert restored == first.scene

    second = renderer.render_scene(restored, source_image)
    assert np.array_equal(np.array(first.image), np.array(second.image))
    first.dispose()
    second.dispose()


def test_encode_png_and_jpeg(renderer):
    rendered = renderer.render(instruction(format_id="email_header", width=600, height=200), solid_png())
    png = renderer.encode(rendered, "png")
    jpeg = renderer.encode(rendered, "jpg", 85)
    with Image.open(io.BytesIO(png)) as img:
        assert img.format == "PNG"
        assert img.size == (600, 200)
    with Image.open(io.BytesIO(jpeg)) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"
    rendered.dispose()


def test_preview_downscales(renderer):
    rendered = renderer.render(instruction(format_id="email_header", width=600, height=200), solid_png())
    preview = renderer.to_preview(rendered, max_dimension=300)
    with Image.open(io.BytesIO(preview)) as img:
        assert img.size == (300, 100)
    rendered.dispose()


def test_disposed_canvas_cannot_be_encoded(renderer):
    rendered = renderer.render(instruction(), solid_png())
    rendered.dispose()
    rendered.dispose()
    with pytest.raises(ValueError):
        renderer.encode(rendered)


def test_data_url_helpers():
    url = to_data_url(b"abc", "image/png")
    assert url == "data:image/png;base64,YWJj"
    assert decode_data_url(url) == b"abc"
    assert decode_data_url("YWJj") == b"abc"
    assert load_image(None) is None
    assert load_image(b"garbage") is None


def test_font_registry_indexes_family_files(tmp_path):
    (tmp_path / "Inter-Bold.ttf").write_bytes(b"")
    (tmp_path / "PlayfairDisplay-Italic.otf").write_bytes(b"")
    (tmp_path / "notes.txt").write_text("skip")

    fonts = FontRegistry(tmp_path)
    assert [p.name for p in fonts.family_files("Inter")] == ["Inter-Bold.ttf"]
    assert [p.name for p in fonts.family_files("Playfair Display")] == ["PlayfairDisplay-Italic.otf"]

    fonts.ensure_loaded(["Inter", "DM Sans"])
    assert fonts.loaded_families == {"Inter", "DM Sans"}


def test_font_registry_falls_back_and_caches():
    fonts = FontRegistry()
    font = fonts.get_font("Nonexistent", 700, 20)
    assert fonts.get_font("Nonexistent", 700, 20) is font
