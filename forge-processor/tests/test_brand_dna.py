import pytest

from brand_dna import extract_brand_dna, generate_preview_piece, recalculate_brand_dna
from composer.schemas import (
    BrandAnalysis,
    BrandCopyTone,
    BrandImageTreatment,
    BrandPalette,
    BrandTypography,
)
from conftest import FakeImageAnalyzer


@pytest.fixture
def existing(brand):
    return brand.model_copy(update={
        "palette": BrandPalette(accent="#FF0000", overlay_color="#111111", overlay_opacity=0.2),
        "typography": BrandTypography(heading_weight="bold", headline_to_sub_ratio=2.0),
        "copy_tone": BrandCopyTone(avg_headline_words=5),
        "signature_elements": ["pill badges"],
        "reference_assets_count": 3,
        "confidence_score": 0.8,
    })


@pytest.fixture
def fresh():
    return BrandAnalysis(
        palette=BrandPalette(accent=None, overlay_opacity=0.5),
        typography=BrandTypography(heading_weight="heavy", headline_to_sub_ratio=3.0, uses_italic=True),
        image_treatment=BrandImageTreatment(uses_grain=True, color_grading_preset="warm_lifestyle"),
        copy_tone=BrandCopyTone(avg_headline_words=8),
        signature_elements=["pill badges", "film grain"],
        confidence_score=0.6,
    )


@pytest.mark.asyncio
async def test_extract_assigns_identity():
    analyzer = FakeImageAnalyzer(brand_analysis=BrandAnalysis(confidence_score=0.9))
    profile = await extract_brand_dna(analyzer, [b"a", b"b", b"c"], "Northwind", tagline="Go", logo="data:x")

    assert analyzer.brand_calls == [(3, "Northwind")]
    assert profile.brand_name == "Northwind"
    assert profile.tagline == "Go"
    assert profile.logo_url == "data:x"
    assert profile.reference_assets_count == 3
    assert profile.confidence_score == 0.9
    assert profile.created_at == profile.updated_at
    assert len(profile.brand_id) == 36


@pytest.mark.asyncio
async def test_extract_requires_assets():
    with pytest.raises(ValueError, match="At least 1 asset"):
        await extract_brand_dna(FakeImageAnalyzer(), [], "Northwind")


@pytest.mark.asyncio
async def test_extract_accepts_a_single_asset():
    profile = await extract_brand_dna(FakeImageAnalyzer(), [b"a"], "Solo")
    assert profile.reference_assets_count == 1


@pytest.mark.asyncio
async def test_recalculate_weights_by_asset_count(existing, fresh):
    merged = await recalculate_brand_dna(FakeImageAnalyzer(brand_analysis=fresh), existing, [b"x", b"y"])

    # 3 old assets outweigh 2 new ones
    assert merged.typography.heading_weight == "bold"
    assert merged.palette.overlay_opacity == 0.32
    assert merged.typography.headline_to_sub_ratio == 2.4
    assert merged.copy_tone.avg_headline_words == 6
    assert merged.confidence_score == 0.72
    assert merged.reference_assets_count == 5


@pytest.mark.asyncio
async def test_recalculate_keeps_old_values_the_new_analysis_lacks(existing, fresh):
    merged = await recalculate_brand_dna(FakeImageAnalyzer(brand_analysis=fresh), existing, [b"x"])
    assert merged.palette.accent == "#FF0000"
    assert merged.palette.overlay_color == "#111111"
    assert merged.image_treatment.color_grading_preset == "warm_lifestyle"
    assert merged.image_treatment.uses_grain
    assert merged.typography.uses_italic
    assert merged.signature_elements == ["pill badges", "film grain"]


@pytest.mark.asyncio
async def test_recalculate_follows_larger_new_batch(existing, fresh):
    merged = await recalculate_brand_dna(
        FakeImageAnalyzer(brand_analysis=fresh), existing, [b"x", b"y", b"z"]
    )
    assert merged.typography.heading_weight == "heavy"
    assert merged.brand_id == existing.brand_id
    assert merged.created_at == existing.created_at
    assert merged.updated_at != existing.updated_at


@pytest.mark.asyncio
async def test_recalculate_requires_assets(existing):
    with pytest.raises(ValueError):
        await recalculate_brand_dna(FakeImageAnalyzer(), existing, [])


def test_preview_piece(brand):
    shouty = brand.model_copy(update={
        "typography": BrandTypography(uses_uppercase_headlines=True, preferred_font_style="display"),
        "copy_tone": BrandCopyTone(grammatical_person="2nd_person"),
        "signature_elements": ["diagonal crops"],
    })
    preview = generate_preview_piece(shouty)
    assert preview["heading"] == "YOUR BEST LOOK YET"
    assert preview["subheading"] == "Discover what suits you"
    assert preview["typography"]["font_style"] == "display"
    assert preview["palette"]["background"] == "#000000"
    assert preview["treatment"] == "none"
    assert preview["signature_elements"] == ["diagonal crops"]
