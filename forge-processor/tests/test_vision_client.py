import json

import pytest

from composer.schemas import CopyInput
from providers.router import ProviderRouter
from vision_client import (
    ProviderNotConfiguredError,
    VisionAnalysisError,
    VisionAnalyzer,
    extract_json,
)
from conftest import ScriptedProvider, failed, ok


IMAGE_JSON = json.dumps({
    "subject_position": {"x": 0.62, "y": 0.41},
    "subject_bbox": {"x1": 0.4, "y1": 0.1, "x2": 0.85, "y2": 0.95},
    "clean_zones": ["top-left", "bottom-left"],
    "dominant_colors": ["#1A1A1A", "#F5E6D3"],
    "image_type": "lifestyle_portrait",
    "background_complexity": "low",
    "text_contrast_zones": {"top": "high", "center": "medium", "bottom": "high"},
    "recommended_treatment": "none",
    "subject_facing": "left",
})


async def no_sleep(seconds):
    no_sleep.calls.append(seconds)


@pytest.fixture(autouse=True)
def reset_sleep():
    no_sleep.calls = []


def analyzer_for(provider, **kwargs):
    return VisionAnalyzer(provider, sleep=no_sleep, **kwargs)


def test_extract_json_bare_fenced_and_embedded():
    assert extract_json('{"a": 1}') == {"a": 1}
    assert extract_json('```json\n{"a": 2}\n```') == {"a": 2}
    assert extract_json('Here you go: {"a": 3} hope it helps') == {"a": 3}


def test_extract_json_rejects_garbage():
    with pytest.raises(ValueError):
        extract_json("no json here")
    with pytest.raises(ValueError):
        extract_json("{not: valid}")


@pytest.mark.asyncio
async def test_analyze_image_parses_response(brand):
    provider = ScriptedProvider([ok(IMAGE_JSON)])
    analysis = await analyzer_for(provider).analyze_image(
        b"img", brand, "convert", CopyInput(heading="Sale Now", cta="Shop")
    )
    assert analysis.subject_position.x == 0.62
    assert analysis.clean_zones == ["top-left", "bottom-left"]

    call = provider.calls[0]
    assert call["images"] == [b"img"]
    assert "COMMUNICATION INTENTION: convert" in call["prompt"]
    assert '- Heading: "Sale Now"' in call["prompt"]
    assert "Subheading" not in call["prompt"]


@pytest.mark.asyncio
async def test_prompt_leaves_out_logo(brand):
    provider = ScriptedProvider([ok(IMAGE_JSON)])
    with_logo = brand.model_copy(update={"logo_url": "data:image/png;base64,SECRETLOGO"})
    await analyzer_for(provider).analyze_image(b"img", with_logo, "awareness", CopyInput())
    assert "SECRETLOGO" not in provider.calls[0]["prompt"]
    assert "(no copy provided)" in provider.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_retries_with_linear_backoff(brand):
    provider = ScriptedProvider([failed(), ok("not json"), ok(IMAGE_JSON)])
    analysis = await analyzer_for(provider, retry_delay=0.5).analyze_image(b"img", brand, "convert", CopyInput())
    assert analysis.background_complexity == "low"
    assert len(provider.calls) == 3
    assert no_sleep.calls == [0.5, 1.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(brand):
    provider = ScriptedProvider([failed("rate_limit: slow down")] * 3)
    with pytest.raises(VisionAnalysisError, match="rate_limit"):
        await analyzer_for(provider).analyze_image(b"img", brand, "convert", CopyInput())
    assert len(provider.calls) == 3
    assert len(no_sleep.calls) == 2


@pytest.mark.asyncio
async def test_schema_violations_are_retried(brand):
    bad = json.dumps({"subject_position": {"x": "left"}})
    provider = ScriptedProvider([ok(bad), ok(IMAGE_JSON)])
    analysis = await analyzer_for(provider).analyze_image(b"img", brand, "convert", CopyInput())
    assert analysis.subject_facing == "left"


@pytest.mark.asyncio
async def test_unconfigured_provider_raises(brand):
    provider = ScriptedProvider([], available=False)
    with pytest.raises(ProviderNotConfiguredError):
        await analyzer_for(provider).analyze_image(b"img", brand, "convert", CopyInput())
    assert provider.calls == []


@pytest.mark.asyncio
async def test_brand_analysis_clamps_confidence():
    payload = {
        "palette": {"background": "#0A0A0A", "text_primary": "#FFFFFF", "accent": "#FF4500"},
        "typography": {"heading_weight": "heavy", "uses_uppercase_headlines": True},
        "signature_elements": ["pill badges"],
        "confidence_score": 1.3,
    }
    provider = ScriptedProvider([ok(f"```json\n{json.dumps(payload)}\n```")])
    result = await analyzer_for(provider).analyze_brand_assets([b"a", b"b"], "Northwind")

    assert result.confidence_score == 1.0
    assert result.palette.accent == "#FF4500"
    assert result.typography.heading_weight == "heavy"
    assert result.composition.density == "balanced"
    assert 'Brand name: "Northwind"' in provider.calls[0]["prompt"]
    assert len(provider.calls[0]["images"]) == 2


# ============== Router ==============

@pytest.mark.asyncio
async def test_router_prefers_primary():
    primary = ScriptedProvider([ok("{}", "primary")], name="primary")
    fallback = ScriptedProvider([], name="fallback")
    router = ProviderRouter(primary, fallback)

    response = await router.complete_json("sys", "prompt", [])
    assert response.provider == "primary"
    assert fallback.calls == []


@pytest.mark.asyncio
async def test_router_falls_back_with_fallback_model():
    primary = ScriptedProvider([failed(provider="primary")], name="primary")
    fallback = ScriptedProvider([ok("{}", "fallback")], name="fallback")
    router = ProviderRouter(primary, fallback)

    response = await router.complete_json("sys", "prompt", [], model="gpt-4o")
    assert response.provider == "fallback"
    assert primary.calls[0]["model"] == "gpt-4o"
    assert fallback.calls[0]["model"] is None


@pytest.mark.asyncio
async def test_router_circuit_breaker():
    primary = ScriptedProvider([failed(provider="primary")] * 2, name="primary")
    fallback = ScriptedProvider([ok("{}", "fallback")] * 3, name="fallback")
    router = ProviderRouter(primary, fallback, failure_threshold=2)

    await router.complete_json("sys", "p", [])
    assert not router.primary_disabled
    await router.complete_json("sys", "p", [])
    assert router.primary_disabled
    assert router.get_active_provider() is fallback

    await router.complete_json("sys", "p", [])
    assert len(primary.calls) == 2
    assert len(fallback.calls) == 3

    router.reset_primary()
    assert router.get_active_provider() is primary


@pytest.mark.asyncio
async def test_router_success_resets_failure_count():
    primary = ScriptedProvider(
        [failed(provider="primary"), ok("{}", "primary"), failed(provider="primary")], name="primary"
    )
    fallback = ScriptedProvider([ok("{}", "fallback")] * 2, name="fallback")
    router = ProviderRouter(primary, fallback, failure_threshold=2)

    for _ in range(3):
        await router.complete_json("sys", "p", [])
    assert not router.primary_disabled


@pytest.mark.asyncio
async def test_router_without_fallback_returns_primary_error():
    primary = ScriptedProvider([failed("api_error: boom", "primary")], name="primary")
    router = ProviderRouter(primary)
    response = await router.complete_json("sys", "p", [])
    assert response.error == "api_error: boom"


@pytest.mark.asyncio
async def test_router_with_nothing_configured():
    router = ProviderRouter(ScriptedProvider([], available=False), ScriptedProvider([], available=False))
    assert not router.is_available()
    response = await router.complete_json("sys", "p", [])
    assert response.error == "all_providers_unavailable"
