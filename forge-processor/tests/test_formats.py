import pytest

from composer.formats import (
    FORMAT_PACKS,
    FORMATS,
    FORMATS_BY_ID,
    FormatSpec,
    SafeZones,
    get_format,
    get_format_options,
    get_formats_by_platform,
    get_pack,
    resolve_format_ids,
)
from composer.intentions import (
    INTENTION_IDS,
    get_intention,
    get_intention_options,
    get_recommended_treatments,
)


def test_catalog_has_unique_ids():
    assert len(FORMATS) == 26
    assert len(FORMATS_BY_ID) == len(FORMATS)


def test_stories_safe_zones():
    stories = get_format("ig_stories")
    assert stories.size == (1080, 1920)
    assert stories.safe_zones == SafeZones(top=250, bottom=250)
    assert stories.is_portrait
    assert not stories.is_landscape


def test_landscape_and_portrait_thresholds():
    assert get_format("li_banner").is_landscape  # 4:1
    assert get_format("gdn_leaderboard").is_landscape
    assert not get_format("li_post").is_landscape  # 1.91:1
    assert get_format("gdn_half_page").is_portrait
    assert not get_format("ig_feed_portrait").is_portrait  # 0.8


def test_export_names():
    fmt = get_format("tw_post")
    assert fmt.folder == "twitter-x"
    assert fmt.file_name == "twitter-post-1600x900.jpg"
    assert fmt.media_type == "image/jpeg"


def test_format_rejects_bad_dimensions():
    with pytest.raises(ValueError):
        FormatSpec(
            id="bad", name="Bad", platform="x", platform_label="X",
            width=0, height=100, aspect_ratio="0:1", file_format="jpg",
            compression=85, slug="bad",
        )


def test_format_rejects_oversized_safe_zones():
    with pytest.raises(ValueError):
        FormatSpec(
            id="bad", name="Bad", platform="x", platform_label="X",
            width=100, height=100, aspect_ratio="1:1", file_format="jpg",
            compression=85, slug="bad", safe_zones=SafeZones(top=60, bottom=0),
        )


def test_platform_filter():
    ids = [f.id for f in get_formats_by_platform("email")]
    assert ids == ["email_header", "email_banner"]


def test_packs_reference_known_formats():
    for pack in FORMAT_PACKS:
        assert all(fid in FORMATS_BY_ID for fid in pack.format_ids)
    assert len(get_pack("todo").format_ids) == len(FORMATS)
    assert get_pack("missing") is None


def test_resolve_format_ids_keeps_order_and_drops_unknown():
    formats = resolve_format_ids(["pin_square", "nope", "ig_feed_square"])
    assert [f.id for f in formats] == ["pin_square", "ig_feed_square"]


def test_resolve_format_ids_errors():
    with pytest.raises(ValueError, match="At least one format"):
        resolve_format_ids([])
    with pytest.raises(ValueError, match="No valid formats"):
        resolve_format_ids(["nope", "also_nope"])


def test_format_options_payload():
    options = get_format_options()
    assert len(options["formats"]) == 26
    assert options["default_format_ids"][0] == "ig_feed_square"
    stories = next(f for f in options["formats"] if f["id"] == "ig_stories")
    assert stories["safe_zones"] == {"top": 250, "bottom": 250}


def test_intention_table():
    assert INTENTION_IDS == [
        "convert", "awareness", "editorial", "campaign", "branding", "urgency", "social_proof",
    ]
    assert get_intention("urgency").rules.heading_size_range == (56, 88)
    assert get_intention("unknown") is None
    assert get_recommended_treatments("branding") == ("grain", "duotone")
    assert len(get_intention_options()) == 7
