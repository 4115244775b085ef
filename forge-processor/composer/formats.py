"""
Output format catalog for asset generation.

Every production format FORGE can render, grouped by platform:
- Instagram, TikTok, LinkedIn, Twitter/X
- Meta Ads, Google Display Network
- E-commerce, Email, Pinterest

Plus the predefined format packs and the per-platform export folders.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class SafeZones:
    """Top/bottom pixel insets covered by platform UI chrome."""
    top: int
    bottom: int


@dataclass(frozen=True)
class FormatSpec:
    """Specification for one output format."""
    id: str
    name: str
    platform: str
    platform_label: str
    width: int
    height: int
    aspect_ratio: str
    file_format: str  # "jpg" or "png"
    compression: int  # 0-100
    slug: str
    safe_zones: Optional[SafeZones] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Format {self.id} must have positive dimensions")
        if self.safe_zones and (
            self.safe_zones.top >= self.height / 2 or self.safe_zones.bottom >= self.height / 2
        ):
            raise ValueError(f"Format {self.id} safe zones must be below half the height")

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def is_landscape(self) -> bool:
        return self.aspect > 2

    @property
    def is_portrait(self) -> bool:
        return self.aspect < 0.7

    @property
    def folder(self) -> str:
        return PLATFORM_FOLDER_MAP.get(self.platform, self.platform)

    @property
    def file_name(self) -> str:
        return f"{self.slug}-{self.width}x{self.height}.{self.file_format}"

    @property
    def media_type(self) -> str:
        return "image/png" if self.file_format == "png" else "image/jpeg"


@dataclass(frozen=True)
class FormatPack:
    """Predefined bundle of formats."""
    id: str
    name: str
    format_ids: Tuple[str, ...]


def _fmt(id, name, platform, label, width, height, ratio, compression, slug, notes, safe_zones=None):
    return FormatSpec(
        id=id, name=name, platform=platform, platform_label=label,
        width=width, height=height, aspect_ratio=ratio,
        file_format="jpg", compression=compression, slug=slug,
        safe_zones=safe_zones, notes=notes,
    )


FORMATS: List[FormatSpec] = [
    # Instagram
    _fmt("ig_feed_square", "Instagram Feed Cuadrado", "instagram", "Instagram",
         1080, 1080, "1:1", 85, "instagram-feed-square", "Post estandar"),
    _fmt("ig_feed_portrait", "Instagram Feed Portrait", "instagram", "Instagram",
         1080, 1350, "4:5", 85, "instagram-feed-portrait", "Maximo espacio en feed"),
    _fmt("ig_stories", "Instagram Stories", "instagram", "Instagram",
         1080, 1920, "9:16", 85, "instagram-stories", "Safe zone: 250px top y bottom",
         SafeZones(top=250, bottom=250)),
    _fmt("ig_reels_cover", "Instagram Reels Cover", "instagram", "Instagram",
         1080, 1920, "9:16", 85, "instagram-reels-cover", "Igual que Stories"),

    # TikTok
    _fmt("tt_video_cover", "TikTok Video Cover", "tiktok", "TikTok",
         1080, 1920, "9:16", 85, "tiktok-video-cover", "Safe zone: 200px top y bottom",
         SafeZones(top=200, bottom=200)),
    _fmt("tt_profile_banner", "TikTok Profile Banner", "tiktok", "TikTok",
         1500, 500, "3:1", 85, "tiktok-profile-banner", "Fondo de perfil"),

    # LinkedIn
    _fmt("li_post", "LinkedIn Post", "linkedin", "LinkedIn",
         1200, 628, "1.91:1", 90, "linkedin-post", "Imagen adjunta a post"),
    _fmt("li_article_cover", "LinkedIn Articulo Cover", "linkedin", "LinkedIn",
         1920, 1080, "16:9", 85, "linkedin-article-cover", "Portada de articulo"),
    _fmt("li_banner", "LinkedIn Banner de Perfil", "linkedin", "LinkedIn",
         1584, 396, "4:1", 90, "linkedin-banner", "Empresa o persona"),

    # Twitter / X
    _fmt("tw_post", "Twitter/X Post", "twitter", "Twitter / X",
         1600, 900, "16:9", 85, "twitter-post", "Imagen en tweet"),
    _fmt("tw_header", "Twitter/X Header", "twitter", "Twitter / X",
         1500, 500, "3:1", 85, "twitter-header", "Banner del perfil"),

    # Meta Ads
    _fmt("meta_feed_square", "Meta Ad Feed Cuadrado", "meta_ads", "Meta Ads",
         1080, 1080, "1:1", 90, "meta-feed-square", "Texto maximo 20% de area"),
    _fmt("meta_feed_landscape", "Meta Ad Feed Landscape", "meta_ads", "Meta Ads",
         1200, 628, "1.91:1", 90, "meta-feed-landscape", "Formato mas comun"),
    _fmt("meta_story_ad", "Meta Story Ad", "meta_ads", "Meta Ads",
         1080, 1920, "9:16", 85, "meta-story-ad", "Safe zone igual que IG Stories",
         SafeZones(top=250, bottom=250)),
    _fmt("meta_carousel_card", "Meta Carrusel Card", "meta_ads", "Meta Ads",
         1080, 1080, "1:1", 90, "meta-carousel-card", "Mismo formato que feed cuadrado"),

    # Google Display Network
    _fmt("gdn_leaderboard", "Leaderboard", "google_display", "Google Display",
         728, 90, "8.09:1", 90, "gdn-leaderboard", "El mas usado en web desktop"),
    _fmt("gdn_medium_rect", "Medium Rectangle", "google_display", "Google Display",
         300, 250, "1.2:1", 90, "gdn-medium-rectangle", "El formato mas comun de GDN"),
    _fmt("gdn_half_page", "Half Page", "google_display", "Google Display",
         300, 600, "1:2", 90, "gdn-half-page", "Alto impacto"),
    _fmt("gdn_large_rect", "Large Rectangle", "google_display", "Google Display",
         336, 280, "1.2:1", 90, "gdn-large-rectangle", "Alternativa al Medium"),
    _fmt("gdn_billboard", "Billboard", "google_display", "Google Display",
         970, 250, "3.88:1", 90, "gdn-billboard", "Premium inventory"),

    # E-commerce
    _fmt("ec_product_hero", "Ficha de Producto Hero", "ecommerce", "E-commerce",
         800, 800, "1:1", 95, "ecommerce-product-hero", "Alta calidad para zoom"),
    _fmt("ec_collection_banner", "Banner de Coleccion", "ecommerce", "E-commerce",
         1920, 600, "3.2:1", 85, "ecommerce-collection-banner", "Header de pagina de categoria"),
    _fmt("ec_thumbnail", "Thumbnail de Producto", "ecommerce", "E-commerce",
         400, 400, "1:1", 85, "ecommerce-thumbnail", "Listado de productos"),

    # Email marketing
    _fmt("email_header", "Header de Email", "email", "Email",
         600, 200, "3:1", 85, "email-header", "Cabecera de newsletter"),
    _fmt("email_banner", "Banner de Email", "email", "Email",
         600, 400, "3:2", 85, "email-banner", "Imagen principal de email"),

    # Pinterest
    _fmt("pin_standard", "Pin Estandar", "pinterest", "Pinterest",
         1000, 1500, "2:3", 85, "pin-standard", "Proporcion optima para feed"),
    _fmt("pin_square", "Pin Cuadrado", "pinterest", "Pinterest",
         1000, 1000, "1:1", 85, "pin-square", "Alternativa cuadrada"),
]

FORMATS_BY_ID: Dict[str, FormatSpec] = {f.id: f for f in FORMATS}

FORMAT_PACKS: List[FormatPack] = [
    FormatPack("instagram_completo", "Instagram Completo",
               ("ig_feed_square", "ig_feed_portrait", "ig_stories", "ig_reels_cover")),
    FormatPack("pack_ads", "Pack Ads",
               ("meta_feed_square", "meta_story_ad", "gdn_medium_rect", "gdn_leaderboard")),
    FormatPack("pack_redes", "Pack Redes",
               ("ig_feed_square", "ig_stories", "li_post", "tw_post")),
    FormatPack("ecommerce", "E-commerce",
               ("ec_product_hero", "ec_collection_banner", "ec_thumbnail")),
    FormatPack("todo", "Todo", tuple(f.id for f in FORMATS)),
]

# Priority formats shipped first
V1_FORMAT_IDS: Tuple[str, ...] = (
    "ig_feed_square",
    "ig_feed_portrait",
    "ig_stories",
    "li_post",
    "li_banner",
    "meta_feed_square",
    "meta_story_ad",
    "ec_product_hero",
    "email_header",
    "pin_standard",
)

# Archive folder per platform
PLATFORM_FOLDER_MAP: Dict[str, str] = {
    "instagram": "instagram",
    "tiktok": "tiktok",
    "linkedin": "linkedin",
    "twitter": "twitter-x",
    "meta_ads": "meta-ads",
    "google_display": "google-display",
    "ecommerce": "ecommerce",
    "email": "email",
    "pinterest": "pinterest",
}


def get_format(format_id: str) -> Optional[FormatSpec]:
    return FORMATS_BY_ID.get(format_id)


def get_formats_by_platform(platform: str) -> List[FormatSpec]:
    return [f for f in FORMATS if f.platform == platform]


def get_pack(pack_id: str) -> Optional[FormatPack]:
    for pack in FORMAT_PACKS:
        if pack.id == pack_id:
            return pack
    return None


def resolve_format_ids(format_ids: List[str]) -> List[FormatSpec]:
    """
    Map caller-supplied format ids to catalog entries.

    Unknown ids are dropped; the caller's order is preserved.

    Args:
        format_ids: Format identifiers in the order they should be generated

    Returns:
        List of known FormatSpec entries

    Raises:
        ValueError: If the list is empty or none of the ids are known
    """
    if not format_ids:
        raise ValueError("At least one format must be selected.")

    formats = [FORMATS_BY_ID[fid] for fid in format_ids if fid in FORMATS_BY_ID]
    if not formats:
        raise ValueError("No valid formats found for the provided IDs.")
    return formats


def get_format_options() -> dict:
    """Get formats and packs for user selection."""
    return {
        "formats": [
            {
                "id": f.id,
                "name": f.name,
                "platform": f.platform,
                "platform_label": f.platform_label,
                "dimensions": f"{f.width}x{f.height}",
                "aspect_ratio": f.aspect_ratio,
                "file_format": f.file_format,
                "safe_zones": (
                    {"top": f.safe_zones.top, "bottom": f.safe_zones.bottom}
                    if f.safe_zones else None
                ),
                "notes": f.notes,
            }
            for f in FORMATS
        ],
        "packs": [
            {"id": p.id, "name": p.name, "format_ids": list(p.format_ids)}
            for p in FORMAT_PACKS
        ],
        "default_format_ids": list(V1_FORMAT_IDS),
    }
