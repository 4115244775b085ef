"""
Communication intentions and their composition rules.

An intention (convert, awareness, editorial, ...) decides which elements
appear on a piece, how large the heading is and how dense the layout gets.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Intention(str, Enum):
    """Supported communication intentions."""
    CONVERT = "convert"
    AWARENESS = "awareness"
    EDITORIAL = "editorial"
    CAMPAIGN = "campaign"
    BRANDING = "branding"
    URGENCY = "urgency"
    SOCIAL_PROOF = "social_proof"


# Heading range used when an intention has no rules
DEFAULT_HEADING_SIZE_RANGE: Tuple[int, int] = (48, 72)


@dataclass(frozen=True)
class IntentionRules:
    """Composition parameters for one intention (sizes in px at 1080px width)."""
    text_zone: str
    overlay: str
    elements: Tuple[str, ...]
    logo_scale: float
    heading_size_range: Tuple[int, int]
    heading_weight_range: Tuple[int, int]
    density: str
    breathing_room_multiplier: float


@dataclass(frozen=True)
class IntentionConfig:
    id: str
    name: str
    description: str
    rules: IntentionRules


INTENTIONS: List[IntentionConfig] = [
    IntentionConfig(
        id=Intention.CONVERT.value,
        name="Convert",
        description="Clicks y ventas directas. CTA prominente, pills de beneficios, jerarquia persuasiva.",
        rules=IntentionRules(
            text_zone="clean_zone",
            overlay="subtle",
            elements=("heading", "subheading", "cta", "pill", "logo"),
            logo_scale=0.8,
            heading_size_range=(48, 72),
            heading_weight_range=(700, 900),
            density="dense",
            breathing_room_multiplier=0.8,
        ),
    ),
    IntentionConfig(
        id=Intention.AWARENESS.value,
        name="Awareness",
        description="Presencia de marca sin presion de compra. Imagen protagonista, logo prominente, sin CTA.",
        rules=IntentionRules(
            text_zone="clean_zone",
            overlay="none",
            elements=("heading", "logo"),
            logo_scale=1.2,
            heading_size_range=(36, 56),
            heading_weight_range=(400, 500),
            density="editorial-sparse",
            breathing_room_multiplier=1.5,
        ),
    ),
    IntentionConfig(
        id=Intention.EDITORIAL.value,
        name="Editorial",
        description="Contenido que parece organico. Mix de pesos tipograficos, texto inline sobre la imagen.",
        rules=IntentionRules(
            text_zone="on_subject",
            overlay="none",
            elements=("heading",),
            logo_scale=0.5,
            heading_size_range=(40, 64),
            heading_weight_range=(400, 700),
            density="editorial-sparse",
            breathing_room_multiplier=1.3,
        ),
    ),
    IntentionConfig(
        id=Intention.CAMPAIGN.value,
        name="Campaign",
        description="Pieza de campana completa. Titular hero, logo con tagline, narrativa en tres capas.",
        rules=IntentionRules(
            text_zone="edge",
            overlay="medium",
            elements=("heading", "subheading", "tagline", "logo"),
            logo_scale=1.0,
            heading_size_range=(64, 96),
            heading_weight_range=(700, 900),
            density="balanced",
            breathing_room_multiplier=1.0,
        ),
    ),
    IntentionConfig(
        id=Intention.BRANDING.value,
        name="Branding",
        description="Reconocimiento de marca puro. Sin texto o texto minimo.",
        rules=IntentionRules(
            text_zone="edge",
            overlay="none",
            elements=("logo",),
            logo_scale=0.7,
            heading_size_range=(0, 36),
            heading_weight_range=(400, 500),
            density="editorial-sparse",
            breathing_room_multiplier=2.0,
        ),
    ),
    IntentionConfig(
        id=Intention.URGENCY.value,
        name="Urgency",
        description="Velocidad + calidez. Titular heavy en mayusculas, subtitulo en cursiva personal.",
        rules=IntentionRules(
            text_zone="clean_zone",
            overlay="none",
            elements=("heading", "subheading", "logo"),
            logo_scale=0.6,
            heading_size_range=(56, 88),
            heading_weight_range=(800, 900),
            density="balanced",
            breathing_room_multiplier=0.9,
        ),
    ),
    IntentionConfig(
        id=Intention.SOCIAL_PROOF.value,
        name="Social Proof",
        description="Credibilidad visual. Rating badge, quote de review, CTA tras la prueba social.",
        rules=IntentionRules(
            text_zone="clean_zone",
            overlay="subtle",
            elements=("heading", "subheading", "cta", "rating_badge", "logo"),
            logo_scale=0.7,
            heading_size_range=(36, 56),
            heading_weight_range=(500, 700),
            density="balanced",
            breathing_room_multiplier=1.1,
        ),
    ),
]

INTENTIONS_BY_ID: Dict[str, IntentionConfig] = {i.id: i for i in INTENTIONS}
INTENTION_IDS: List[str] = [i.id for i in INTENTIONS]

# (primary, secondary) treatment recommended per intention
INTENTION_TREATMENT_COMBOS: Dict[str, Tuple[str, str]] = {
    "convert": ("overlay", "vignette"),
    "awareness": ("none", "vignette"),
    "editorial": ("none", "grain"),
    "campaign": ("overlay", "vignette"),
    "branding": ("grain", "duotone"),
    "urgency": ("none", "grain"),
    "social_proof": ("overlay", "none"),
}


def get_intention(intention_id: str) -> Optional[IntentionConfig]:
    return INTENTIONS_BY_ID.get(intention_id)


def get_recommended_treatments(intention_id: str) -> Optional[Tuple[str, str]]:
    return INTENTION_TREATMENT_COMBOS.get(intention_id)


def get_intention_options() -> list:
    """Get intentions for user selection."""
    return [
        {
            "id": i.id,
            "name": i.name,
            "description": i.description,
            "elements": list(i.rules.elements),
            "heading_size_range": list(i.rules.heading_size_range),
            "recommended_treatments": list(INTENTION_TREATMENT_COMBOS.get(i.id, ())),
        }
        for i in INTENTIONS
    ]
