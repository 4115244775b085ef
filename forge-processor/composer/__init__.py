# Composer Module
# Hybrid approach: AI for image analysis, Code for layout, pixels and packaging

from .formats import FORMATS, FormatSpec, get_format, get_format_options, resolve_format_ids
from .intentions import Intention, get_intention, get_intention_options
from .layout import LayoutEngine
from .fonts import FontRegistry
from .renderer import PieceRenderer, RenderedCanvas, Scene, restore_scene, serialize_scene
from .treatments import TreatmentConfig, apply_treatment, get_treatment_config, get_treatment_options
from .exporter import PieceExporter, build_manifest
from .generator import AssetGenerator, mark_edited

__all__ = [
    "FORMATS",
    "FormatSpec",
    "get_format",
    "get_format_options",
    "resolve_format_ids",
    "Intention",
    "get_intention",
    "get_intention_options",
    "LayoutEngine",
    "FontRegistry",
    "PieceRenderer",
    "RenderedCanvas",
    "Scene",
    "restore_scene",
    "serialize_scene",
    "TreatmentConfig",
    "apply_treatment",
    "get_treatment_config",
    "get_treatment_options",
    "PieceExporter",
    "build_manifest",
    "AssetGenerator",
    "mark_edited",
]
