"""
Font resolution for the renderer.

A FontRegistry is created once by the service and handed to every
renderer. Its caches only ever grow, so concurrent readers never see an
entry change; a miss just loads the font again.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from PIL import ImageFont

logger = logging.getLogger(__name__)

WEIGHT_NAMES: Dict[int, str] = {
    100: "Thin",
    200: "ExtraLight",
    300: "Light",
    400: "Regular",
    500: "Medium",
    600: "SemiBold",
    700: "Bold",
    800: "ExtraBold",
    900: "Black",
}

# Last resort before Pillow's bundled font
SYSTEM_FONTS_REGULAR = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",  # Linux
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
    "C:\\Windows\\Fonts\\arial.ttf",  # Windows
]
SYSTEM_FONTS_BOLD = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:\\Windows\\Fonts\\arialbd.ttf",
]

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


def _style_suffix(weight: int, italic: bool) -> str:
    name = WEIGHT_NAMES.get(weight, "Regular")
    if italic:
        return "Italic" if name == "Regular" else f"{name}Italic"
    return name


class FontRegistry:
    """
    Resolves (family, weight, style, size) to a Pillow font.

    Looks for static font files named like "Inter-Bold.ttf" or
    "PlayfairDisplay-MediumItalic.otf" in `fonts_dir`, then common system
    fonts, then Pillow's default font.
    """

    def __init__(self, fonts_dir: Optional[Union[str, Path]] = None):
        self.fonts_dir = Path(fonts_dir) if fonts_dir else None
        self._files: Dict[str, Path] = {}
        self._loaded_families: Set[str] = set()
        self._fonts: Dict[Tuple[str, int, str, int], FontType] = {}
        self._index_fonts_dir()

    def _index_fonts_dir(self):
        if not self.fonts_dir or not self.fonts_dir.is_dir():
            if self.fonts_dir:
                logger.warning(f"Fonts directory not found: {self.fonts_dir}")
            return
        for path in sorted(self.fonts_dir.rglob("*")):
            if path.suffix.lower() in (".ttf", ".otf"):
                self._files.setdefault(path.stem.lower(), path)
        logger.info(f"Indexed {len(self._files)} font files in {self.fonts_dir}")

    @property
    def loaded_families(self) -> Set[str]:
        return set(self._loaded_families)

    def family_files(self, family: str) -> List[Path]:
        prefix = family.replace(" ", "").lower() + "-"
        return [path for stem, path in self._files.items() if stem.startswith(prefix)]

    def ensure_loaded(self, families: Iterable[str]) -> None:
        """
        Make sure every family is resolved before text is measured.

        Families without files are still marked loaded; they render with the
        fallback font and a warning is logged once.
        """
        for family in families:
            if not family or family in self._loaded_families:
                continue
            if not self.family_files(family):
                logger.warning(f"No font files for '{family}', using fallback font")
            self._loaded_families.add(family)

    def get_font(
        self,
        family: Optional[str],
        weight: Optional[int],
        size: int,
        style: Optional[str] = None,
    ) -> FontType:
        """Get a font for drawing, cached per family/weight/style/size."""
        family = family or "Inter"
        weight = weight or 400
        style = style or "normal"
        size = max(1, int(size))

        key = (family, weight, style, size)
        font = self._fonts.get(key)
        if font is None:
            font = self._load(family, weight, style, size)
            self._fonts[key] = font
        return font

    def _find_file(self, family: str, weight: int, italic: bool) -> Optional[Path]:
        base = family.replace(" ", "").lower()
        nearest = sorted(WEIGHT_NAMES, key=lambda w: (abs(w - weight), -w))
        for candidate in nearest:
            stem = f"{base}-{_style_suffix(candidate, italic)}".lower()
            if stem in self._files:
                return self._files[stem]
        if italic:
            return self._find_file(family, weight, italic=False)
        return None

    def _load(self, family: str, weight: int, style: str, size: int) -> FontType:
        path = self._find_file(family, weight, style == "italic")
        if path:
            try:
                return ImageFont.truetype(str(path), size)
            except OSError as e:
                logger.warning(f"Failed to load font {path}: {e}")

        for fp in SYSTEM_FONTS_BOLD if weight >= 600 else SYSTEM_FONTS_REGULAR:
            try:
                return ImageFont.truetype(fp, size)
            except OSError:
                continue

        return ImageFont.load_default(size=size)
