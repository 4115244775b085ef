"""
PieceExporter - packages rendered pieces for download.

Re-renders every piece at production quality, encodes it with its
format's file type and compression, and writes it into a ZIP archive under
a per-platform folder. An INDEX.txt manifest at the archive root lists every
exported file.
"""

import asyncio
import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from .formats import FormatSpec, get_format
from .renderer import ImageSource, PieceRenderer, RenderedCanvas, restore_scene
from .schemas import BrandPalette, CampaignInfo, GeneratedPiece
from .treatments import directive_treatment

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

MANIFEST_NAME = "INDEX.txt"
RULE_WIDTH = 56
ZIP_COMPRESSION_LEVEL = 6

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass
class ExportedFile:
    """Manifest record for one file written to the archive."""
    file_name: str  # folder-qualified
    platform: str
    platform_label: str
    format_name: str
    width: int
    height: int
    aspect_ratio: str
    size_bytes: int
    notes: Optional[str] = None


@dataclass
class ExportArchive:
    file_name: str
    data: bytes
    files: List[ExportedFile] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(f.size_bytes for f in self.files)


@dataclass
class ExportedImage:
    file_name: str
    data: bytes
    media_type: str


def format_file_size(size_bytes: int) -> str:
    """Human-readable size: bytes, whole KB, or MB with one decimal."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{int(size_bytes / 1024 + 0.5)} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def format_manifest_date(day: date) -> str:
    return f"{day.day} {_MONTHS[day.month - 1]} {day.year}"


def sanitize_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("-", name)


def archive_name(brand_name: str, campaign_name: str, day: date) -> str:
    """FORGE-{brand}-{campaign}-{YYYYMMDD}.zip"""
    return f"FORGE-{sanitize_name(brand_name)}-{sanitize_name(campaign_name)}-{day:%Y%m%d}.zip"


def build_manifest(files: List[ExportedFile], campaign: CampaignInfo) -> str:
    """
    Build the INDEX.txt contents.

    Header, then one block per platform in first-encounter order, then a
    footer with totals. Output depends only on the arguments.
    """
    rule = "─" * RULE_WIDTH
    lines = [
        "FORGE -- Brand Asset Generator",
        f"Export: {campaign.campaign_name} -- {format_manifest_date(campaign.exported_at)}",
        f"Marca: {campaign.brand_name}",
        f"Intencion: {campaign.intention.upper()}",
        rule,
        "",
    ]

    grouped: Dict[str, List[ExportedFile]] = {}
    for f in files:
        grouped.setdefault(f.platform_label, []).append(f)

    total_size = 0
    for label, platform_files in grouped.items():
        lines.append(label.upper())
        lines.append("─" * len(label))
        for f in platform_files:
            total_size += f.size_bytes
            lines.append(f.file_name)
            lines.append(f"  Plataforma: {f.platform_label}")
            lines.append(f"  Dimensiones: {f.width} x {f.height} px ({f.aspect_ratio})")
            lines.append(f"  Tamano: {format_file_size(f.size_bytes)}")
            if f.notes:
                lines.append(f"  Nota: {f.notes}")
            lines.append("")

    lines.append(rule)
    lines.append(f"Total archivos: {len(files)}")
    lines.append(f"Tamano total: {format_file_size(total_size)}")
    lines.append("Generado con FORGE -- forge.app")
    return "\n".join(lines)


class PieceExporter:
    """Renders pieces at export quality and packages them."""

    def __init__(self, renderer: PieceRenderer):
        self.renderer = renderer

    def render_for_export(
        self,
        piece: GeneratedPiece,
        source: ImageSource,
        logo: ImageSource = None,
        palette: Optional[BrandPalette] = None,
    ) -> Tuple[bytes, FormatSpec]:
        """
        Encode one piece with its format's file type and compression.

        A saved canvas_state (hand edit) wins over the original instruction.

        Raises:
            ValueError: Unknown format, or nothing to render
        """
        format = get_format(piece.format_id)
        if format is None:
            raise ValueError(f"Unknown format: {piece.format_id}")

        rendered: RenderedCanvas
        if piece.canvas_state:
            rendered = self.renderer.render_scene(restore_scene(piece.canvas_state), source, logo)
        elif piece.composition is not None:
            extra = directive_treatment(piece.composition.image.treatment, palette)
            rendered = self.renderer.render(
                piece.composition, source, logo, treatments=[extra] if extra else None
            )
        else:
            raise ValueError(f"Piece {piece.id} has neither a composition nor a canvas state")

        try:
            data = self.renderer.encode(rendered, format.file_format, format.compression)
        finally:
            rendered.dispose()
        return data, format

    async def export_all(
        self,
        pieces: List[GeneratedPiece],
        campaign: CampaignInfo,
        source: ImageSource,
        logo: ImageSource = None,
        palette: Optional[BrandPalette] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportArchive:
        """
        Export pieces into a ZIP archive.

        Args:
            pieces: Pieces to export, in archive order
            campaign: Campaign metadata for the manifest and archive name
            source: Source image used to re-render
            logo: Optional brand logo
            palette: Brand palette for palette-driven treatments
            on_progress: Called with (completed, total) after each piece

        Returns:
            ExportArchive with the zip bytes and the manifest records

        Raises:
            ValueError: If there are no pieces
        """
        if not pieces:
            raise ValueError("No pieces to export.")

        logger.info(f"Exporting {len(pieces)} pieces for campaign '{campaign.campaign_name}'")

        buffer = io.BytesIO()
        exported: List[ExportedFile] = []
        used_names = set()
        stamp = (campaign.exported_at.year, campaign.exported_at.month, campaign.exported_at.day, 0, 0, 0)

        with zipfile.ZipFile(buffer, "w") as archive:
            for i, piece in enumerate(pieces):
                try:
                    data, format = self.render_for_export(piece, source, logo, palette)
                except Exception as e:
                    logger.error(f"Failed to export piece {piece.id} ({piece.format_id}): {e}")
                else:
                    path = self._unique_path(format, piece.variation, used_names)
                    used_names.add(path)

                    self._write(archive, path, data, stamp)
                    exported.append(ExportedFile(
                        file_name=path,
                        platform=format.platform,
                        platform_label=format.platform_label,
                        format_name=format.name,
                        width=format.width,
                        height=format.height,
                        aspect_ratio=format.aspect_ratio,
                        size_bytes=len(data),
                        notes=format.notes,
                    ))

                if on_progress:
                    on_progress(i + 1, len(pieces))
                await asyncio.sleep(0)

            manifest = build_manifest(exported, campaign)
            self._write(archive, MANIFEST_NAME, manifest.encode("utf-8"), stamp)

        result = ExportArchive(
            file_name=archive_name(campaign.brand_name, campaign.campaign_name, campaign.exported_at),
            data=buffer.getvalue(),
            files=exported,
        )
        logger.info(f"Export complete: {len(exported)}/{len(pieces)} files, {format_file_size(len(result.data))} archive")
        return result

    async def export_single(
        self,
        piece: GeneratedPiece,
        source: ImageSource,
        logo: ImageSource = None,
        palette: Optional[BrandPalette] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportedImage:
        """Export one piece as a standalone file (no archive)."""
        data, format = self.render_for_export(piece, source, logo, palette)
        if on_progress:
            on_progress(1, 1)
        return ExportedImage(file_name=format.file_name, data=data, media_type=format.media_type)

    @staticmethod
    def _unique_path(format: FormatSpec, variation: int, used_names: set) -> str:
        """Archive path for a piece; repeats get -v{variation}, then a counter."""
        path = f"{format.folder}/{format.file_name}"
        if path not in used_names:
            return path

        stem = f"{format.folder}/{format.slug}-{format.width}x{format.height}-v{variation}"
        path = f"{stem}.{format.file_format}"
        n = 2
        while path in used_names:
            path = f"{stem}-{n}.{format.file_format}"
            n += 1
        return path

    @staticmethod
    def _write(archive: zipfile.ZipFile, path: str, data: bytes, stamp):
        info = zipfile.ZipInfo(path, date_time=stamp)
        info.compress_type = zipfile.ZIP_DEFLATED
        archive.writestr(info, data, compress_type=zipfile.ZIP_DEFLATED, compresslevel=ZIP_COMPRESSION_LEVEL)
