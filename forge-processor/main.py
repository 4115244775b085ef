from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ConfigDict
from pydantic_settings import BaseSettings
from typing import List, Optional
import io
import logging

import numpy as np
from PIL import Image

from composer import (
    AssetGenerator,
    FontRegistry,
    PieceExporter,
    PieceRenderer,
    get_format_options,
    get_intention_options,
    get_treatment_config,
    get_treatment_options,
    restore_scene,
)
from composer.renderer import RenderedCanvas, Scene, decode_data_url, load_image, to_data_url
from composer.schemas import BrandProfile, CampaignInfo
from composer.treatments import apply_treatment, directive_treatment
from brand_dna import extract_brand_dna, generate_preview_piece, recalculate_brand_dna
from models import (
    BrandUpdateRequest,
    ComposeRequest,
    ComposeResponse,
    ExportRequest,
    ExportSingleRequest,
    GenerateRequest,
    GenerateResponse,
    RenderRequest,
    SessionUpdateRequest,
    TreatmentApplyRequest,
)
from providers import GeminiVisionProvider, OpenAIVisionProvider, ProviderRouter
from storage import BrandRepository, CampaignEntry, CampaignHistory, SessionRepository
from vision_client import ProviderNotConfiguredError, VisionAnalysisError, VisionAnalyzer

# Logging setup
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = 320


class Settings(BaseSettings):
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_base_url: Optional[str] = None
    gemini_api_keys: Optional[str] = None  # Comma-separated API keys
    gemini_model: str = "gemini-2.0-flash"
    fonts_dir: Optional[str] = None
    data_dir: Optional[str] = None
    preview_quality: int = 70
    preview_max_dimension: Optional[int] = None
    vision_max_retries: int = 3
    vision_retry_delay: float = 1.0
    history_limit: int = 50

    model_config = ConfigDict(env_file=".env", extra="ignore")

    @property
    def gemini_key_list(self) -> List[str]:
        return [k.strip() for k in (self.gemini_api_keys or "").split(",") if k.strip()]


def build_analyzer(settings: Settings) -> VisionAnalyzer:
    """OpenAI-compatible primary with Gemini fallback."""
    router = ProviderRouter(
        primary=OpenAIVisionProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        ),
        fallback=GeminiVisionProvider(api_keys=settings.gemini_key_list, model=settings.gemini_model),
    )
    return VisionAnalyzer(router, max_retries=settings.vision_max_retries, retry_delay=settings.vision_retry_delay)


def make_thumbnail(data: bytes, size: int = THUMBNAIL_SIZE) -> Optional[str]:
    img = load_image(data)
    if img is None:
        return None
    try:
        img.thumbnail((size, size), Image.Resampling.LANCZOS)
        buffer = io.BytesIO()
        img.convert("RGB").save(buffer, format="JPEG", quality=70)
        return to_data_url(buffer.getvalue(), "image/jpeg")
    finally:
        img.close()


def _raise_http(e: Exception, action: str):
    """Map service errors to HTTP errors."""
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, ProviderNotConfiguredError):
        raise HTTPException(status_code=503, detail=str(e))
    if isinstance(e, VisionAnalysisError):
        raise HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ValueError):
        raise HTTPException(status_code=400, detail=str(e))
    logger.error(f"{action} error: {e}")
    raise HTTPException(status_code=500, detail=f"{action} failed: {e}")


def create_app(
    settings: Optional[Settings] = None,
    analyzer: Optional[VisionAnalyzer] = None,
    fonts: Optional[FontRegistry] = None,
    rng: Optional[np.random.Generator] = None,
) -> FastAPI:
    """
    Build the service with explicit collaborators.

    Tests pass a fake analyzer and a temporary data_dir; production uses the
    defaults read from the environment.
    """
    settings = settings or Settings()
    app = FastAPI(title="FORGE Processor", version="1.0.0")

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict this
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Initialize services
    analyzer = analyzer or build_analyzer(settings)
    renderer = PieceRenderer(fonts or FontRegistry(settings.fonts_dir), rng=rng)
    generator = AssetGenerator(
        analyzer,
        renderer,
        preview_quality=settings.preview_quality,
        preview_max_dimension=settings.preview_max_dimension,
    )
    exporter = PieceExporter(renderer)
    brands = BrandRepository(settings.data_dir)
    session = SessionRepository(settings.data_dir)
    history = CampaignHistory(settings.data_dir, limit=settings.history_limit)

    app.state.settings = settings
    app.state.analyzer = analyzer
    app.state.renderer = renderer
    app.state.brands = brands
    app.state.session = session
    app.state.history = history

    def resolve_brand(brand_id: Optional[str]) -> BrandProfile:
        if brand_id:
            brand = brands.get(brand_id)
            if brand is None:
                raise HTTPException(status_code=404, detail=f"Brand not found: {brand_id}")
            return brand
        brand = brands.get_active()
        if brand is None:
            raise HTTPException(status_code=400, detail="No active brand. Create a brand first.")
        return brand

    # ==================== META ====================

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "forge-processor"}

    @app.get("/formats")
    async def list_formats():
        """Format catalog, packs and the default selection."""
        return get_format_options()

    @app.get("/intentions")
    async def list_intentions():
        return get_intention_options()

    @app.get("/treatments")
    async def list_treatments():
        return get_treatment_options()

    # ==================== BRANDS ====================

    @app.post("/brands/extract", response_model=BrandProfile)
    async def extract_brand(
        images: List[UploadFile] = File(...),
        brand_name: str = Form(...),
        tagline: Optional[str] = Form(None),
        logo: Optional[UploadFile] = File(None),
    ):
        """
        Extract a brand profile from 3-6 reference assets.

        The new brand is saved; it becomes active if it is the first one.
        """
        try:
            logger.info(f"Extracting brand DNA for '{brand_name}' from {len(images)} assets")
            contents = [await upload.read() for upload in images]
            logo_url = None
            if logo is not None:
                logo_url = to_data_url(await logo.read(), logo.content_type or "image/png")

            profile = await extract_brand_dna(analyzer, contents, brand_name, tagline, logo_url)
            return brands.add(profile)
        except Exception as e:
            _raise_http(e, "Brand extraction")

    @app.post("/brands/{brand_id}/recalculate", response_model=BrandProfile)
    async def recalculate_brand(brand_id: str, images: List[UploadFile] = File(...)):
        """Refine a brand with additional reference assets."""
        existing = resolve_brand(brand_id)
        try:
            contents = [await upload.read() for upload in images]
            merged = await recalculate_brand_dna(analyzer, existing, contents)
            return brands.replace(merged)
        except Exception as e:
            _raise_http(e, "Brand recalculation")

    @app.get("/brands")
    async def list_brands():
        return {
            "brands": [b.model_dump() for b in brands.list_brands()],
            "active_brand_id": brands.active_brand_id,
        }

    @app.get("/brands/{brand_id}", response_model=BrandProfile)
    async def get_brand(brand_id: str):
        return resolve_brand(brand_id)

    @app.put("/brands/{brand_id}", response_model=BrandProfile)
    async def update_brand(brand_id: str, request: BrandUpdateRequest):
        resolve_brand(brand_id)
        try:
            return brands.update(brand_id, request.model_dump(exclude_unset=True))
        except Exception as e:
            _raise_http(e, "Brand update")

    @app.delete("/brands/{brand_id}")
    async def delete_brand(brand_id: str):
        if not brands.delete(brand_id):
            raise HTTPException(status_code=404, detail=f"Brand not found: {brand_id}")
        return {"status": "deleted", "active_brand_id": brands.active_brand_id}

    @app.post("/brands/{brand_id}/activate", response_model=BrandProfile)
    async def activate_brand(brand_id: str):
        brand = brands.set_active(brand_id)
        if brand is None:
            raise HTTPException(status_code=404, detail=f"Brand not found: {brand_id}")
        return brand

    @app.post("/brands/{brand_id}/duplicate", response_model=BrandProfile)
    async def duplicate_brand(brand_id: str):
        brand = brands.duplicate(brand_id)
        if brand is None:
            raise HTTPException(status_code=404, detail=f"Brand not found: {brand_id}")
        return brand

    @app.get("/brands/{brand_id}/preview")
    async def preview_brand(brand_id: str):
        return generate_preview_piece(resolve_brand(brand_id))

    # ==================== COMPOSITION ====================

    @app.post("/compose", response_model=ComposeResponse)
    async def compose(request: ComposeRequest):
        """Composition instructions only (no rendering)."""
        brand = resolve_brand(request.brand_id)
        try:
            image = decode_data_url(request.image)
            result = await generator.compose(
                image, brand, request.intention, request.copy_input, request.format_ids
            )
            return ComposeResponse(analysis=result.analysis, instructions=result.instructions)
        except Exception as e:
            _raise_http(e, "Composition")

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(request: GenerateRequest):
        """
        Compose and render every selected format x 3 variations.

        With a campaign_name the batch is also recorded in the history.
        """
        brand = resolve_brand(request.brand_id)
        try:
            image = decode_data_url(request.image)
            result = await generator.generate(
                image,
                brand,
                request.intention,
                request.copy_input,
                request.format_ids,
                logo=brand.logo_url,
            )

            campaign_id = None
            if request.campaign_name:
                entry = history.add(CampaignEntry(
                    campaign_name=request.campaign_name,
                    brand_dna_id=brand.brand_id,
                    brand_name=brand.brand_name,
                    intention=request.intention,
                    copy_input=request.copy_input,
                    source_image_thumbnail=make_thumbnail(image),
                    formats_generated=list(dict.fromkeys(p.format_id for p in result.pieces)),
                    canvas_states={p.id: p.canvas_state for p in result.pieces if p.canvas_state},
                ))
                campaign_id = entry.campaign_id

            session.save(
                brand_dna_id=brand.brand_id,
                image_file_name=request.image_file_name,
                copy_input=request.copy_input,
                intention=request.intention,
                selected_formats=request.format_ids,
            )

            return GenerateResponse(
                campaign_id=campaign_id,
                analysis=result.analysis,
                pieces=result.pieces,
                cancelled=result.cancelled,
            )
        except Exception as e:
            _raise_http(e, "Generation")

    @app.post("/render")
    async def render(request: RenderRequest):
        """Render one instruction or saved scene to an image."""
        brand = brands.get(request.brand_id) if request.brand_id else brands.get_active()
        logo = request.logo or (brand.logo_url if brand else None)
        try:
            source = decode_data_url(request.image) if request.image else None
            if request.canvas_state:
                rendered = renderer.render_scene(restore_scene(request.canvas_state), source, logo)
            elif request.instruction is not None:
                extra = directive_treatment(
                    request.instruction.image.treatment, brand.palette if brand else None
                )
                rendered = renderer.render(
                    request.instruction, source, logo, treatments=[extra] if extra else None
                )
            else:
                raise ValueError("Either instruction or canvas_state is required")

            try:
                data = renderer.encode(rendered, request.file_format, request.quality)
            finally:
                rendered.dispose()

            media_type = "image/png" if request.file_format == "png" else "image/jpeg"
            return Response(content=data, media_type=media_type)
        except Exception as e:
            _raise_http(e, "Render")

    # ==================== EXPORT ====================

    @app.post("/export")
    async def export_all(request: ExportRequest):
        """ZIP archive of every piece with an INDEX.txt manifest."""
        brand = resolve_brand(request.brand_id)
        try:
            campaign = CampaignInfo(
                campaign_name=request.campaign_name,
                brand_name=brand.brand_name,
                intention=request.intention,
            )
            archive = await exporter.export_all(
                request.pieces,
                campaign,
                decode_data_url(request.image),
                logo=brand.logo_url,
                palette=brand.palette,
            )

            if request.campaign_id:
                history.record_export(request.campaign_id, [p.format_id for p in request.pieces])

            return Response(
                content=archive.data,
                media_type="application/zip",
                headers={
                    "Content-Disposition": f'attachment; filename="{archive.file_name}"',
                    "X-Export-File-Count": str(len(archive.files)),
                },
            )
        except Exception as e:
            _raise_http(e, "Export")

    @app.post("/export/single")
    async def export_single(request: ExportSingleRequest):
        brand = resolve_brand(request.brand_id)
        try:
            exported = await exporter.export_single(
                request.piece,
                decode_data_url(request.image),
                logo=brand.logo_url,
                palette=brand.palette,
            )
            return Response(
                content=exported.data,
                media_type=exported.media_type,
                headers={"Content-Disposition": f'attachment; filename="{exported.file_name}"'},
            )
        except Exception as e:
            _raise_http(e, "Export")

    # ==================== TREATMENTS ====================

    @app.post("/treatments/apply")
    async def apply_treatment_endpoint(request: TreatmentApplyRequest):
        """Apply one library treatment to an uploaded image."""
        config = get_treatment_config(request.treatment_id, **request.overrides())
        if config is None:
            raise HTTPException(status_code=400, detail=f"Unknown treatment: {request.treatment_id}")

        try:
            img = load_image(decode_data_url(request.image))
        except ValueError:
            img = None
        if img is None:
            raise HTTPException(status_code=400, detail="Image could not be decoded")
        try:
            buffer = apply_treatment(np.array(img), config, rng=renderer.rng)
            rendered = RenderedCanvas(
                image=Image.fromarray(buffer, "RGBA"),
                scene=Scene(width=img.width, height=img.height),
            )
            try:
                data = renderer.encode(rendered, request.file_format, 92)
            finally:
                rendered.dispose()
            media_type = "image/png" if request.file_format == "png" else "image/jpeg"
            return Response(content=data, media_type=media_type)
        except Exception as e:
            _raise_http(e, "Treatment")
        finally:
            img.close()

    # ==================== SESSION & HISTORY ====================

    @app.get("/session")
    async def get_session():
        return session.get()

    @app.put("/session")
    async def update_session(request: SessionUpdateRequest):
        updates = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
        return session.save(**updates)

    @app.get("/history")
    async def list_history():
        return {"campaigns": [e.model_dump() for e in history.list_entries()]}

    @app.delete("/history/{campaign_id}")
    async def delete_history(campaign_id: str):
        if not history.delete(campaign_id):
            raise HTTPException(status_code=404, detail=f"Campaign not found: {campaign_id}")
        return {"status": "deleted"}

    return app


app = create_app()
