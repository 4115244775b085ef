"""
Local persistence: brand profiles, the working session and campaign history.

Each repository keeps its state in one JSON document under `data_dir`.
Without a data_dir everything stays in memory (tests, ephemeral runs).
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from composer.schemas import BrandProfile, CopyInput

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonDocument:
    """One JSON file, written atomically (temp file + rename)."""

    def __init__(self, path: Optional[Union[str, Path]]):
        self.path = Path(path) if path else None

    def load(self, default: Any) -> Any:
        if self.path is None or not self.path.exists():
            return default
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {self.path}: {e}; starting empty")
            return default

    def save(self, data: Any):
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


def _document(data_dir: Optional[Union[str, Path]], name: str) -> JsonDocument:
    return JsonDocument(Path(data_dir) / name if data_dir else None)


# ============== Brands ==============

class BrandRepository:
    """
    Brand profiles keyed by id, plus the active-brand pointer.

    The first brand added becomes active. Deleting the active brand moves
    the pointer to the first remaining one (or None).
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self._doc = _document(data_dir, "brands.json")
        raw = self._doc.load({"brands": [], "active_brand_id": None})
        self._brands: Dict[str, BrandProfile] = {}
        for item in raw.get("brands", []):
            brand = BrandProfile.model_validate(item)
            self._brands[brand.brand_id] = brand
        self.active_brand_id: Optional[str] = raw.get("active_brand_id")
        if self.active_brand_id not in self._brands:
            self.active_brand_id = next(iter(self._brands), None)

    def _persist(self):
        self._doc.save({
            "brands": [b.model_dump(mode="json") for b in self._brands.values()],
            "active_brand_id": self.active_brand_id,
        })

    def list_brands(self) -> List[BrandProfile]:
        return list(self._brands.values())

    def get(self, brand_id: str) -> Optional[BrandProfile]:
        return self._brands.get(brand_id)

    def get_active(self) -> Optional[BrandProfile]:
        return self._brands.get(self.active_brand_id) if self.active_brand_id else None

    def add(self, brand: BrandProfile) -> BrandProfile:
        self._brands[brand.brand_id] = brand
        if self.active_brand_id is None:
            self.active_brand_id = brand.brand_id
        self._persist()
        logger.info(f"Saved brand '{brand.brand_name}' ({brand.brand_id})")
        return brand

    def update(self, brand_id: str, updates: Dict[str, Any]) -> Optional[BrandProfile]:
        """
        Apply field updates. Nested sections (palette, typography, ...) are
        replaced as a whole, never deep-merged.
        """
        current = self._brands.get(brand_id)
        if current is None:
            return None
        data = current.model_dump()
        data.update({k: v for k, v in updates.items() if k not in ("brand_id", "created_at")})
        data["updated_at"] = utc_now()
        updated = BrandProfile.model_validate(data)
        self._brands[brand_id] = updated
        self._persist()
        return updated

    def replace(self, brand: BrandProfile) -> BrandProfile:
        self._brands[brand.brand_id] = brand
        self._persist()
        return brand

    def delete(self, brand_id: str) -> bool:
        if self._brands.pop(brand_id, None) is None:
            return False
        if self.active_brand_id == brand_id:
            self.active_brand_id = next(iter(self._brands), None)
        self._persist()
        logger.info(f"Deleted brand {brand_id}")
        return True

    def set_active(self, brand_id: str) -> Optional[BrandProfile]:
        brand = self._brands.get(brand_id)
        if brand is not None:
            self.active_brand_id = brand_id
            self._persist()
        return brand

    def duplicate(self, brand_id: str) -> Optional[BrandProfile]:
        source = self._brands.get(brand_id)
        if source is None:
            return None
        now = utc_now()
        copy = source.model_copy(deep=True, update={
            "brand_id": str(uuid.uuid4()),
            "brand_name": f"{source.brand_name} (copy)",
            "created_at": now,
            "updated_at": now,
        })
        return self.add(copy)


# ============== Session ==============

class SessionState(BaseModel):
    """Working state of the generator form. Image data is never stored."""
    brand_dna_id: Optional[str] = None
    image_file_name: Optional[str] = None
    copy_input: CopyInput = Field(default_factory=CopyInput)
    intention: Optional[str] = None
    selected_formats: List[str] = Field(default_factory=list)


class SessionRepository:
    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self._doc = _document(data_dir, "session.json")
        self.state = SessionState.model_validate(self._doc.load({}))

    def get(self) -> SessionState:
        return self.state

    def save(self, **fields) -> SessionState:
        self.state = SessionState.model_validate({**self.state.model_dump(), **fields})
        self._doc.save(self.state.model_dump(mode="json"))
        return self.state

    def reset(self) -> SessionState:
        self.state = SessionState()
        self._doc.save(self.state.model_dump(mode="json"))
        return self.state


# ============== Campaign history ==============

class CampaignEntry(BaseModel):
    campaign_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    campaign_name: str
    created_at: str = Field(default_factory=utc_now)
    brand_dna_id: Optional[str] = None
    brand_name: str
    intention: str
    copy_input: CopyInput = Field(default_factory=CopyInput)
    source_image_thumbnail: Optional[str] = None
    formats_generated: List[str] = Field(default_factory=list)
    formats_exported: List[str] = Field(default_factory=list)
    canvas_states: Dict[str, str] = Field(default_factory=dict)
    export_count: int = 0
    last_exported_at: Optional[str] = None


class CampaignHistory:
    """Newest-first campaign records, bounded to `limit` entries."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None, limit: int = DEFAULT_HISTORY_LIMIT):
        self.limit = limit
        self._doc = _document(data_dir, "history.json")
        self._entries: List[CampaignEntry] = [
            CampaignEntry.model_validate(item) for item in self._doc.load([])
        ][:limit]

    def _persist(self):
        self._doc.save([e.model_dump(mode="json") for e in self._entries])

    def list_entries(self) -> List[CampaignEntry]:
        return list(self._entries)

    def get(self, campaign_id: str) -> Optional[CampaignEntry]:
        return next((e for e in self._entries if e.campaign_id == campaign_id), None)

    def add(self, entry: CampaignEntry) -> CampaignEntry:
        self._entries.insert(0, entry)
        if len(self._entries) > self.limit:
            dropped = self._entries[self.limit:]
            self._entries = self._entries[:self.limit]
            logger.info(f"History full, evicted {len(dropped)} oldest campaigns")
        self._persist()
        return entry

    def record_export(self, campaign_id: str, format_ids: List[str]) -> Optional[CampaignEntry]:
        entry = self.get(campaign_id)
        if entry is None:
            return None
        exported = list(dict.fromkeys(entry.formats_exported + format_ids))
        updated = entry.model_copy(update={
            "formats_exported": exported,
            "export_count": entry.export_count + 1,
            "last_exported_at": utc_now(),
        })
        self._entries[self._entries.index(entry)] = updated
        self._persist()
        return updated

    def delete(self, campaign_id: str) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.campaign_id != campaign_id]
        if len(self._entries) == before:
            return False
        self._persist()
        return True

    def clear(self):
        self._entries = []
        self._persist()
