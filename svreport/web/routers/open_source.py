"""Open-source flag list: ``/api/open-source``."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from svreport.models import FlagRecord
from svreport.store import AugmentationStore
from svreport.web.dependencies import get_store

router = APIRouter(prefix="/api", tags=["open-source"])


class FlagIn(BaseModel):
    software_title_id: Optional[int] = None
    name: Optional[str] = None


@router.get("/open-source")
async def list_open_source(store: AugmentationStore = Depends(get_store)) -> list[FlagRecord]:
    """Every flagged title, ordered by name."""
    flags = await store.list_flags()
    return [FlagRecord.model_validate(flag.model_dump()) for flag in flags]


@router.post("/open-source")
async def add_open_source(payload: FlagIn, store: AugmentationStore = Depends(get_store)) -> dict:
    """Flag a title; repeating the call replaces the cached name."""
    flag = await store.upsert_flag(payload.software_title_id, payload.name)
    return {"id": flag.id, "software_title_id": flag.software_title_id, "name": flag.name}


@router.delete("/open-source/{software_title_id}")
async def remove_open_source(software_title_id: int, store: AugmentationStore = Depends(get_store)) -> dict:
    """Unflag a title. Removing an unflagged title reports ``deleted: false``."""
    deleted = await store.delete_flag(software_title_id)
    return {"deleted": deleted}
