"""Software remarks: ``/api/software-remarks``.

There is no delete; saving an empty remark is how a user clears one.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from svreport.models import RemarkRecord
from svreport.store import AugmentationStore
from svreport.web.dependencies import get_store

router = APIRouter(prefix="/api", tags=["remarks"])


class RemarkIn(BaseModel):
    software_title_id: Optional[int] = None
    remark: Optional[str] = None


@router.get("/software-remarks")
async def list_remarks(store: AugmentationStore = Depends(get_store)) -> list[RemarkRecord]:
    remarks = await store.list_remarks()
    return [RemarkRecord.model_validate(row.model_dump()) for row in remarks]


@router.post("/software-remarks")
async def save_remark(payload: RemarkIn, store: AugmentationStore = Depends(get_store)) -> dict:
    row = await store.upsert_remark(payload.software_title_id, payload.remark)
    return {"id": row.id, "software_title_id": row.software_title_id, "remark": row.remark}
