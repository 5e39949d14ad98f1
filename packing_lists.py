import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from auth import sales_or_finance
from model import PackingList
from schemas import ActionResult, to_datetime

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(sales_or_finance)])


class PackingListItem(BaseModel):
    photo: Optional[str] = Field(default=None, description="base64 data URL")
    sku: Optional[str] = None
    description: str = Field(min_length=1, description="Description is required.")
    quantity: float = Field(gt=0, description="Quantity must be positive.")
    unit_price_cny: float = Field(ge=0, description="Price must be non-negative.")
    remarks: Optional[str] = None


class PackingListIn(BaseModel):
    list_id: str = Field(min_length=1, description="Packing List ID is required.")
    date: datetime
    items: List[PackingListItem] = Field(min_length=1, description="At least one item is required.")


def packing_list_out(row: PackingList) -> dict:
    items = row.items if isinstance(row.items, list) else []
    return {
        "id": row.id,
        "list_id": row.list_id,
        "date": to_datetime(row.date),
        "items": items,
        "total_quantity": sum(float(item.get("quantity") or 0) for item in items),
        "total_amount_cny": sum(
            float(item.get("quantity") or 0) * float(item.get("unit_price_cny") or 0) for item in items
        ),
        "created_at": row.created_at,
    }


@router.get("/")
async def get_packing_lists():
    rows = await PackingList.all().order_by("-created_at")
    return [packing_list_out(row) for row in rows]


@router.get("/{packing_list_id}")
async def get_packing_list(packing_list_id: str):
    row = await PackingList.get_or_none(id=packing_list_id)
    if not row:
        raise HTTPException(status_code=404, detail="Packing List not found")
    return packing_list_out(row)


@router.post("/", status_code=201)
async def create_packing_list(packing_list: PackingListIn, response: Response):
    try:
        row = await PackingList.create(**packing_list.model_dump(mode="json", exclude={"date"}),
                                       date=packing_list.date)
    except Exception:
        logger.exception("创建装箱单失败")
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Packing List saved successfully!", status_code=201, id=row.id).apply(response)


@router.put("/{packing_list_id}")
async def update_packing_list(packing_list_id: str, packing_list: PackingListIn, response: Response):
    row = await PackingList.get_or_none(id=packing_list_id)
    if not row:
        return ActionResult.fail("Packing List not found.", status_code=404).apply(response)
    try:
        row.update_from_dict(packing_list.model_dump(mode="json", exclude={"date"}))
        row.date = packing_list.date
        await row.save()
    except Exception:
        logger.exception("更新装箱单 %s 失败", packing_list_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Packing List updated successfully!", id=packing_list_id).apply(response)


@router.delete("/{packing_list_id}")
async def delete_packing_list(packing_list_id: str, response: Response):
    row = await PackingList.get_or_none(id=packing_list_id)
    if not row:
        return ActionResult.fail("Packing List not found.", status_code=404).apply(response)
    try:
        await row.delete()
    except Exception:
        logger.exception("删除装箱单 %s 失败", packing_list_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Packing List deleted successfully!").apply(response)
