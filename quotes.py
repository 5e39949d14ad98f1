import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, model_validator

from auth import sales_or_finance
from billing import price_items, sync_quote_to_order_and_invoice, update_quote_status
from model import Quote
from schemas import ActionResult, LineItem, QuoteStatus
from store import get_record, list_records

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(sales_or_finance)])


class QuoteItemIn(BaseModel):
    sku: Optional[str] = None
    description: str = Field(min_length=1, description="Description cannot be empty.")
    quantity: float = Field(gt=0, description="Quantity must be positive.")
    unit_price: float = Field(ge=0, description="Unit price cannot be negative.")
    purchase_price: float = Field(default=0, ge=0, description="Purchase price cannot be negative.")


class QuoteIn(BaseModel):
    quote_number: str = Field(min_length=1, description="Proforma number is required.")
    customer_id: str
    customer_name: str = ""
    issue_date: datetime
    valid_until: datetime
    items: List[QuoteItemIn] = Field(min_length=1, description="At least one item is required.")
    transport_cost: float = Field(default=0, ge=0, description="Transport cost cannot be negative.")
    commission_rate: float = Field(default=0, ge=0, le=100, description="Commission must be between 0 and 100%.")
    status: QuoteStatus = QuoteStatus.draft
    shipping_address: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.valid_until < self.issue_date:
            raise ValueError("valid_until cannot be earlier than issue_date")
        return self

    def to_document(self) -> dict:
        """明细小计、总额由服务端计算"""
        items = [LineItem(**item.model_dump()) for item in self.items]
        priced, sub_total, total = price_items(items, self.transport_cost, self.commission_rate)
        if total <= 0:
            raise ValueError("Total amount must be a positive number.")
        data = self.model_dump(exclude={"items"})
        data["status"] = self.status.value
        data.update(items=priced, sub_total=sub_total, total_amount=total)
        return data


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus


@router.get("/")
async def get_quotes(status: Optional[QuoteStatus] = None, customer_id: Optional[str] = None):
    filters = {}
    if status is not None:
        filters["status"] = status.value
    if customer_id:
        filters["customer_id"] = customer_id
    return await list_records(Quote, **filters)


@router.get("/{quote_id}")
async def get_quote(quote_id: str):
    quote = await get_record(Quote, quote_id)
    if quote is None:
        raise HTTPException(status_code=404, detail="Proforma not found")
    return quote


@router.post("/", status_code=201)
async def create_quote(quote: QuoteIn, response: Response):
    try:
        document = quote.to_document()
    except ValueError as e:
        return ActionResult.fail("Validation failed.", errors=[str(e)]).apply(response)
    try:
        new_quote = await Quote.create(**document)
    except Exception:
        logger.exception("创建形式发票失败")
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Proforma Invoice added successfully!", status_code=201, id=new_quote.id).apply(response)


@router.put("/{quote_id}")
async def update_quote(quote_id: str, quote: QuoteIn, response: Response):
    """整单更新；已接受的形式发票会同步到关联订单和发票"""
    db_quote = await Quote.get_or_none(id=quote_id)
    if not db_quote:
        return ActionResult.fail("Proforma not found.", status_code=404).apply(response)
    try:
        document = quote.to_document()
    except ValueError as e:
        return ActionResult.fail("Validation failed.", errors=[str(e)]).apply(response)

    try:
        db_quote.update_from_dict(document)
        await db_quote.save()
    except Exception:
        logger.exception("更新形式发票 %s 失败", quote_id)
        return ActionResult.unexpected().apply(response)

    if db_quote.status == QuoteStatus.accepted.value:
        sync_result = await sync_quote_to_order_and_invoice(db_quote)
        if not sync_result.success:
            logger.warning("形式发票 %s 已保存，但同步订单/发票失败", quote_id)
    return ActionResult.ok("Proforma Invoice updated successfully!", id=quote_id).apply(response)


@router.put("/{quote_id}/status")
async def change_quote_status(quote_id: str, body: QuoteStatusUpdate, response: Response):
    result = await update_quote_status(quote_id, body.status)
    return result.apply(response)


@router.post("/{quote_id}/sync")
async def sync_quote(quote_id: str, response: Response):
    """手动把形式发票的当前内容推送到关联订单和发票"""
    quote = await Quote.get_or_none(id=quote_id)
    if not quote:
        return ActionResult.fail("Proforma not found.", status_code=404).apply(response)
    result = await sync_quote_to_order_and_invoice(quote)
    return result.apply(response)


@router.delete("/{quote_id}")
async def delete_quote(quote_id: str, response: Response):
    quote = await Quote.get_or_none(id=quote_id)
    if not quote:
        return ActionResult.fail("Proforma not found.", status_code=404).apply(response)
    try:
        await quote.delete()
    except Exception:
        logger.exception("删除形式发票 %s 失败", quote_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Proforma Invoice deleted successfully!").apply(response)
