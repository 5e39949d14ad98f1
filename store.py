"""
文档库读取

所有集合都按创建时间倒序整体读出，再用 schemas 里的记录结构校验。
单条记录校验失败会被跳过；整个集合读取失败时记日志并返回空列表。
"""
import asyncio
import logging
from typing import Dict, List, NamedTuple, Optional, Type

from pydantic import ValidationError
from tortoise.models import Model

from model import Customer, Invoice, Order, Product, Quote
from schemas import CustomerRecord, InvoiceRecord, OrderRecord, ProductRecord, QuoteRecord, Record

logger = logging.getLogger(__name__)

RECORD_TYPES: Dict[Type[Model], Type[Record]] = {
    Customer: CustomerRecord,
    Product: ProductRecord,
    Quote: QuoteRecord,
    Order: OrderRecord,
    Invoice: InvoiceRecord,
}


def to_record(model: Type[Model], row: dict) -> Optional[Record]:
    try:
        return RECORD_TYPES[model].model_validate(row)
    except ValidationError as e:
        logger.warning("跳过无法解析的 %s 记录 %s: %s", model.__name__, row.get("id"), e)
        return None


async def list_records(model: Type[Model], *args, **filters) -> List[Record]:
    try:
        rows = await model.filter(*args, **filters).order_by("-created_at").values()
    except Exception:
        logger.exception("读取 %s 失败", model._meta.db_table)
        return []
    records = (to_record(model, row) for row in rows)
    return [record for record in records if record is not None]


async def get_record(model: Type[Model], record_id: str) -> Optional[Record]:
    try:
        row = await model.filter(id=record_id).first().values()
    except Exception:
        logger.exception("读取 %s/%s 失败", model._meta.db_table, record_id)
        return None
    if not row:
        return None
    return to_record(model, row)


class FinancialInputs(NamedTuple):
    invoices: List[InvoiceRecord]
    orders: List[OrderRecord]
    quotes: List[QuoteRecord]
    products: List[ProductRecord]


async def load_financial_inputs() -> FinancialInputs:
    """并发读取报表需要的四个集合，全部返回后再交给汇总计算"""
    invoices, orders, quotes, products = await asyncio.gather(
        list_records(Invoice),
        list_records(Order),
        list_records(Quote),
        list_records(Product),
    )
    return FinancialInputs(invoices, orders, quotes, products)
