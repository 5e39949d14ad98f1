# tests/test_billing.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from billing import (
    create_invoice_for_order,
    create_order_from_quote,
    next_invoice_status,
    price_items,
    record_payment,
    set_invoice_status,
    sync_quote_to_order_and_invoice,
    update_quote_status,
)
from config import settings
from model import Invoice, Order, Quote
from schemas import LineItem


# ---------- 收款状态机 ----------

@pytest.mark.parametrize(
    "current, paid, total, expected",
    [
        ("unpaid", 500, 1000, "partially_paid"),
        ("unpaid", 1200, 1000, "paid"),
        ("partially_paid", 1000, 1000, "paid"),
        ("paid", 0, 1000, "unpaid"),
        ("partially_paid", 0, 1000, "unpaid"),
        ("cancelled", 0, 1000, "cancelled"),
        ("overdue", 0, 1000, "overdue"),
        ("overdue", 300, 1000, "partially_paid"),
        ("cancelled", 1000, 1000, "paid"),
    ],
)
def test_next_invoice_status(current, paid, total, expected):
    assert next_invoice_status(current, paid, total) == expected


def test_price_items_adds_transport_and_commission():
    items = [LineItem(description="cup", quantity=10, unit_price=5), LineItem(description="lid", quantity=2, unit_price=25)]

    priced, sub_total, total = price_items(items, transport_cost=100, commission_rate=10)

    assert [line["total"] for line in priced] == [50, 50]
    assert sub_total == 100
    # 100 + 100 + (100 + 100) × 10%
    assert total == pytest.approx(220)


# ---------- 单据流转 ----------

async def make_quote(**kw) -> Quote:
    data = {
        "quote_number": "PI-2024-001",
        "customer_id": "c-1",
        "customer_name": "ACME",
        "items": [{"sku": "X", "description": "cup", "quantity": 10, "unit_price": 100, "total": 1000}],
        "sub_total": 1000,
        "transport_cost": 100,
        "commission_rate": 10,
        "total_amount": 1210,
        "status": "sent",
        "shipping_address": "Hamburg",
        "issue_date": datetime(2024, 3, 1, tzinfo=timezone.utc),
    }
    data.update(kw)
    return await Quote.create(**data)


@pytest.mark.asyncio
async def test_order_requires_accepted_quote(db):
    quote = await make_quote(status="draft")

    result = await create_order_from_quote(quote)

    assert result.success is False
    assert await Order.all().count() == 0


@pytest.mark.asyncio
async def test_accepting_quote_creates_order_and_invoice(db):
    quote = await make_quote()

    result = await update_quote_status(quote.id, "accepted")

    assert result.success is True
    order = await Order.get(id=result.order_id)
    invoice = await Invoice.get(id=result.invoice_id)
    assert order.order_number == "O-2024-001"
    assert order.quote_id == quote.id
    assert order.status == "processing"
    assert order.total_amount == Decimal("1210")
    assert invoice.invoice_number == "INV-2024-001"
    assert invoice.order_id == order.id
    assert invoice.status == "unpaid"
    assert invoice.amount_paid == 0
    assert invoice.issue_date == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert invoice.due_date == invoice.issue_date + timedelta(days=settings.INVOICE_DUE_DAYS)


@pytest.mark.asyncio
async def test_accepting_twice_does_not_duplicate_documents(db):
    quote = await make_quote()

    await update_quote_status(quote.id, "accepted")
    again = await update_quote_status(quote.id, "accepted")

    assert again.success is True
    assert again.order_id is None
    assert await Order.all().count() == 1
    assert await Invoice.all().count() == 1


@pytest.mark.asyncio
async def test_status_update_for_missing_quote(db):
    result = await update_quote_status("nope", "sent")

    assert result.success is False
    assert result.status_code == 404


@pytest.mark.asyncio
async def test_invoice_for_order_gets_default_number(db):
    quote = await make_quote(status="accepted")
    order_result = await create_order_from_quote(quote)
    order = await Order.get(id=order_result.id)

    result = await create_invoice_for_order(order)

    invoice = await Invoice.get(id=result.id)
    assert result.status_code == 201
    assert invoice.invoice_number == "INV-2024-001"
    assert invoice.customer_name == "ACME"


@pytest.mark.asyncio
async def test_sync_without_linked_order_is_noop(db):
    quote = await make_quote(status="accepted")

    result = await sync_quote_to_order_and_invoice(quote)

    assert result.success is True
    assert result.order_synced is False
    assert result.invoice_synced is False


@pytest.mark.asyncio
async def test_sync_pushes_quote_amounts_downstream(db):
    quote = await make_quote()
    accepted = await update_quote_status(quote.id, "accepted")

    quote = await Quote.get(id=quote.id)
    quote.items = [{"sku": "X", "description": "cup", "quantity": 20, "unit_price": 100, "total": 2000}]
    quote.sub_total = 2000
    quote.total_amount = 2310
    await quote.save()

    result = await sync_quote_to_order_and_invoice(quote)

    assert result.invoice_synced is True
    order = await Order.get(id=accepted.order_id)
    invoice = await Invoice.get(id=accepted.invoice_id)
    assert order.total_amount == Decimal("2310")
    assert invoice.total_amount == Decimal("2310")
    assert invoice.items[0]["quantity"] == 20


# ---------- 收款 ----------

async def make_invoice(**kw) -> Invoice:
    data = {"invoice_number": "INV-1", "customer_id": "c-1", "total_amount": 1000, "status": "unpaid"}
    data.update(kw)
    return await Invoice.create(**data)


@pytest.mark.asyncio
async def test_partial_payment(db):
    invoice = await make_invoice()

    result = await record_payment(invoice.id, 500)

    invoice = await Invoice.get(id=invoice.id)
    assert result.status == "partially_paid"
    assert invoice.status == "partially_paid"
    assert invoice.payment_date is None


@pytest.mark.asyncio
async def test_overpayment_marks_paid_and_sets_payment_date(db):
    invoice = await make_invoice()

    await record_payment(invoice.id, 1200)

    invoice = await Invoice.get(id=invoice.id)
    assert invoice.status == "paid"
    assert invoice.amount_paid == Decimal("1200")
    assert invoice.payment_date is not None


@pytest.mark.asyncio
async def test_explicit_payment_date_is_kept(db):
    invoice = await make_invoice()
    paid_on = datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)

    await record_payment(invoice.id, 1000, paid_on)

    invoice = await Invoice.get(id=invoice.id)
    assert invoice.payment_date == paid_on


@pytest.mark.asyncio
async def test_zero_payment_keeps_cancelled(db):
    invoice = await make_invoice(status="cancelled")

    await record_payment(invoice.id, 0)

    assert (await Invoice.get(id=invoice.id)).status == "cancelled"


@pytest.mark.asyncio
async def test_manual_status_override_wins(db):
    invoice = await make_invoice(amount_paid=0)

    result = await set_invoice_status(invoice.id, "paid")

    assert result.success is True
    invoice = await Invoice.get(id=invoice.id)
    assert invoice.status == "paid"
    assert invoice.amount_paid == 0


@pytest.mark.asyncio
async def test_accept_reports_invoice_creation_failure(db, monkeypatch, caplog):
    quote = await make_quote()

    async def broken_create(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(Invoice, "create", broken_create)
    result = await update_quote_status(quote.id, "accepted")

    assert result.success is True
    assert result.order_id is not None
    assert result.invoice_id is None
    assert "invoice could not be created" in result.message
    assert "发票创建失败" in caplog.text
    assert (await Quote.get(id=quote.id)).status == "accepted"


@pytest.mark.asyncio
async def test_accept_reports_order_creation_failure(db, monkeypatch):
    quote = await make_quote()

    async def broken_create(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(Order, "create", broken_create)
    result = await update_quote_status(quote.id, "accepted")

    assert result.order_id is None
    assert result.invoice_id is None
    assert "order could not be created" in result.message
    assert await Invoice.all().count() == 0
