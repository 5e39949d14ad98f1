# tests/test_finance.py
from datetime import datetime, timezone

import pytest

from finance import (
    EPOCH,
    DisplayCurrency,
    FinancialSnapshot,
    PeriodToken,
    compute_financial_snapshot,
    paid_invoices_in_period,
    project_snapshot,
    quote_expense,
    resolve_period,
)
from schemas import InvoiceRecord, OrderRecord, ProductRecord, QuoteRecord

UTC = timezone.utc
START = datetime(2024, 1, 1, tzinfo=UTC)
END = datetime(2024, 12, 31, 23, 59, 59, tzinfo=UTC)


def invoice(**kw) -> InvoiceRecord:
    data = {"id": "inv-1", "status": "paid", "paymentDate": "2024-06-15T10:00:00Z", "totalAmount": 1000}
    data.update(kw)
    return InvoiceRecord.model_validate(data)


def product(**kw) -> ProductRecord:
    data = {"id": "p-1", "sku": "X", "purchasePrice": 100, "stock": 0}
    data.update(kw)
    return ProductRecord.model_validate(data)


def snapshot(invoices=(), orders=(), quotes=(), products=(), start=START, end=END) -> FinancialSnapshot:
    return compute_financial_snapshot(list(invoices), list(orders), list(quotes), list(products), start, end)


# ---------- 利润表 ----------

def test_cogs_and_margin_from_matching_sku():
    inv = invoice(items=[{"sku": "X", "quantity": 2, "unitPrice": 500}])
    result = snapshot([inv], products=[product()])

    assert result.revenue == 1000
    assert result.cogs == 200
    assert result.gross_profit == 800
    assert result.gross_margin_pct == pytest.approx(80)
    assert result.paid_invoice_count == 1


def test_invoice_without_order_has_no_operating_expense():
    inv = invoice(items=[{"sku": "X", "quantity": 2}])
    result = snapshot([inv], products=[product()])

    assert result.operating_expenses == 0
    assert result.net_profit == result.gross_profit


def test_operating_expenses_follow_invoice_order_quote_chain():
    quote = QuoteRecord.model_validate(
        {"id": "q-1", "subTotal": 1000, "transportCost": 100, "commissionRate": 10}
    )
    order = OrderRecord.model_validate({"id": "o-1", "quoteId": "q-1"})
    inv = invoice(orderId="o-1", totalAmount=1210)

    result = snapshot([inv], [order], [quote])

    # (1000 + 100) × 10% + 100
    assert quote_expense(quote) == pytest.approx(210)
    assert result.operating_expenses == pytest.approx(210)
    assert result.net_profit == pytest.approx(1210 - 210)


def test_broken_links_count_as_zero():
    order_without_quote = OrderRecord.model_validate({"id": "o-2"})
    invoices = [
        invoice(id="a", orderId="missing-order", items=[{"sku": "UNKNOWN", "quantity": 5}]),
        invoice(id="b", orderId="o-2", items=[{"sku": "", "quantity": 5}]),
        invoice(id="c", orderId="o-3", items=[{"quantity": 5}]),
    ]
    orders = [order_without_quote, OrderRecord.model_validate({"id": "o-3", "quoteId": "missing-quote"})]

    result = snapshot(invoices, orders, products=[product()])

    assert result.revenue == 3000
    assert result.cogs == 0
    assert result.operating_expenses == 0
    assert result.net_profit == 3000


def test_only_paid_invoices_inside_period_count_as_revenue():
    invoices = [
        invoice(id="in-period"),
        invoice(id="unpaid", status="unpaid"),
        invoice(id="partial", status="partially_paid", amountPaid=200),
        invoice(id="before", paymentDate="2023-12-31T23:59:59Z"),
        invoice(id="after", paymentDate="2025-01-01T00:00:00Z"),
        invoice(id="no-date", paymentDate=None),
        invoice(id="bad-date", paymentDate="not-a-date"),
    ]

    paid = paid_invoices_in_period(invoices, START, END)

    assert [inv.id for inv in paid] == ["in-period"]
    assert snapshot(invoices).revenue == 1000


def test_period_bounds_are_inclusive():
    invoices = [
        invoice(id="first", paymentDate=START.isoformat()),
        invoice(id="last", paymentDate=END.isoformat()),
    ]
    assert len(paid_invoices_in_period(invoices, START, END)) == 2


def test_negative_gross_profit_is_reported():
    inv = invoice(totalAmount=100, items=[{"sku": "X", "quantity": 3}])
    result = snapshot([inv], products=[product()])

    assert result.gross_profit == -200
    assert result.gross_margin_pct == pytest.approx(-200)


def test_margin_is_zero_without_revenue():
    result = snapshot([invoice(status="unpaid")], products=[product(stock=3)])

    assert result.revenue == 0
    assert result.gross_margin_pct == 0


# ---------- 资产概览 ----------

def test_accounts_receivable_ignores_period():
    invoices = [
        invoice(id="u", status="unpaid", totalAmount=300, paymentDate=None),
        invoice(id="pp", status="partially_paid", totalAmount=1000, amountPaid=400, paymentDate=None),
        invoice(id="od", status="overdue", totalAmount=50, paymentDate="2001-01-01"),
        invoice(id="c", status="cancelled", totalAmount=999),
        invoice(id="p", status="paid", totalAmount=1000, amountPaid=1000),
    ]
    narrow = snapshot(invoices, start=datetime(2030, 1, 1, tzinfo=UTC), end=datetime(2030, 1, 2, tzinfo=UTC))
    wide = snapshot(invoices, start=EPOCH, end=END)

    assert narrow.accounts_receivable == 300 + 600 + 50
    assert wide.accounts_receivable == narrow.accounts_receivable


def test_inventory_value_skips_zero_purchase_price():
    products = [
        product(id="free", sku="F", purchasePrice=0, stock=50),
        product(id="paid", sku="P", purchasePrice=12.5, stock=4),
    ]
    result = snapshot(products=products)

    assert result.inventory_value == 50
    assert result.total_current_assets == result.accounts_receivable + 50


def test_duplicate_sku_uses_first_product():
    products = [product(id="first", purchasePrice=10), product(id="second", purchasePrice=99)]
    inv = invoice(items=[{"sku": "X", "quantity": 1}])

    assert snapshot([inv], products=products).cogs == 10


def test_snapshot_is_deterministic():
    inv = invoice(items=[{"sku": "X", "quantity": 2}])
    args = ([inv], [], [], [product(stock=7)], START, END)

    assert compute_financial_snapshot(*args) == compute_financial_snapshot(*args)


def test_missing_numbers_default_to_zero():
    inv = InvoiceRecord.model_validate(
        {"id": "raw", "status": "paid", "payment_date": "2024-03-01", "total_amount": None,
         "items": [{"sku": "X", "quantity": "abc"}, "garbage"]}
    )
    result = snapshot([inv], products=[product()])

    assert inv.total_amount == 0
    assert len(inv.items) == 1
    assert result.revenue == 0
    assert result.cogs == 0
    assert result.gross_margin_pct == 0


# ---------- 报表期间 ----------

NOW = datetime(2024, 5, 20, 15, 30, tzinfo=UTC)


def test_last_30_days():
    period = resolve_period("last_30_days", NOW)
    assert period.start == datetime(2024, 4, 20, 15, 30, tzinfo=UTC)
    assert period.end == NOW


def test_this_month_covers_whole_month():
    period = resolve_period(PeriodToken.this_month, datetime(2024, 2, 10, tzinfo=UTC))
    assert period.start == datetime(2024, 2, 1, tzinfo=UTC)
    assert period.end == datetime(2024, 2, 29, 23, 59, 59, 999999, tzinfo=UTC)


def test_last_quarter():
    period = resolve_period("last_quarter", NOW)
    assert period.start == datetime(2024, 1, 1, tzinfo=UTC)
    assert period.end == datetime(2024, 3, 31, 23, 59, 59, 999999, tzinfo=UTC)


def test_last_quarter_crosses_year_boundary():
    period = resolve_period("last_quarter", datetime(2024, 2, 1, tzinfo=UTC))
    assert period.start == datetime(2023, 10, 1, tzinfo=UTC)
    assert period.end == datetime(2023, 12, 31, 23, 59, 59, 999999, tzinfo=UTC)


def test_this_year():
    period = resolve_period("this_year", NOW)
    assert period.start == datetime(2024, 1, 1, tzinfo=UTC)
    assert period.end == datetime(2024, 12, 31, 23, 59, 59, 999999, tzinfo=UTC)


@pytest.mark.parametrize("token", ["all_time", "", "next_decade"])
def test_all_time_and_unknown_tokens(token):
    period = resolve_period(token, NOW)
    assert period.start == EPOCH
    assert period.end == NOW


def test_naive_now_is_treated_as_utc():
    period = resolve_period("this_month", datetime(2024, 5, 20))
    assert period.start == datetime(2024, 5, 1, tzinfo=UTC)


# ---------- 展示货币 ----------

def test_project_snapshot_converts_monetary_fields():
    inv = invoice(items=[{"sku": "X", "quantity": 2}])
    result = snapshot([inv], products=[product(stock=1)])

    converted = project_snapshot(result, DisplayCurrency(code="USD", symbol="$", exchange_rate=0.5))

    assert converted["revenue"] == {"cny": 1000, "usd": 500}
    assert converted["inventory_value"] == {"cny": 100, "usd": 50}
    assert converted["total_current_assets"]["usd"] == 50
    assert "gross_margin_pct" not in converted
