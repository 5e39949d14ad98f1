"""
财务报表计算

从发票、订单、形式发票和产品四个集合在内存中汇总出利润表和资产概览。
全部是纯函数：相同输入得到相同输出，不读写数据库。

缺失的关联（SKU 找不到产品、发票没有订单、订单没有形式发票……）一律按 0 计入，
不报错。这会在数据不完整时少算成本、多算利润，属于已知限制。
"""
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from schemas import InvoiceRecord, InvoiceStatus, OrderRecord, ProductRecord, QuoteRecord, to_datetime

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# 计入应收账款的发票状态
RECEIVABLE_STATUSES = (
    InvoiceStatus.unpaid.value,
    InvoiceStatus.partially_paid.value,
    InvoiceStatus.overdue.value,
)


class PeriodToken(str, Enum):
    last_30_days = "last_30_days"
    this_month = "this_month"
    last_quarter = "last_quarter"
    this_year = "this_year"
    all_time = "all_time"


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def _day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _day_end(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def _quarter_start(moment: datetime) -> datetime:
    first_month = 3 * ((moment.month - 1) // 3) + 1
    return _day_start(moment.replace(month=first_month, day=1))


def resolve_period(token, now: Optional[datetime] = None) -> Period:
    """把报表期间标识换算成具体时间区间

    未知标识按 all_time 处理，不抛异常。
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    try:
        token = PeriodToken(token)
    except ValueError:
        token = PeriodToken.all_time

    if token is PeriodToken.last_30_days:
        return Period(now - timedelta(days=30), now)
    if token is PeriodToken.this_month:
        start = _day_start(now.replace(day=1))
        end = _day_end(start + relativedelta(months=1) - timedelta(days=1))
        return Period(start, end)
    if token is PeriodToken.last_quarter:
        start = _quarter_start(_quarter_start(now) - timedelta(days=1))
        end = _day_end(start + relativedelta(months=3) - timedelta(days=1))
        return Period(start, end)
    if token is PeriodToken.this_year:
        start = _day_start(now.replace(month=1, day=1))
        end = _day_end(now.replace(month=12, day=31))
        return Period(start, end)
    return Period(EPOCH.astimezone(now.tzinfo), now)


@dataclass(frozen=True)
class FinancialSnapshot:
    revenue: float
    cogs: float
    gross_profit: float
    gross_margin_pct: float
    operating_expenses: float
    net_profit: float
    accounts_receivable: float
    inventory_value: float
    paid_invoice_count: int

    @property
    def total_current_assets(self) -> float:
        return self.accounts_receivable + self.inventory_value

    def as_dict(self) -> Dict[str, float]:
        data = asdict(self)
        data["total_current_assets"] = self.total_current_assets
        return data


def paid_invoices_in_period(invoices: Iterable[InvoiceRecord], period_start: datetime,
                            period_end: datetime) -> List[InvoiceRecord]:
    """已付款且付款日期落在期间内的发票；付款日期缺失或无法解析的不计入"""
    period = Period(to_datetime(period_start), to_datetime(period_end))
    selected = []
    for invoice in invoices:
        if invoice.status != InvoiceStatus.paid.value:
            continue
        payment_date = to_datetime(invoice.payment_date)
        if payment_date is None:
            continue
        if period.contains(payment_date):
            selected.append(invoice)
    return selected


def _index_by(records, key) -> dict:
    # 重复的键保留第一条
    index = {}
    for record in records:
        value = getattr(record, key)
        if value and value not in index:
            index[value] = record
    return index


def cost_of_goods_sold(invoices: Iterable[InvoiceRecord], products_by_sku: Dict[str, ProductRecord]) -> float:
    total = 0.0
    for invoice in invoices:
        for item in invoice.items:
            if not item.sku:
                continue
            product = products_by_sku.get(item.sku)
            if product is None:
                continue
            total += product.purchase_price * item.quantity
    return total


def quote_expense(quote: QuoteRecord) -> float:
    """运输费 + 佣金，佣金按 (小计 + 运输费) × 佣金率 计算"""
    transport = quote.transport_cost or 0
    commission = (quote.sub_total + transport) * ((quote.commission_rate or 0) / 100)
    return commission + transport


def operating_expenses(invoices: Iterable[InvoiceRecord], orders_by_id: Dict[str, OrderRecord],
                       quotes_by_id: Dict[str, QuoteRecord]) -> float:
    total = 0.0
    for invoice in invoices:
        if not invoice.order_id:
            continue
        order = orders_by_id.get(invoice.order_id)
        if order is None or not order.quote_id:
            continue
        quote = quotes_by_id.get(order.quote_id)
        if quote is None:
            continue
        total += quote_expense(quote)
    return total


def accounts_receivable(invoices: Iterable[InvoiceRecord]) -> float:
    """所有未结清发票的余额，与报表期间无关"""
    return sum(
        (invoice.total_amount - (invoice.amount_paid or 0)
         for invoice in invoices if invoice.status in RECEIVABLE_STATUSES),
        0.0,
    )


def inventory_value(products: Iterable[ProductRecord]) -> float:
    return sum((product.stock * (product.purchase_price or 0) for product in products), 0.0)


def compute_financial_snapshot(
    invoices: Sequence[InvoiceRecord],
    orders: Sequence[OrderRecord],
    quotes: Sequence[QuoteRecord],
    products: Sequence[ProductRecord],
    period_start: datetime,
    period_end: datetime,
) -> FinancialSnapshot:
    paid = paid_invoices_in_period(invoices, period_start, period_end)

    revenue = sum((invoice.total_amount for invoice in paid), 0.0)
    cogs = cost_of_goods_sold(paid, _index_by(products, "sku"))
    opex = operating_expenses(paid, _index_by(orders, "id"), _index_by(quotes, "id"))

    gross_profit = revenue - cogs
    gross_margin_pct = (gross_profit / revenue) * 100 if revenue > 0 else 0.0

    return FinancialSnapshot(
        revenue=revenue,
        cogs=cogs,
        gross_profit=gross_profit,
        gross_margin_pct=gross_margin_pct,
        operating_expenses=opex,
        net_profit=gross_profit - opex,
        accounts_receivable=accounts_receivable(invoices),
        inventory_value=inventory_value(products),
        paid_invoice_count=len(paid),
    )


# ─── 展示货币 ───

@dataclass(frozen=True)
class DisplayCurrency:
    code: str = "EUR"
    symbol: str = "€"
    # 1 CNY 折合多少展示货币
    exchange_rate: float = 1.0


MONETARY_FIELDS = (
    "revenue",
    "cogs",
    "gross_profit",
    "operating_expenses",
    "net_profit",
    "accounts_receivable",
    "inventory_value",
    "total_current_assets",
)


def convert(amount: float, exchange_rate: float) -> float:
    return amount * exchange_rate


def project_snapshot(snapshot: FinancialSnapshot, currency: DisplayCurrency) -> Dict[str, dict]:
    """金额字段同时给出 CNY 和展示货币两种数值"""
    data = snapshot.as_dict()
    code = currency.code.lower()
    return {
        name: {"cny": data[name], code: convert(data[name], currency.exchange_rate)}
        for name in MONETARY_FIELDS
    }
