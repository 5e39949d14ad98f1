import io
import logging
from datetime import datetime, timezone

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from auth import finance_only
from finance import (
    FinancialSnapshot,
    PeriodToken,
    compute_financial_snapshot,
    paid_invoices_in_period,
    project_snapshot,
    resolve_period,
)
from settings_repo import SettingsRepository, get_settings_repository
from store import load_financial_inputs

logger = logging.getLogger(__name__)

# 创建路由对象
router = APIRouter(dependencies=[Depends(finance_only)])

PERIOD_LABELS = {
    PeriodToken.last_30_days.value: "Last 30 days",
    PeriodToken.this_month.value: "This Month",
    PeriodToken.last_quarter.value: "Last Quarter",
    PeriodToken.this_year.value: "This Year",
    PeriodToken.all_time.value: "All Time",
}


def normalize_period(period: str) -> str:
    if period not in PERIOD_LABELS:
        logger.debug("未知的报表期间 %r，按 all_time 处理", period)
        return PeriodToken.all_time.value
    return period


def summary_rows(snapshot: FinancialSnapshot, period_label: str, currency_code: str, exchange_rate: float):
    """导出表格的行：指标 / 数值"""
    return [
        {"Metric": "Period", "Value": period_label},
        {"Metric": f"Exchange Rate (1 CNY to {currency_code})", "Value": exchange_rate},
        {},
        {"Metric": "--- SUMMARY ---"},
        {"Metric": "Total Revenue (CNY)", "Value": snapshot.revenue},
        {"Metric": "Net Profit (CNY)", "Value": snapshot.net_profit},
        {"Metric": "Gross Profit Margin (%)", "Value": snapshot.gross_margin_pct},
        {},
        {"Metric": "--- INCOME STATEMENT ---"},
        {"Metric": "Revenue (CNY)", "Value": snapshot.revenue},
        {"Metric": "Cost of Goods Sold (COGS) (CNY)", "Value": snapshot.cogs},
        {"Metric": "Gross Profit (CNY)", "Value": snapshot.gross_profit},
        {"Metric": "Operating Expenses (CNY)", "Value": snapshot.operating_expenses},
        {"Metric": "Net Profit (CNY)", "Value": snapshot.net_profit},
        {},
        {"Metric": "--- BALANCE SHEET OVERVIEW ---"},
        {"Metric": "Accounts Receivable (CNY)", "Value": snapshot.accounts_receivable},
        {"Metric": "Inventory Value (CNY)", "Value": snapshot.inventory_value},
        {"Metric": "Total Current Assets (CNY)", "Value": snapshot.total_current_assets},
    ]


async def build_snapshot(period: str):
    bounds = resolve_period(period)
    inputs = await load_financial_inputs()
    snapshot = compute_financial_snapshot(
        inputs.invoices, inputs.orders, inputs.quotes, inputs.products, bounds.start, bounds.end
    )
    return bounds, inputs, snapshot


@router.get("/financial")
async def get_financial_report(
    period: str = Query(PeriodToken.this_month.value),
    repo: SettingsRepository = Depends(get_settings_repository),
):
    period = normalize_period(period)
    bounds, inputs, snapshot = await build_snapshot(period)
    currency = (await repo.load_currency()).to_display_currency()

    return {
        "period": period,
        "period_label": PERIOD_LABELS[period],
        "start": bounds.start,
        "end": bounds.end,
        "currency": {"code": currency.code, "symbol": currency.symbol, "exchange_rate": currency.exchange_rate},
        "snapshot": snapshot.as_dict(),
        "converted": project_snapshot(snapshot, currency),
    }


@router.get("/financial/download")
async def download_financial_report(
    period: str = Query(PeriodToken.this_month.value),
    repo: SettingsRepository = Depends(get_settings_repository),
):
    period = normalize_period(period)
    bounds, inputs, snapshot = await build_snapshot(period)
    currency = (await repo.load_currency()).to_display_currency()

    df_summary = pd.DataFrame(
        summary_rows(snapshot, PERIOD_LABELS[period], currency.code, currency.exchange_rate),
        columns=["Metric", "Value"],
    )

    # 期间内已付款发票明细
    paid = paid_invoices_in_period(inputs.invoices, bounds.start, bounds.end)
    df_paid = pd.DataFrame(
        [
            {
                "invoice_number": invoice.invoice_number,
                "customer_name": invoice.customer_name,
                "order_number": invoice.order_number,
                "payment_date": invoice.payment_date.date() if invoice.payment_date else None,
                "total_amount": invoice.total_amount,
            }
            for invoice in paid
        ],
        columns=["invoice_number", "customer_name", "order_number", "payment_date", "total_amount"],
    )

    # 写入Excel到内存
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df_summary.to_excel(writer, index=False, sheet_name='Financial Report')
        writer.sheets['Financial Report'].set_column(0, 0, 40)
        writer.sheets['Financial Report'].set_column(1, 1, 20)
        df_paid.to_excel(writer, index=False, sheet_name='Paid Invoices')
    output.seek(0)

    filename = f"financial_report_{period}_{datetime.now(timezone.utc).date().isoformat()}.xlsx"
    # 返回文件流
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
