"""
读取边界的数据结构

文档库里的记录形状并不可靠（老数据是 camelCase、字段可能缺失），
这里统一校验并给出缺省值：
  - 金额、数量缺失或无法解析 -> 0
  - 日期缺失或无法解析 -> None
  - 状态保持原始字符串，未知状态不会被当成任何已知状态
"""
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from dateutil import parser as date_parser
from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class QuoteStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    rejected = "rejected"


class OrderStatus(str, Enum):
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class InvoiceStatus(str, Enum):
    unpaid = "unpaid"
    partially_paid = "partially_paid"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


class CustomerStatus(str, Enum):
    lead = "lead"
    active = "active"
    inactive = "inactive"
    prospect = "prospect"


def to_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_datetime(value: Any) -> Optional[datetime]:
    """解析时间，失败返回 None；无时区的按 UTC 处理"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = date_parser.isoparse(value)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Record(BaseModel):
    model_config = ConfigDict(
        # 老数据是 camelCase，读取时两种写法都接受，输出统一用字段名
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        extra="ignore",
    )


class LineItem(Record):
    sku: Optional[str] = None
    description: str = ""
    quantity: float = 0
    unit_price: float = 0
    purchase_price: float = 0
    total: float = 0

    @field_validator("quantity", "unit_price", "purchase_price", "total", mode="before")
    @classmethod
    def _number(cls, v):
        return to_number(v)

    @field_validator("sku", mode="before")
    @classmethod
    def _blank_sku(cls, v):
        # 空字符串 SKU 视为没有 SKU
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("description", mode="before")
    @classmethod
    def _text(cls, v):
        return "" if v is None else str(v)


class ProductRecord(Record):
    id: str
    name: str = ""
    sku: str = ""
    description: str = ""
    price: float = 0
    purchase_price: float = 0
    stock: int = 0
    category: str = ""
    weight: float = 0
    width: float = 0
    height: float = 0
    length: float = 0
    hs_code: str = ""
    country_of_origin: str = ""
    image_url: str = ""
    created_at: Optional[datetime] = None

    @field_validator("price", "purchase_price", "weight", "width", "height", "length", mode="before")
    @classmethod
    def _number(cls, v):
        return to_number(v)

    @field_validator("stock", mode="before")
    @classmethod
    def _stock(cls, v):
        return int(to_number(v))

    @field_validator("name", "sku", "description", "category", "hs_code", "country_of_origin", "image_url", mode="before")
    @classmethod
    def _text(cls, v):
        return "" if v is None else str(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _date(cls, v):
        return to_datetime(v)


class _Document(Record):
    """带明细行和总额的单据（形式发票、订单、发票）共用部分"""
    id: str
    customer_id: str = ""
    customer_name: str = ""
    items: List[LineItem] = Field(default_factory=list)
    sub_total: float = 0
    transport_cost: float = 0
    commission_rate: float = 0
    total_amount: float = 0
    shipping_address: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("sub_total", "transport_cost", "commission_rate", "total_amount", mode="before")
    @classmethod
    def _number(cls, v):
        return to_number(v)

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, LineItem))]

    @field_validator("customer_id", "customer_name", mode="before")
    @classmethod
    def _text(cls, v):
        return "" if v is None else str(v)


class QuoteRecord(_Document):
    quote_number: str = ""
    status: str = QuoteStatus.draft.value
    notes: Optional[str] = None
    issue_date: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @field_validator("issue_date", "valid_until", "created_at", mode="before")
    @classmethod
    def _date(cls, v):
        return to_datetime(v)

    @field_validator("quote_number", mode="before")
    @classmethod
    def _number_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return v or QuoteStatus.draft.value


class OrderRecord(_Document):
    order_number: str = ""
    quote_id: Optional[str] = None
    status: str = OrderStatus.processing.value
    order_date: Optional[datetime] = None

    @field_validator("order_date", "created_at", mode="before")
    @classmethod
    def _date(cls, v):
        return to_datetime(v)

    @field_validator("order_number", mode="before")
    @classmethod
    def _number_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("quote_id", mode="before")
    @classmethod
    def _ref(cls, v):
        return str(v) if v else None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return v or OrderStatus.processing.value


class InvoiceRecord(_Document):
    invoice_number: str = ""
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    amount_paid: float = 0
    status: str = InvoiceStatus.unpaid.value
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    payment_date: Optional[datetime] = None

    @field_validator("amount_paid", mode="before")
    @classmethod
    def _paid(cls, v):
        return to_number(v)

    @field_validator("issue_date", "due_date", "payment_date", "created_at", mode="before")
    @classmethod
    def _date(cls, v):
        return to_datetime(v)

    @field_validator("invoice_number", mode="before")
    @classmethod
    def _number_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("order_id", mode="before")
    @classmethod
    def _ref(cls, v):
        return str(v) if v else None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return v or InvoiceStatus.unpaid.value


class CustomerRecord(Record):
    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    country: str = ""
    status: str = CustomerStatus.lead.value
    source: str = ""
    notes: str = ""
    created_at: Optional[datetime] = None

    @field_validator("name", "email", "phone", "company", "country", "source", "notes", mode="before")
    @classmethod
    def _text(cls, v):
        return "" if v is None else str(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return v or CustomerStatus.lead.value

    @field_validator("created_at", mode="before")
    @classmethod
    def _date(cls, v):
        return to_datetime(v)


class ActionResult(BaseModel):
    """写操作的统一返回：成功标志 + 提示信息，不向调用方抛异常"""
    model_config = ConfigDict(extra="allow")

    success: bool
    message: str = ""
    id: Optional[str] = None
    errors: Optional[List[Any]] = None
    # 只用于设置 HTTP 状态码，不出现在响应体里
    status_code: int = Field(default=200, exclude=True)

    @classmethod
    def ok(cls, message: str, status_code: int = 200, **extra) -> "ActionResult":
        return cls(success=True, message=message, status_code=status_code, **extra)

    @classmethod
    def fail(cls, message: str, status_code: int = 400, **extra) -> "ActionResult":
        return cls(success=False, message=message, status_code=status_code, **extra)

    @classmethod
    def unexpected(cls) -> "ActionResult":
        return cls(success=False, message="An unexpected error occurred.", status_code=500)

    def apply(self, response) -> "ActionResult":
        """把状态码写到 FastAPI 的 Response 上"""
        response.status_code = self.status_code
        return self
