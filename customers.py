import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr, Field
from tortoise.expressions import Q

from auth import sales_or_finance
from model import Customer, Order
from schemas import ActionResult, CustomerStatus, OrderStatus
from store import get_record, list_records

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(sales_or_finance)])


class CustomerCreate(BaseModel):
    name: str = Field(min_length=2, description="Name must be at least 2 characters.")
    email: EmailStr
    phone: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None
    status: CustomerStatus = CustomerStatus.lead
    source: Optional[str] = None
    notes: Optional[str] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None
    status: Optional[CustomerStatus] = None
    source: Optional[str] = None
    notes: Optional[str] = None


@router.get("/")
async def get_customers(
    status: Optional[CustomerStatus] = None,
    keyword: Optional[str] = None,
):
    filters = {}
    if status is not None:
        filters["status"] = status.value
    customers = await list_records(Customer, **filters)
    if keyword:
        keyword = keyword.lower()
        customers = [
            c for c in customers
            if keyword in c.name.lower() or keyword in c.email.lower() or keyword in c.company.lower()
        ]
    return customers


@router.get("/{customer_id}")
async def get_customer_detail(customer_id: str):
    """客户详情，附带未取消的订单和按订单汇总的收入"""
    customer = await get_record(Customer, customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")

    orders = await list_records(Order, Q(customer_id=customer_id) & ~Q(status=OrderStatus.cancelled.value))
    total_revenue = sum((order.total_amount for order in orders), 0.0)
    return {
        **customer.model_dump(),
        "orders": orders,
        "order_count": len(orders),
        "total_revenue": total_revenue,
    }


@router.post("/", status_code=201)
async def create_customer(customer: CustomerCreate, response: Response):
    try:
        new_customer = await Customer.create(**customer.model_dump(mode="json"))
    except Exception:
        logger.exception("创建客户失败")
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Customer added successfully!", status_code=201, id=new_customer.id).apply(response)


@router.put("/{customer_id}")
async def update_customer(customer_id: str, customer: CustomerUpdate, response: Response):
    db_customer = await Customer.get_or_none(id=customer_id)
    if not db_customer:
        return ActionResult.fail("Customer not found.", status_code=404).apply(response)

    update_data = customer.model_dump(mode="json", exclude_unset=True)
    try:
        db_customer.update_from_dict(update_data)
        await db_customer.save()
    except Exception:
        logger.exception("更新客户 %s 失败", customer_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Customer updated successfully!", id=customer_id).apply(response)


@router.delete("/{customer_id}")
async def delete_customer(customer_id: str, response: Response):
    customer = await Customer.get_or_none(id=customer_id)
    if not customer:
        return ActionResult.fail("Customer not found.", status_code=404).apply(response)
    try:
        await customer.delete()
    except Exception:
        logger.exception("删除客户 %s 失败", customer_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Customer deleted successfully!").apply(response)
