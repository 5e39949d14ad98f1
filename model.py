import uuid

from tortoise import fields
from tortoise.models import Model


def new_id() -> str:
    return uuid.uuid4().hex


# 业务实体之间没有外键：customer_id / quote_id / order_id / sku 都只是查找键，
# 关联在应用层内存中完成，缺失的引用不报错


class Customer(Model):
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255)
    phone = fields.CharField(max_length=64, null=True)
    company = fields.CharField(max_length=255, null=True)
    country = fields.CharField(max_length=128, null=True)
    STATUS_CHOICES = ["lead", "active", "inactive", "prospect"]
    status = fields.CharField(max_length=16, default="lead")
    source = fields.CharField(max_length=255, null=True)
    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "customers"
        ordering = ["-created_at"]


class Product(Model):
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    name = fields.CharField(max_length=255)
    # SKU 按约定唯一，但数据库不强制
    sku = fields.CharField(max_length=128)
    description = fields.TextField(null=True)
    price = fields.DecimalField(max_digits=14, decimal_places=2, default=0, description="售价 CNY")
    purchase_price = fields.DecimalField(max_digits=14, decimal_places=2, default=0, description="采购价 CNY")
    stock = fields.IntField(default=0)
    category = fields.CharField(max_length=128, null=True)
    weight = fields.FloatField(default=0)
    width = fields.FloatField(default=0)
    height = fields.FloatField(default=0)
    length = fields.FloatField(default=0)
    hs_code = fields.CharField(max_length=32, null=True)
    country_of_origin = fields.CharField(max_length=128, null=True)
    image_url = fields.TextField(null=True, description="图片 base64 data URL")
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "products"
        ordering = ["-created_at"]


class Quote(Model):
    """形式发票 (Proforma Invoice)"""
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    quote_number = fields.CharField(max_length=64)
    customer_id = fields.CharField(max_length=32)
    customer_name = fields.CharField(max_length=255, default="")
    items = fields.JSONField(default=list)
    sub_total = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    transport_cost = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    commission_rate = fields.FloatField(default=0, description="佣金百分比 0-100")
    total_amount = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    STATUS_CHOICES = ["draft", "sent", "accepted", "rejected"]
    status = fields.CharField(max_length=16, default="draft")
    shipping_address = fields.TextField(null=True)
    notes = fields.TextField(null=True)
    issue_date = fields.DatetimeField(null=True)
    valid_until = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "quotes"
        ordering = ["-created_at"]


class Order(Model):
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    order_number = fields.CharField(max_length=64)
    quote_id = fields.CharField(max_length=32, null=True)
    customer_id = fields.CharField(max_length=32)
    customer_name = fields.CharField(max_length=255, default="")
    # 下单时从形式发票快照，之后不随产品价格变化
    items = fields.JSONField(default=list)
    sub_total = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    transport_cost = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    commission_rate = fields.FloatField(default=0)
    total_amount = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    STATUS_CHOICES = ["processing", "shipped", "delivered", "cancelled"]
    status = fields.CharField(max_length=16, default="processing")
    shipping_address = fields.TextField(null=True)
    order_date = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "orders"
        ordering = ["-created_at"]


class Invoice(Model):
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    invoice_number = fields.CharField(max_length=64)
    order_id = fields.CharField(max_length=32, null=True)
    order_number = fields.CharField(max_length=64, null=True)
    customer_id = fields.CharField(max_length=32)
    customer_name = fields.CharField(max_length=255, default="")
    items = fields.JSONField(default=list)
    sub_total = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    transport_cost = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    commission_rate = fields.FloatField(default=0)
    total_amount = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    amount_paid = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    STATUS_CHOICES = ["unpaid", "partially_paid", "paid", "overdue", "cancelled"]
    status = fields.CharField(max_length=16, default="unpaid")
    issue_date = fields.DatetimeField(null=True)
    due_date = fields.DatetimeField(null=True)
    payment_date = fields.DatetimeField(null=True)
    shipping_address = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "invoices"
        ordering = ["-created_at"]


class PackingList(Model):
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    list_id = fields.CharField(max_length=64)
    date = fields.DatetimeField(null=True)
    items = fields.JSONField(default=list)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "packing_lists"
        ordering = ["-created_at"]


class ContactSubmission(Model):
    id = fields.CharField(primary_key=True, max_length=32, default=new_id)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255)
    phone = fields.CharField(max_length=64, null=True)
    subject = fields.CharField(max_length=255, default="")
    message = fields.TextField()
    read = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "contact_submissions"
        ordering = ["-created_at"]


class AppSetting(Model):
    """公司信息、展示货币等业务设置，按 key 存 JSON"""
    key = fields.CharField(primary_key=True, max_length=64)
    value = fields.JSONField()
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "app_settings"


class User(Model):
    id = fields.IntField(primary_key=True)
    username = fields.CharField(max_length=50, unique=True, description="用户名")
    hashed_password = fields.CharField(max_length=128, description="加密后的密码")
    USER_TYPE_CHOICES = [
        ("sales", "销售"),
        ("finance", "财务"),
        ("admin", "超级管理员"),
    ]
    user_type = fields.CharField(max_length=10, choices=USER_TYPE_CHOICES, description="用户类型：sales=销售，finance=财务，admin=超级管理员")
    is_active = fields.BooleanField(default=True, description="用户是否活跃")
    created_at = fields.DatetimeField(auto_now_add=True, description="创建时间")
    updated_at = fields.DatetimeField(auto_now=True, description="更新时间")

    def __str__(self):
        return self.username
