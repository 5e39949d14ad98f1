import io
import logging
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field, ValidationError

from auth import sales_or_finance
from model import Product
from schemas import ActionResult
from store import get_record, list_records

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(sales_or_finance)])


# 定义Pydantic模型用于数据验证
class ProductCreate(BaseModel):
    name: str = Field(min_length=2, description="Name must be at least 2 characters.")
    sku: str = Field(min_length=1, description="SKU is required.")
    description: Optional[str] = None
    price: float = Field(default=0, ge=0, description="售价不能为负")
    purchase_price: float = Field(default=0, ge=0, description="采购价不能为负")
    stock: int = Field(default=0, ge=0, description="库存不能为负")
    category: Optional[str] = None
    weight: float = Field(default=0, ge=0)
    width: float = Field(default=0, ge=0)
    height: float = Field(default=0, ge=0)
    length: float = Field(default=0, ge=0)
    hs_code: Optional[str] = None
    country_of_origin: Optional[str] = None
    image_url: Optional[str] = Field(default=None, description="base64 data URL")


# 导入时按文本处理的列，HS 编码、纯数字 SKU 等也保存为字符串
TEXT_COLUMNS = {"name", "sku", "description", "category", "hs_code", "country_of_origin", "image_url"}


def cell_text(value) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    sku: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0)
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    length: Optional[float] = Field(default=None, ge=0)
    hs_code: Optional[str] = None
    country_of_origin: Optional[str] = None
    image_url: Optional[str] = None


@router.get("/")
async def get_products(category: Optional[str] = None, sku: Optional[str] = None):
    filters = {}
    if category:
        filters["category"] = category
    if sku:
        filters["sku"] = sku
    return await list_records(Product, **filters)


@router.get("/{product_id}")
async def get_product(product_id: str):
    product = await get_record(Product, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/", status_code=201)
async def create_product(product: ProductCreate, response: Response):
    try:
        new_product = await Product.create(**product.model_dump())
    except Exception:
        logger.exception("创建产品失败")
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Product added successfully!", status_code=201, id=new_product.id).apply(response)


@router.post("/import/")
async def import_products(file: UploadFile = File(...)):
    # 验证文件类型
    if not file.filename.endswith('.xlsx'):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .xlsx files are supported"
        )

    contents = await file.read()
    try:
        # 按单元格原值读取，避免带空单元格的数字列被推断成 float
        df = pd.read_excel(io.BytesIO(contents), dtype=object)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Error reading file: {e}"
        )

    # 验证必要列是否存在
    required_columns = {'name', 'sku'}
    if not required_columns.issubset(df.columns):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Excel file must contain columns: {', '.join(sorted(required_columns))}"
        )

    optional_columns = [name for name in ProductCreate.model_fields if name not in required_columns]
    created = []
    errors = []
    for index, row in df.iterrows():
        # Excel 行号 = 索引 + 2（表头占一行）
        line = index + 2
        if pd.isna(row['sku']) or pd.isna(row['name']):
            errors.append(f"Row {line}: name and sku are required")
            continue
        data = {'name': cell_text(row['name']), 'sku': cell_text(row['sku'])}
        for column in optional_columns:
            if column in df.columns and pd.notna(row[column]):
                value = row[column]
                if column in TEXT_COLUMNS:
                    data[column] = cell_text(value)
                else:
                    # numpy 标量转成 Python 类型
                    data[column] = value.item() if hasattr(value, "item") else value
        try:
            product = ProductCreate(**data)
        except ValidationError as e:
            errors.append(f"Row {line}: {e.errors()[0]['msg']}")
            continue
        new_product = await Product.create(**product.model_dump())
        created.append(new_product.id)

    if not created:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No valid products were imported. Errors: {'; '.join(errors)}"
        )

    logger.info("导入产品 %d 条，跳过 %d 条", len(created), len(errors))
    result = {
        "message": f"Successfully imported {len(created)} products",
        "imported_count": len(created),
        "imported_ids": created,
    }
    if errors:
        result["warnings"] = errors
    return result


@router.put("/{product_id}")
async def update_product(product_id: str, product: ProductUpdate, response: Response):
    db_product = await Product.get_or_none(id=product_id)
    if not db_product:
        return ActionResult.fail("Product not found.", status_code=404).apply(response)

    try:
        db_product.update_from_dict(product.model_dump(exclude_unset=True))
        await db_product.save()
    except Exception:
        logger.exception("更新产品 %s 失败", product_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Product updated successfully!", id=product_id).apply(response)


@router.delete("/{product_id}")
async def delete_product(product_id: str, response: Response):
    product = await Product.get_or_none(id=product_id)
    if not product:
        return ActionResult.fail("Product not found.", status_code=404).apply(response)
    try:
        await product.delete()
    except Exception:
        logger.exception("删除产品 %s 失败", product_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Product deleted successfully!").apply(response)
