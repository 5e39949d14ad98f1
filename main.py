import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tortoise.contrib.fastapi import register_tortoise
from tortoise.exceptions import DBConnectionError
from tortoise.transactions import in_transaction
from uvicorn import run

from auth import router as auth_router
from company_settings import router as settings_router
from config import settings, tortoise_config
from customers import router as customers_router
from invoices import router as invoices_router
from logging_config import setup_logging
from orders import router as orders_router
from packing_lists import router as packing_lists_router
from products import router as products_router
from quotes import router as quotes_router
from report import router as report_router
from schemas import ActionResult
from submissions import public_router as contact_router
from submissions import router as submissions_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Sourcing Back-office API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求校验失败也按 success/message 的格式返回"""
    result = ActionResult.fail("Validation failed.", status_code=422, errors=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=result.status_code, content=jsonable_encoder(result))


# 注册其他的模块的route，指定URL前缀，以及docs可以使用的tags
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(customers_router, prefix="/customers", tags=["customers"])
app.include_router(products_router, prefix="/products", tags=["products"])
app.include_router(quotes_router, prefix="/quotes", tags=["quotes"])
app.include_router(orders_router, prefix="/orders", tags=["orders"])
app.include_router(invoices_router, prefix="/invoices", tags=["invoices"])
app.include_router(packing_lists_router, prefix="/packing-lists", tags=["packing lists"])
app.include_router(contact_router, prefix="/contact", tags=["contact"])
app.include_router(submissions_router, prefix="/submissions", tags=["contact"])
app.include_router(settings_router, prefix="/settings", tags=["settings"])
app.include_router(report_router, prefix="/report", tags=["report"])


@app.get("/", tags=["home"])
def read_root():
    return {"service": "sourcing-backoffice", "status": "ok"}


@app.get("/db_test", tags=["test"])
async def db_test():
    try:
        async with in_transaction() as conn:
            await conn.execute_query("SELECT 1")
        return {"status": "success", "msg": "Database connection OK"}
    except DBConnectionError as e:
        logger.error("数据库连接失败: %s", e)
        return {"status": "fail", "msg": f"Database connection failed: {e}"}


# 注册 Tortoise ORM
register_tortoise(
    app,
    config=tortoise_config(),
    generate_schemas=settings.GENERATE_SCHEMAS,
    add_exception_handlers=True,  # 添加Tortoise ORM的异常处理程序
)

if __name__ == "__main__":
    run(app, host="0.0.0.0", port=8000)
