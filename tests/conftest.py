# tests/conftest.py
from typing import AsyncGenerator

import httpx
import pytest_asyncio
from tortoise import Tortoise

from auth import get_current_user
from config import tortoise_config
from main import app

ADMIN_USER = {"id": 1, "username": "admin", "user_type": "admin", "is_active": True}


# =========================================
# 每个用例一个独立的内存 SQLite 库
# =========================================
@pytest_asyncio.fixture(scope="function")
async def db() -> AsyncGenerator[None, None]:
    await Tortoise.init(config=tortoise_config("sqlite://:memory:"))
    await Tortoise.generate_schemas()
    try:
        yield
    finally:
        await Tortoise.close_connections()


@pytest_asyncio.fixture(scope="function")
async def client(db) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    直接走 ASGI，不触发 lifespan（数据库由 db fixture 初始化），
    登录用户固定为 admin
    """
    app.dependency_overrides[get_current_user] = lambda: ADMIN_USER
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
