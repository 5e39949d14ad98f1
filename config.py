"""
应用配置
通过环境变量 (前缀 SOURCING_) 或 .env 文件覆盖
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SOURCING_", env_file=".env", extra="ignore")

    # 数据库
    DATABASE_URL: str = "sqlite://backoffice.sqlite3"
    GENERATE_SCHEMAS: bool = True

    # JWT 配置
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # 日志
    LOG_LEVEL: str = "INFO"

    # 发票默认账期（天）
    INVOICE_DUE_DAYS: int = 30

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]


settings = Settings()


def tortoise_config(db_url: str = None) -> dict:
    """Tortoise ORM 配置，所有时间字段按 UTC 存取"""
    return {
        "connections": {"default": db_url or settings.DATABASE_URL},
        "apps": {
            "models": {"models": ["model"], "default_connection": "default"},
        },
        "use_tz": True,
        "timezone": "UTC",
    }
