"""
业务设置（公司信息、展示货币）的读写

设置保存在 app_settings 表中，启动和渲染报表时显式读取，不作为全局状态。
"""
import logging

from pydantic import BaseModel, Field, ValidationError

from finance import DisplayCurrency
from model import AppSetting
from schemas import ActionResult

logger = logging.getLogger(__name__)

COMPANY_INFO_KEY = "company_info"
CURRENCY_KEY = "display_currency"


class CompanyInfo(BaseModel):
    name: str = "Global Trading China"
    address: str = "浙江省, 金华市, 义乌市, 小三里唐3区, 6栋二单元1501"
    email: str = "info@globaltradingchina.com"
    phone: str = "+8613564770717"
    logo: str = Field(default="", description="base64 data URL")


class CurrencySetting(BaseModel):
    code: str = Field(default="EUR", min_length=3, max_length=3)
    symbol: str = Field(default="€", min_length=1)
    exchange_rate: float = Field(default=1.0, gt=0, description="1 CNY 折合多少展示货币")

    def to_display_currency(self) -> DisplayCurrency:
        return DisplayCurrency(code=self.code.upper(), symbol=self.symbol, exchange_rate=self.exchange_rate)


class SettingsRepository:

    async def _load(self, key: str, schema):
        """读取失败或内容无效时返回默认值"""
        try:
            row = await AppSetting.get_or_none(key=key)
        except Exception:
            logger.exception("读取设置 %s 失败，使用默认值", key)
            return schema()
        if row is None:
            return schema()
        try:
            return schema.model_validate(row.value)
        except ValidationError:
            logger.warning("设置 %s 内容无效，使用默认值", key)
            return schema()

    async def _save(self, key: str, value: BaseModel) -> ActionResult:
        try:
            await AppSetting.update_or_create(defaults={"value": value.model_dump()}, key=key)
        except Exception:
            logger.exception("保存设置 %s 失败", key)
            return ActionResult.unexpected()
        logger.info("设置 %s 已保存", key)
        return ActionResult.ok("Settings saved successfully!", id=key, settings=value.model_dump())

    async def load_company_info(self) -> CompanyInfo:
        return await self._load(COMPANY_INFO_KEY, CompanyInfo)

    async def save_company_info(self, info: CompanyInfo) -> ActionResult:
        return await self._save(COMPANY_INFO_KEY, info)

    async def load_currency(self) -> CurrencySetting:
        return await self._load(CURRENCY_KEY, CurrencySetting)

    async def save_currency(self, currency: CurrencySetting) -> ActionResult:
        return await self._save(CURRENCY_KEY, currency)


def get_settings_repository() -> SettingsRepository:
    return SettingsRepository()
