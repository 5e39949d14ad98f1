from fastapi import APIRouter, Depends, Response

from auth import admin_only, sales_or_finance
from settings_repo import CompanyInfo, CurrencySetting, SettingsRepository, get_settings_repository

router = APIRouter()


@router.get("/company", dependencies=[Depends(sales_or_finance)])
async def get_company_info(repo: SettingsRepository = Depends(get_settings_repository)):
    return await repo.load_company_info()


@router.put("/company", dependencies=[Depends(admin_only)])
async def update_company_info(info: CompanyInfo, response: Response,
                              repo: SettingsRepository = Depends(get_settings_repository)):
    result = await repo.save_company_info(info)
    return result.apply(response)


@router.get("/currency", dependencies=[Depends(sales_or_finance)])
async def get_currency(repo: SettingsRepository = Depends(get_settings_repository)):
    return await repo.load_currency()


@router.put("/currency", dependencies=[Depends(sales_or_finance)])
async def update_currency(currency: CurrencySetting, response: Response,
                          repo: SettingsRepository = Depends(get_settings_repository)):
    result = await repo.save_currency(currency)
    return result.apply(response)
