# medstock/api/v1/router.py
from fastapi import APIRouter

from medstock.api.v1.endpoints import (
    auth,
    users,
    items,
    hospitals,
    served_units,
    patients,
    stock,
    stock_configs,
    stock_movements,
    imports,
    reports,
    trends,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(items.router, prefix="/items", tags=["items"])
api_router.include_router(hospitals.router, prefix="/hospitals", tags=["hospitals"])
api_router.include_router(served_units.router, prefix="/served-units", tags=["served-units"])
api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(stock.router, prefix="/stock", tags=["stock"])
api_router.include_router(stock_configs.router, prefix="/stock-configs", tags=["stock-configs"])
api_router.include_router(stock_movements.router, prefix="/stock-movements", tags=["stock-movements"])
api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(trends.router, prefix="/trends", tags=["trends"])
