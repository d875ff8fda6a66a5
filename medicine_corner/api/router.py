# medicine_corner/api/router.py
from fastapi import APIRouter

from medicine_corner.api import (
    routes_medicines,
    routes_stocks,
    routes_vendors,
    routes_sales,
    routes_reports,
    routes_account,
)

api_router = APIRouter()

api_router.include_router(routes_medicines.router)
api_router.include_router(routes_stocks.router)
api_router.include_router(routes_vendors.router)
api_router.include_router(routes_sales.router)
api_router.include_router(routes_reports.router)
api_router.include_router(routes_account.router)
