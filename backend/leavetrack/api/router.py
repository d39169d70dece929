from fastapi import APIRouter

from leavetrack.api.balances import employee_balance_router
from leavetrack.api.reports import reports_router
from leavetrack.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(employee_balance_router)
api_router.include_router(reports_router)
