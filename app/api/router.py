from fastapi import APIRouter
from app.api.endpoints import tables

api_router = APIRouter()

# Every table is served by the same generic router
api_router.include_router(tables.router)
