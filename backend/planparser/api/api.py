from fastapi import APIRouter
from planparser.api.endpoints import health, parse

api_router = APIRouter()
api_router.include_router(parse.router, prefix="/parse", tags=["parse"])
api_router.include_router(health.router, tags=["system"])
