"""API routers."""
from fastapi import APIRouter

from .ranking import router as ranking_router

api_router = APIRouter()

api_router.include_router(ranking_router, prefix="/ranking", tags=["Ranking"])
